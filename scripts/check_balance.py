import argparse
import asyncio
import sys
from typing import List

import httpx
import humanfriendly

from keepthisfile.config import config
from keepthisfile.services.blob_store import BlobStore, Wallet

WINSTON_PER_AR = 10 ** 12
REFERENCE_SIZES = ["100 KiB", "1 MiB", "10 MiB", "100 MiB"]


async def check_balance(sizes: List[int], min_balance: int) -> bool:
    async with httpx.AsyncClient(timeout=30.0) as http:
        store = BlobStore(
            http,
            Wallet(config.ARWEAVE_KEY_JSON),
            gateway_url=config.ARWEAVE_GATEWAY_URL,
            sponsored_url=config.SPONSORED_UPLOAD_URL,
            sponsored_max_bytes=config.FREE_MAX_BYTES,
        )

        print(f"[wallet] address={store.wallet.address}")
        balance = await store.get_balance()
        print(f"[wallet] balance={balance} winston ({balance / WINSTON_PER_AR:.6f} AR)")

        for size in sizes:
            fee = await store.get_fee(size)
            print(f"[fee] {humanfriendly.format_size(size, binary=True)}: {fee} winston")

    if balance < min_balance:
        print(f"[wallet] balance below threshold {min_balance} winston")
        return False

    print("[wallet] balance ok")
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="Report the storage wallet balance and upload fees.")
    parser.add_argument(
        "--size",
        action="append",
        dest="sizes",
        help="Payload size to price, e.g. '5 MiB'. Repeatable.",
    )
    parser.add_argument(
        "--min-balance",
        type=int,
        default=config.MIN_WALLET_BALANCE_WINSTON,
        help="Exit with status 1 when the balance (winston) is below this value.",
    )
    args = parser.parse_args()

    sizes = [humanfriendly.parse_size(s) for s in (args.sizes or REFERENCE_SIZES)]
    ok = asyncio.run(check_balance(sizes, args.min_balance))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
