import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from keepthisfile.errors import BlobStoreError, InsufficientBalance, SignedUploadRejected
from keepthisfile.utils.hashing import b64url_decode, b64url_encode, b64url_to_int, sha256_bytes

logger = logging.getLogger(__name__)

Tags = List[Tuple[str, str]]


@dataclass
class StoredBlob:
    content_id: str
    canonical_url: str


class Wallet:
    """RSA wallet loaded from its JWK form."""

    def __init__(self, jwk: Dict[str, str]):
        try:
            public_numbers = rsa.RSAPublicNumbers(e=b64url_to_int(jwk["e"]), n=b64url_to_int(jwk["n"]))
            private_numbers = rsa.RSAPrivateNumbers(
                p=b64url_to_int(jwk["p"]),
                q=b64url_to_int(jwk["q"]),
                d=b64url_to_int(jwk["d"]),
                dmp1=b64url_to_int(jwk["dp"]),
                dmq1=b64url_to_int(jwk["dq"]),
                iqmp=b64url_to_int(jwk["qi"]),
                public_numbers=public_numbers,
            )
        except KeyError as e:
            raise ValueError(f"Wallet key is missing JWK field {e}") from e

        self._key = private_numbers.private_key()
        self.owner = jwk["n"]
        self.address = b64url_encode(sha256_bytes(b64url_decode(jwk["n"])))

    def sign(self, message: bytes) -> bytes:
        return self._key.sign(
            message,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=32),
            hashes.SHA256(),
        )


def _sha256_signing_digest(fields: List[bytes], tags: Tags) -> bytes:
    """
    Nested SHA-256 digest over the transaction fields and tags.

    This is not the network's SHA-384 deep-hash, so a live gateway will not
    accept the signature.
    """
    tag_digest = sha256_bytes(b"".join(
        sha256_bytes(name.encode()) + sha256_bytes(value.encode()) for name, value in tags
    ))
    return sha256_bytes(b"".join(sha256_bytes(field) for field in fields) + tag_digest)


class BlobStore:
    """
    Permanent storage client.

    Payloads up to `sponsored_max_bytes` go to the sponsored bundler first and
    fall back to the wallet-funded gateway path on any failure. Larger payloads
    go straight to the wallet-funded path. A signed payload is never resubmitted.

    Both paths post the same simplified JSON envelope signed with
    `_sha256_signing_digest`. Bundler data items, chunked data roots and the
    deep-hash signature format are not implemented.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        wallet: Wallet,
        gateway_url: str,
        sponsored_url: str,
        sponsored_max_bytes: int,
        app_name: str = "ArweaveVault",
        upload_timeout: float = 120.0,
    ):
        self.http = http
        self.wallet = wallet
        self.gateway_url = gateway_url.rstrip("/")
        self.sponsored_url = sponsored_url.rstrip("/")
        self.sponsored_max_bytes = sponsored_max_bytes
        self.app_name = app_name
        self.upload_timeout = upload_timeout

    def canonical_url(self, content_id: str) -> str:
        return f"{self.gateway_url}/{content_id}"

    async def upload(self, data: bytes, content_type: str, file_name: str) -> StoredBlob:
        tags: Tags = [
            ("Content-Type", content_type),
            ("App-Name", self.app_name),
            ("Original-Filename", file_name),
        ]

        if len(data) <= self.sponsored_max_bytes:
            try:
                content_id = await self._upload_sponsored(data, tags)
                logger.info(f"Sponsored upload of {len(data)} bytes stored as {content_id}")
                return StoredBlob(content_id=content_id, canonical_url=self.canonical_url(content_id))
            except Exception as e:
                logger.warning(f"Sponsored upload failed, falling back to wallet path: {e}")

        content_id = await self._upload_self_funded(data, tags)
        logger.info(f"Wallet-funded upload of {len(data)} bytes stored as {content_id}")
        return StoredBlob(content_id=content_id, canonical_url=self.canonical_url(content_id))

    async def _get_text(self, url: str) -> str:
        try:
            response = await self.http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Storage gateway request failed: {url}") from e
        return response.text.strip()

    async def _get_int(self, url: str) -> int:
        text = await self._get_text(url)
        try:
            return int(text)
        except ValueError as e:
            raise BlobStoreError(f"Unexpected storage gateway response from {url}: {text!r}") from e

    async def get_fee(self, size_bytes: int) -> int:
        return await self._get_int(f"{self.gateway_url}/price/{size_bytes}")

    async def get_balance(self) -> int:
        return await self._get_int(f"{self.gateway_url}/wallet/{self.wallet.address}/balance")

    async def exists(self, content_id: str) -> bool:
        try:
            response = await self.http.get(f"{self.gateway_url}/tx/{content_id}/status")
        except httpx.HTTPError as e:
            raise BlobStoreError("Storage gateway status request failed.") from e

        # 202 means accepted but not yet confirmed.
        if response.status_code in (200, 202):
            return True
        if response.status_code == 404:
            return False
        raise BlobStoreError(f"Unexpected storage status response: {response.status_code}")

    def _build_transaction(self, data: bytes, tags: Tags, reward: int, anchor: str) -> Dict:
        data_root = sha256_bytes(data)
        fields = [
            b"2",
            b64url_decode(self.wallet.owner),
            b"",
            b"0",
            str(reward).encode(),
            b64url_decode(anchor) if anchor else b"",
            str(len(data)).encode(),
            data_root,
        ]
        signature = self.wallet.sign(_sha256_signing_digest(fields, tags))

        return {
            "format": 2,
            "id": b64url_encode(sha256_bytes(signature)),
            "last_tx": anchor,
            "owner": self.wallet.owner,
            "tags": [
                {"name": b64url_encode(name.encode()), "value": b64url_encode(value.encode())}
                for name, value in tags
            ],
            "target": "",
            "quantity": "0",
            "data": b64url_encode(data),
            "data_size": str(len(data)),
            "data_root": b64url_encode(data_root),
            "reward": str(reward),
            "signature": b64url_encode(signature),
        }

    async def _upload_sponsored(self, data: bytes, tags: Tags) -> str:
        tx = self._build_transaction(data, tags, reward=0, anchor="")
        response = await self.http.post(f"{self.sponsored_url}/tx", json=tx, timeout=self.upload_timeout)
        response.raise_for_status()
        return response.json().get("id") or tx["id"]

    async def _upload_self_funded(self, data: bytes, tags: Tags) -> str:
        fee = await self.get_fee(len(data))
        balance = await self.get_balance()
        if balance < fee:
            logger.error(f"Wallet {self.wallet.address} balance {balance} below fee {fee} for {len(data)} bytes")
            raise InsufficientBalance(balance=balance, fee=fee)

        anchor = await self._get_text(f"{self.gateway_url}/tx_anchor")
        tx = self._build_transaction(data, tags, reward=fee, anchor=anchor)

        try:
            response = await self.http.post(f"{self.gateway_url}/tx", json=tx, timeout=self.upload_timeout)
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Posting transaction {tx['id']} failed.") from e

        if 400 <= response.status_code < 500:
            logger.error(f"Gateway rejected signed transaction {tx['id']}: {response.status_code} {response.text}")
            raise SignedUploadRejected(f"Storage gateway rejected transaction {tx['id']}: {response.text}")
        if response.status_code not in (200, 202, 208):
            raise BlobStoreError(f"Posting transaction {tx['id']} failed with status {response.status_code}.")

        return tx["id"]
