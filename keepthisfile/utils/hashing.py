import base64
import hashlib


def sha256_bytes(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def b64url_to_int(value: str) -> int:
    return int.from_bytes(b64url_decode(value), "big")


def int_to_b64url(value: int) -> str:
    return b64url_encode(value.to_bytes((value.bit_length() + 7) // 8, "big"))
