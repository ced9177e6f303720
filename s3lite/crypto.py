"""Hash and HMAC primitives behind SigV4."""

import hashlib
import hmac
from typing import Union

# SHA-256 of zero bytes, the payload hash of every body-less request
EMPTY_PAYLOAD_HASH = 'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'

SCOPE_TERMINATOR = 'aws4_request'


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode('utf-8') if isinstance(value, str) else value


def sha256_hexdigest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, msg: Union[str, bytes]) -> bytes:
    return hmac.new(key, _to_bytes(msg), hashlib.sha256).digest()


def hmac_sha256_hex(key: bytes, msg: Union[str, bytes]) -> str:
    return hmac.new(key, _to_bytes(msg), hashlib.sha256).hexdigest()


def get_signature_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """
    Derive the SigV4 signing key.

    HMAC chain: "AWS4" + secret -> date -> region -> service -> "aws4_request".
    The key is only valid for the given day, region and service.
    """
    key = _to_bytes('AWS4' + secret_key)
    for part in (date_stamp, region, service, SCOPE_TERMINATOR):
        key = hmac_sha256(key, part)
    return key
