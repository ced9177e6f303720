"""
AWS Signature Version 4 for S3.

canonical_request() is a pure function; SigV4Signer wraps it with the key
derivation and the header mutation. The output has to byte-match AWS's
algorithm or the service rejects the signature.
"""

import datetime
import logging
import re
from typing import Iterable, Optional, Tuple

from .config import Credentials
from .crypto import (
    EMPTY_PAYLOAD_HASH, SCOPE_TERMINATOR, get_signature_key, hmac_sha256_hex, sha256_hexdigest,
)
from .request_builder import RequestDescriptor, uri_encode

log = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'

__all__ = ['ALGORITHM', 'EMPTY_PAYLOAD_HASH', 'SigV4Signer', 'canonical_request']


def canonical_request(
    method: str,
    path: str,
    query_pairs: Iterable[Tuple[str, Optional[str]]],
    header_pairs: Iterable[Tuple[str, str]],
    payload_hash: str
) -> str:
    """Build the SigV4 canonical request string"""
    canonical_uri = path or '/'

    encoded_query = sorted(
        (uri_encode(name, safe='~'), uri_encode(value or '', safe='~'))
        for name, value in query_pairs
    )
    canonical_query = '&'.join(f"{name}={value}" for name, value in encoded_query)

    header_list = []
    for hdr_name, hdr_val in header_pairs:
        lower_name = hdr_name.lower().strip()
        cleaned_val = re.sub(r'\s+', ' ', str(hdr_val).strip())
        header_list.append((lower_name, cleaned_val))
    header_list.sort(key=lambda x: x[0])

    canonical_headers = ''.join(f"{name}:{val}\n" for name, val in header_list)
    signed_headers = ';'.join(name for name, _ in header_list)

    return (
        f"{method}\n"
        f"{canonical_uri}\n"
        f"{canonical_query}\n"
        f"{canonical_headers}\n"
        f"{signed_headers}\n"
        f"{payload_hash}"
    )


def _utc(moment: datetime.datetime) -> datetime.datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc)


class SigV4Signer:
    def __init__(self, credentials: Credentials):
        self.credentials = credentials

    @staticmethod
    def date_stamp(moment: datetime.datetime) -> str:
        moment = _utc(moment)
        return f"{moment.year:04d}{moment.month:02d}{moment.day:02d}"

    @staticmethod
    def amz_date(moment: datetime.datetime) -> str:
        moment = _utc(moment)
        return (f"{moment.year:04d}{moment.month:02d}{moment.day:02d}"
                f"T{moment.hour:02d}{moment.minute:02d}{moment.second:02d}Z")

    def credential_scope(self, moment: datetime.datetime) -> str:
        creds = self.credentials
        return f"{self.date_stamp(moment)}/{creds.region}/{creds.service}/{SCOPE_TERMINATOR}"

    def canonical_request(self, request: RequestDescriptor, payload_hash: str) -> str:
        return canonical_request(
            request.method,
            request.path,
            request.query,
            request.headers.items(),
            payload_hash
        )

    def string_to_sign(self, canonical_request_hash: str, moment: datetime.datetime) -> str:
        return (
            f"{ALGORITHM}\n"
            f"{self.amz_date(moment)}\n"
            f"{self.credential_scope(moment)}\n"
            f"{canonical_request_hash}"
        )

    def signing_key(self, moment: datetime.datetime) -> bytes:
        return get_signature_key(
            self.credentials.secret_access_key,
            self.date_stamp(moment),
            self.credentials.region,
            self.credentials.service
        )

    def sign(self, request: RequestDescriptor, moment: datetime.datetime,
             payload_hash: str = EMPTY_PAYLOAD_HASH) -> RequestDescriptor:
        """Add x-amz-date, x-amz-content-sha256 and Authorization to request.headers"""
        request.headers['x-amz-date'] = self.amz_date(moment)
        request.headers['x-amz-content-sha256'] = payload_hash
        request.headers.pop('Authorization', None)

        creq = self.canonical_request(request, payload_hash)
        log.debug("CanonicalRequest:\n%s", creq)

        string_to_sign = self.string_to_sign(sha256_hexdigest(creq.encode('utf-8')), moment)
        log.debug("StringToSign:\n%s", string_to_sign)

        signature = hmac_sha256_hex(self.signing_key(moment), string_to_sign)
        signed_headers = ';'.join(sorted(name.lower().strip() for name in request.headers))

        request.headers['Authorization'] = (
            f"{ALGORITHM} Credential={self.credentials.access_key_id}/{self.credential_scope(moment)}, "
            f"SignedHeaders={signed_headers}, "
            f"Signature={signature}"
        )
        return request
