"""Turn {bucket, key, query} into a concrete request for the configured endpoint."""

import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

from requests.structures import CaseInsensitiveDict

from .config import S3Configuration
from .errors import InvalidEndpoint

QueryPairs = List[Tuple[str, Optional[str]]]

_HOST_LABEL = re.compile(r'^[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?$')
_DNS_BUCKET = re.compile(r'^[a-z0-9]([a-z0-9.-]{1,61})[a-z0-9]$')
_IP_ADDRESS = re.compile(r'^\d{1,3}(\.\d{1,3}){3}$')


def uri_encode(value: str, safe: str = '/~') -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set (plus `safe`)"""
    return quote(value, safe=safe)


def is_valid_hostname(host: str) -> bool:
    if not host or len(host) > 253:
        return False
    return all(_HOST_LABEL.match(label) for label in host.split('.'))


def is_dns_compatible_bucket(name: str) -> bool:
    """True when the bucket can be used as a subdomain (virtual-hosted addressing)"""
    if not _DNS_BUCKET.match(name):
        return False
    if '..' in name or _IP_ADDRESS.match(name):
        return False
    return is_valid_hostname(name)


@dataclass
class RequestDescriptor:
    method: str
    scheme: str
    host: str
    port: Optional[int]
    path: str
    query: QueryPairs = field(default_factory=list)
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: Optional[bytes] = None

    @property
    def host_with_port(self) -> str:
        return self.host if self.port is None else f"{self.host}:{self.port}"

    @property
    def query_string(self) -> str:
        parts = []
        for name, value in self.query:
            if value is None:
                parts.append(uri_encode(name, safe='~'))
            else:
                parts.append(f"{uri_encode(name, safe='~')}={uri_encode(value, safe='~')}")
        return '&'.join(parts)

    @property
    def url(self) -> str:
        url = f"{self.scheme}://{self.host_with_port}{self.path}"
        query_string = self.query_string
        if query_string:
            url += f"?{query_string}"
        return url


class RequestBuilder:
    """Maps S3 addressing onto URLs; knows nothing about signing"""

    def __init__(self, configuration: S3Configuration):
        self.configuration = configuration

    def build(
        self,
        method: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        query: Optional[Sequence[Tuple[str, Optional[str]]]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None
    ) -> RequestDescriptor:
        config = self.configuration

        if config.use_path_style:
            host = config.host
            path = ''
            if bucket is not None:
                path += '/' + uri_encode(bucket)
            if key is not None:
                path += '/' + uri_encode(key)
            path = path or '/'
        else:
            if bucket is not None and not is_dns_compatible_bucket(bucket):
                raise InvalidEndpoint(f"Bucket '{bucket}' cannot be used as a hostname; use path-style addressing")
            host = f"{bucket}.{config.host}" if bucket is not None else config.host
            path = '/' + uri_encode(key) if key is not None else '/'

        if not is_valid_hostname(host):
            raise InvalidEndpoint(f"Cannot build a URL with host '{host}'")

        request = RequestDescriptor(
            method=method,
            scheme=config.scheme,
            host=host,
            port=config.port,
            path=path,
            query=list(query or []),
            body=body
        )
        request.headers['Host'] = request.host_with_port
        for name, value in (headers or {}).items():
            request.headers[name] = value
        return request
