"""Connection settings: credentials, endpoint and addressing style."""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from .errors import InvalidEndpoint


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)
    region: str
    service: str = 's3'


@dataclass(frozen=True)
class S3Configuration:
    """
    Everything the client needs to reach one S3-compatible service.

    The endpoint is validated here so a bad URL fails once at construction
    instead of on every request.
    """
    credentials: Credentials
    endpoint: str
    use_path_style: bool = False

    def __post_init__(self):
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ('http', 'https'):
            raise InvalidEndpoint(f"Endpoint must use http or https: {self.endpoint}")
        if not parsed.hostname:
            raise InvalidEndpoint(f"Endpoint has no host: {self.endpoint}")
        try:
            parsed.port
        except ValueError as e:
            raise InvalidEndpoint(f"Endpoint has an invalid port: {self.endpoint}") from e

    @property
    def region(self) -> str:
        return self.credentials.region

    @property
    def scheme(self) -> str:
        return urlparse(self.endpoint).scheme

    @property
    def host(self) -> str:
        return urlparse(self.endpoint).hostname

    @property
    def port(self) -> Optional[int]:
        return urlparse(self.endpoint).port

    @classmethod
    def create(cls, access_key_id: str, secret_access_key: str, region: str,
               endpoint: str, use_path_style: bool = False) -> "S3Configuration":
        return cls(Credentials(access_key_id, secret_access_key, region), endpoint, use_path_style)

    @classmethod
    def aws(cls, access_key_id: str, secret_access_key: str, region: str) -> "S3Configuration":
        return cls.create(access_key_id, secret_access_key, region,
                          f"https://s3.{region}.amazonaws.com", use_path_style=False)

    @classmethod
    def backblaze(cls, access_key_id: str, secret_access_key: str, region: str) -> "S3Configuration":
        return cls.create(access_key_id, secret_access_key, region,
                          f"https://s3.{region}.backblazeb2.com", use_path_style=True)

    @classmethod
    def cloudflare(cls, access_key_id: str, secret_access_key: str, account_id: str) -> "S3Configuration":
        return cls.create(access_key_id, secret_access_key, 'auto',
                          f"https://{account_id}.r2.cloudflarestorage.com", use_path_style=True)

    @classmethod
    def gcs(cls, access_key_id: str, secret_access_key: str) -> "S3Configuration":
        return cls.create(access_key_id, secret_access_key, 'auto',
                          "https://storage.googleapis.com", use_path_style=True)
