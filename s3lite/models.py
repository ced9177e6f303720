"""Read-only records produced from service responses."""

import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Owner:
    id: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Bucket:
    name: str
    creation_date: Optional[datetime.datetime] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class S3Object:
    key: str
    last_modified: Optional[datetime.datetime] = None
    etag: Optional[str] = None
    size: Optional[int] = None
    storage_class: Optional[str] = None
    owner: Optional[Owner] = None


@dataclass(frozen=True)
class Part:
    part_number: int
    etag: str
    size: Optional[int] = None
    last_modified: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class CompletedPart:
    part_number: int
    etag: str


@dataclass(frozen=True)
class MultipartUpload:
    upload_id: str
    key: str
    initiated: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class ObjectMetadata:
    content_length: int
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime.datetime] = None
    version_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ListBucketsResult:
    buckets: List[Bucket]
    owner: Optional[Owner] = None
    continuation_token: Optional[str] = None


@dataclass(frozen=True)
class ListObjectsResult:
    name: str
    objects: List[S3Object]
    common_prefixes: List[str]
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    is_truncated: bool = False
    continuation_token: Optional[str] = None
    key_count: Optional[int] = None


@dataclass(frozen=True)
class ListMultipartUploadsResult:
    uploads: List[MultipartUpload]
    is_truncated: bool = False
    next_key_marker: Optional[str] = None
    next_upload_id_marker: Optional[str] = None


@dataclass(frozen=True)
class ListPartsResult:
    parts: List[Part]
    is_truncated: bool = False
    next_part_number_marker: Optional[int] = None
