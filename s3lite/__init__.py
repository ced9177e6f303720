"""
s3lite: a small client for S3-compatible object storage.

- SigV4 request signing (signer)
- Streaming XML response parsing (xml_parser)
- Concurrent multipart uploads with abort-on-failure (multipart)
"""

from .client import S3Client
from .config import Credentials, S3Configuration
from .errors import (
    APIError, APIErrorCode, DownloadError, InvalidEndpoint, MultipartError,
    NetworkError, ParsingError, ProfileError, S3Error,
)
from .models import (
    Bucket, CompletedPart, ListBucketsResult, ListMultipartUploadsResult,
    ListObjectsResult, ListPartsResult, MultipartUpload, ObjectMetadata,
    Owner, Part, S3Object,
)
from .multipart import ChunkInfo, MultipartUploader, calculate_chunks
from .transport import HTTPTransport

__version__ = '0.1.0'
