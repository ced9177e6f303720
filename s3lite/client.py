"""S3 verb surface: build, sign, send, translate."""

import datetime
import email.utils
import logging
import os
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from xml.sax.saxutils import escape

from .config import S3Configuration
from .crypto import sha256_hexdigest
from .errors import APIError, APIErrorCode
from .models import (
    CompletedPart, ListBucketsResult, ListMultipartUploadsResult, ListObjectsResult,
    ListPartsResult, MultipartUpload, ObjectMetadata,
)
from .request_builder import RequestBuilder, RequestDescriptor, uri_encode
from .signer import SigV4Signer
from .transport import HTTPTransport, ProgressCallback
from . import xml_parser

log = logging.getLogger(__name__)

META_PREFIX = 'x-amz-meta-'

# Error codes used when the service sends a status without an <Error> body
_STATUS_CODES = {
    403: APIErrorCode.ACCESS_DENIED,
    404: APIErrorCode.NOT_FOUND,
    412: APIErrorCode.PRECONDITION_FAILED,
}

_REASONS = {
    400: 'Bad Request',
    403: 'Forbidden',
    404: 'Not Found',
    409: 'Conflict',
    412: 'Precondition Failed',
    500: 'Internal Server Error',
    503: 'Service Unavailable',
}


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def create_bucket_configuration_xml(region: str) -> bytes:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<CreateBucketConfiguration xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
        f'<LocationConstraint>{escape(region)}</LocationConstraint>'
        '</CreateBucketConfiguration>'
    ).encode('utf-8')


def complete_multipart_upload_xml(parts: Iterable[CompletedPart]) -> bytes:
    """Completion body; parts are always listed in ascending part number order"""
    xml = '<?xml version="1.0" encoding="UTF-8"?>\n<CompleteMultipartUpload>'
    for part in sorted(parts, key=lambda p: p.part_number):
        xml += f"<Part><PartNumber>{part.part_number}</PartNumber><ETag>{escape(part.etag)}</ETag></Part>"
    xml += "</CompleteMultipartUpload>"
    return xml.encode('utf-8')


def parse_http_date(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    try:
        return email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def parse_object_metadata(headers: Mapping[str, str]) -> ObjectMetadata:
    try:
        content_length = int(headers.get('Content-Length', '0'))
    except ValueError:
        content_length = 0

    metadata = {}
    for name, value in headers.items():
        if name.lower().startswith(META_PREFIX):
            metadata[name[len(META_PREFIX):]] = value

    return ObjectMetadata(
        content_length=content_length,
        content_type=headers.get('Content-Type'),
        etag=headers.get('ETag'),
        last_modified=parse_http_date(headers.get('Last-Modified')),
        version_id=headers.get('x-amz-version-id'),
        metadata=metadata
    )


def _range_header(byte_range: Tuple[int, int]) -> str:
    start, end = byte_range
    if start < 0 or end <= start:
        raise ValueError(f"Invalid byte range: {byte_range}")
    return f"bytes={start}-{end - 1}"


class S3Client:
    """
    Client for an S3-compatible service.

    Every verb builds a request, signs it with the configured credentials and
    hands it to the transport. Responses with status >= 400 are raised as
    APIError; a body that cannot be parsed raises ParsingError.
    """

    def __init__(self, configuration: S3Configuration, transport: Optional[HTTPTransport] = None,
                 clock: Optional[Callable[[], datetime.datetime]] = None):
        self.configuration = configuration
        self.transport = transport or HTTPTransport()
        self.clock = clock or utc_now
        self.signer = SigV4Signer(configuration.credentials)
        self.request_builder = RequestBuilder(configuration)

    # Private helpers

    def _sign(self, request: RequestDescriptor) -> RequestDescriptor:
        payload_hash = sha256_hexdigest(request.body or b'')
        return self.signer.sign(request, self.clock(), payload_hash)

    def _raise_for_status(self, body: bytes, status: int) -> None:
        if status < 400:
            return
        if body.strip():
            error = xml_parser.parse_error(body)
        else:
            # HEAD responses and some servers' 404s carry no <Error> document
            code = _STATUS_CODES.get(status) or APIErrorCode(f"HTTP{status}")
            error = APIError(code, _REASONS.get(status, f"HTTP status {status}"))
        error.status_code = status
        raise error

    def _execute(self, method: str, bucket: Optional[str] = None, key: Optional[str] = None,
                 query: Optional[List[Tuple[str, Optional[str]]]] = None,
                 headers: Optional[Dict[str, str]] = None, body: Optional[bytes] = None):
        request = self.request_builder.build(method, bucket, key, query, headers, body)
        self._sign(request)
        data, status, response_headers = self.transport.execute(request)
        self._raise_for_status(data, status)
        return data, response_headers

    # Bucket operations

    def list_buckets(self, prefix: Optional[str] = None, max_buckets: Optional[int] = None,
                     continuation_token: Optional[str] = None) -> ListBucketsResult:
        query = []
        if prefix is not None:
            query.append(('prefix', prefix))
        if max_buckets is not None:
            query.append(('max-buckets', str(max_buckets)))
        if continuation_token is not None:
            query.append(('continuation-token', continuation_token))

        data, _ = self._execute('GET', query=query)
        return xml_parser.parse_list_buckets(data)

    def create_bucket(self, name: str, region: Optional[str] = None) -> None:
        body = None
        headers = None
        if region and region != self.configuration.region:
            body = create_bucket_configuration_xml(region)
            headers = {'Content-Type': 'application/xml'}
        self._execute('PUT', bucket=name, headers=headers, body=body)
        log.info(f"Created bucket {name}")

    def delete_bucket(self, name: str) -> None:
        self._execute('DELETE', bucket=name)
        log.info(f"Deleted bucket {name}")

    # Object operations

    def list_objects(self, bucket: str, prefix: Optional[str] = None, delimiter: Optional[str] = None,
                     max_keys: Optional[int] = None,
                     continuation_token: Optional[str] = None) -> ListObjectsResult:
        query = [('list-type', '2')]
        if prefix is not None:
            query.append(('prefix', prefix))
        if delimiter is not None:
            query.append(('delimiter', delimiter))
        if max_keys is not None:
            query.append(('max-keys', str(max_keys)))
        if continuation_token is not None:
            query.append(('continuation-token', continuation_token))

        data, _ = self._execute('GET', bucket=bucket, query=query)
        return xml_parser.parse_list_objects(data)

    def get_object(self, bucket: str, key: str,
                   byte_range: Optional[Tuple[int, int]] = None) -> Tuple[bytes, ObjectMetadata]:
        """
        Fetch an object into memory.

        byte_range is a half-open (start, end) pair like a slice; it becomes
        "Range: bytes=start-(end-1)". Without it the whole object is returned.
        """
        headers = {'Range': _range_header(byte_range)} if byte_range is not None else None
        data, response_headers = self._execute('GET', bucket=bucket, key=key, headers=headers)
        return data, parse_object_metadata(response_headers)

    def download_object(self, bucket: str, key: str, destination: str,
                        byte_range: Optional[Tuple[int, int]] = None,
                        resume_data: Optional[bytes] = None,
                        progress: Optional[ProgressCallback] = None) -> Tuple[str, ObjectMetadata]:
        """Stream an object to a local file. Raises DownloadError when interrupted."""
        headers = {'Range': _range_header(byte_range)} if byte_range is not None else None
        request = self.request_builder.build('GET', bucket, key, headers=headers)
        self._sign(request)

        path, status, response_headers = self.transport.download(request, destination, resume_data, progress)
        if status >= 400:
            try:
                with open(path, 'rb') as f:
                    body = f.read()
            finally:
                os.remove(path)
            self._raise_for_status(body, status)
        return path, parse_object_metadata(response_headers)

    def put_object(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None,
                   metadata: Optional[Mapping[str, str]] = None) -> str:
        headers = {'Content-Length': str(len(data))}
        if content_type:
            headers['Content-Type'] = content_type
        for name, value in (metadata or {}).items():
            headers[META_PREFIX + name] = value

        _, response_headers = self._execute('PUT', bucket=bucket, key=key, headers=headers, body=data)
        return response_headers.get('ETag', '')

    def delete_object(self, bucket: str, key: str) -> None:
        self._execute('DELETE', bucket=bucket, key=key)

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        _, response_headers = self._execute('HEAD', bucket=bucket, key=key)
        return parse_object_metadata(response_headers)

    def object_exists(self, bucket: str, key: str) -> bool:
        try:
            self.head_object(bucket, key)
        except APIError as e:
            if e.is_not_found:
                return False
            raise
        return True

    def copy_object(self, source_bucket: str, source_key: str,
                    destination_bucket: str, destination_key: str) -> str:
        headers = {'x-amz-copy-source': '/' + uri_encode(f"{source_bucket}/{source_key}")}
        _, response_headers = self._execute('PUT', bucket=destination_bucket, key=destination_key,
                                            headers=headers)
        return response_headers.get('ETag', '')

    # Multipart upload operations

    def create_multipart_upload(self, bucket: str, key: str, content_type: Optional[str] = None,
                                metadata: Optional[Mapping[str, str]] = None) -> MultipartUpload:
        headers = {}
        if content_type:
            headers['Content-Type'] = content_type
        for name, value in (metadata or {}).items():
            headers[META_PREFIX + name] = value

        data, _ = self._execute('POST', bucket=bucket, key=key, query=[('uploads', None)],
                                headers=headers or None)
        return xml_parser.parse_initiate_multipart_upload(data)

    def upload_part(self, bucket: str, key: str, upload_id: str, part_number: int,
                    data: bytes) -> CompletedPart:
        query = [('partNumber', str(part_number)), ('uploadId', upload_id)]
        _, response_headers = self._execute('PUT', bucket=bucket, key=key, query=query,
                                            headers={'Content-Length': str(len(data))}, body=data)
        return CompletedPart(part_number, response_headers.get('ETag', ''))

    def complete_multipart_upload(self, bucket: str, key: str, upload_id: str,
                                  parts: Iterable[CompletedPart]) -> str:
        body = complete_multipart_upload_xml(parts)
        _, response_headers = self._execute('POST', bucket=bucket, key=key,
                                            query=[('uploadId', upload_id)],
                                            headers={'Content-Type': 'application/xml'}, body=body)
        return response_headers.get('ETag', '')

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self._execute('DELETE', bucket=bucket, key=key, query=[('uploadId', upload_id)])

    def list_multipart_uploads(self, bucket: str, prefix: Optional[str] = None,
                               max_uploads: Optional[int] = None) -> ListMultipartUploadsResult:
        query = [('uploads', None)]
        if prefix is not None:
            query.append(('prefix', prefix))
        if max_uploads is not None:
            query.append(('max-uploads', str(max_uploads)))

        data, _ = self._execute('GET', bucket=bucket, query=query)
        return xml_parser.parse_list_multipart_uploads(data)

    def list_parts(self, bucket: str, key: str, upload_id: str, max_parts: Optional[int] = None,
                   part_number_marker: Optional[int] = None) -> ListPartsResult:
        query = [('uploadId', upload_id)]
        if max_parts is not None:
            query.append(('max-parts', str(max_parts)))
        if part_number_marker is not None:
            query.append(('part-number-marker', str(part_number_marker)))

        data, _ = self._execute('GET', bucket=bucket, key=key, query=query)
        return xml_parser.parse_list_parts(data)
