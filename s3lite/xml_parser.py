"""
Streaming parsers for S3 XML response bodies.

Each parser consumes ElementTree pull events and keeps a stack of open
element names. Leaf text is routed by (element name, immediate parent)
because names like Name, ETag, Size and Prefix appear in several contexts.
Repeating records (Bucket, Contents, Upload, Part) get fresh scratch fields
when they open and are appended when they close, but only if their required
fields were seen; incomplete records are dropped.

The public parse_* functions build a new parser per call.
"""

import datetime
import xml.etree.ElementTree as ET
from typing import Iterable, List, Optional, Union

from .errors import APIError, APIErrorCode, ParsingError
from .models import (
    Bucket, ListBucketsResult, ListMultipartUploadsResult, ListObjectsResult,
    ListPartsResult, MultipartUpload, Owner, Part, S3Object,
)

FEED_SIZE = 8192

XMLSource = Union[bytes, Iterable[bytes]]


def local_name(tag: str) -> str:
    """Strip the {namespace} prefix ElementTree puts on tag names"""
    return tag.rsplit('}', 1)[-1]


def parse_iso8601(text: str) -> Optional[datetime.datetime]:
    """Fractional-second ISO-8601 first, then whole seconds; None if neither fits"""
    for fmt in ('%Y-%m-%dT%H:%M:%S.%f%z', '%Y-%m-%dT%H:%M:%S%z'):
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_bool(text: str) -> bool:
    return text.lower() == 'true'


def parse_int(text: str) -> Optional[int]:
    try:
        return int(text)
    except ValueError:
        return None


def _chunks(source: XMLSource) -> Iterable[bytes]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for offset in range(0, len(data), FEED_SIZE):
            yield data[offset:offset + FEED_SIZE]
    elif isinstance(source, str):
        yield from _chunks(source.encode('utf-8'))
    else:
        yield from source


class StreamingParser:
    """Drives an XMLPullParser and dispatches start/end callbacks"""

    document = 'XML'

    def __init__(self):
        self.stack: List[str] = []

    def start(self, name: str) -> None:
        pass

    def end(self, name: str, parent: str, text: str) -> None:
        pass

    def ancestor(self, depth: int) -> str:
        """Name of the element `depth` levels above the one currently closing"""
        index = len(self.stack) - 1 - depth
        return self.stack[index] if index >= 0 else ''

    def parse(self, source: XMLSource):
        seen = []
        pull = ET.XMLPullParser(events=('start', 'end'))
        try:
            for chunk in _chunks(source):
                seen.append(chunk)
                pull.feed(chunk)
                self._drain(pull)
            pull.close()
            self._drain(pull)
        except ET.ParseError as e:
            raise ParsingError(f"Failed to parse {self.document} XML: {e}",
                               _decode(b''.join(seen))) from e
        return self.result(b''.join(seen))

    def result(self, raw: bytes):
        raise NotImplementedError

    def _drain(self, pull: ET.XMLPullParser) -> None:
        for event, elem in pull.read_events():
            name = local_name(elem.tag)
            if event == 'start':
                self.stack.append(name)
                self.start(name)
                continue
            self.end(name, self.ancestor(1), (elem.text or '').strip())
            self.stack.pop()
            elem.clear()


def _decode(raw: bytes) -> str:
    return raw.decode('utf-8', errors='replace')


class ErrorParser(StreamingParser):
    document = 'Error'
    fields = ('Code', 'Message', 'Resource', 'RequestId')

    def __init__(self):
        super().__init__()
        self.values = {}

    def end(self, name, parent, text):
        if parent == 'Error' and name in self.fields and text:
            self.values[name] = text

    def result(self, raw):
        if 'Code' not in self.values or 'Message' not in self.values:
            raise ParsingError("Missing required error fields", _decode(raw))
        return APIError(
            code=APIErrorCode(self.values['Code']),
            message=self.values['Message'],
            resource=self.values.get('Resource'),
            request_id=self.values.get('RequestId')
        )


class ListBucketsParser(StreamingParser):
    document = 'ListBuckets'

    def __init__(self):
        super().__init__()
        self.buckets: List[Bucket] = []
        self.owner_id = None
        self.owner_display_name = None
        self.continuation_token = None
        self._reset()

    def _reset(self):
        self.bucket_name = None
        self.bucket_creation_date = None
        self.bucket_region = None

    def start(self, name):
        if name == 'Bucket':
            self._reset()

    def end(self, name, parent, text):
        if parent == 'Bucket':
            if name == 'Name':
                self.bucket_name = text
            elif name == 'CreationDate':
                self.bucket_creation_date = parse_iso8601(text)
            elif name == 'BucketRegion':
                self.bucket_region = text
        elif parent == 'Owner':
            if name == 'ID':
                self.owner_id = text
            elif name == 'DisplayName':
                self.owner_display_name = text
        elif name == 'Bucket':
            if self.bucket_name:
                self.buckets.append(Bucket(self.bucket_name, self.bucket_creation_date, self.bucket_region))
        elif name == 'ContinuationToken':
            self.continuation_token = text or None

    def result(self, raw):
        owner = Owner(self.owner_id, self.owner_display_name) if self.owner_id else None
        return ListBucketsResult(self.buckets, owner, self.continuation_token)


class ListObjectsParser(StreamingParser):
    document = 'ListObjects'

    def __init__(self):
        super().__init__()
        self.name = None
        self.prefix = None
        self.delimiter = None
        self.is_truncated = False
        self.continuation_token = None
        self.key_count = None
        self.objects: List[S3Object] = []
        self.common_prefixes: List[str] = []
        self._reset()

    def _reset(self):
        self.key = None
        self.last_modified = None
        self.etag = None
        self.size = None
        self.storage_class = None
        self.owner_id = None
        self.owner_display_name = None

    def start(self, name):
        if name == 'Contents':
            self._reset()

    def end(self, name, parent, text):
        if parent == 'ListBucketResult':
            if name == 'Name':
                self.name = text
            elif name == 'Prefix':
                self.prefix = text or None
            elif name == 'Delimiter':
                self.delimiter = text or None
            elif name == 'IsTruncated':
                self.is_truncated = parse_bool(text)
            elif name == 'NextContinuationToken':
                self.continuation_token = text or None
            elif name == 'KeyCount':
                self.key_count = parse_int(text)
            elif name == 'Contents' and self.key:
                owner = Owner(self.owner_id, self.owner_display_name) if self.owner_id else None
                self.objects.append(S3Object(self.key, self.last_modified, self.etag,
                                             self.size, self.storage_class, owner))
        elif parent == 'Contents':
            if name == 'Key':
                self.key = text
            elif name == 'LastModified':
                self.last_modified = parse_iso8601(text)
            elif name == 'ETag':
                self.etag = text
            elif name == 'Size':
                self.size = parse_int(text)
            elif name == 'StorageClass':
                self.storage_class = text
        elif parent == 'Owner' and self.ancestor(2) == 'Contents':
            if name == 'ID':
                self.owner_id = text
            elif name == 'DisplayName':
                self.owner_display_name = text
        elif parent == 'CommonPrefixes' and name == 'Prefix':
            self.common_prefixes.append(text)

    def result(self, raw):
        return ListObjectsResult(
            name=self.name or '',
            objects=self.objects,
            common_prefixes=self.common_prefixes,
            prefix=self.prefix,
            delimiter=self.delimiter,
            is_truncated=self.is_truncated,
            continuation_token=self.continuation_token,
            key_count=self.key_count
        )


class InitiateMultipartUploadParser(StreamingParser):
    document = 'InitiateMultipartUpload'

    def __init__(self):
        super().__init__()
        self.values = {}

    def end(self, name, parent, text):
        if parent == 'InitiateMultipartUploadResult' and text:
            self.values[name] = text

    def result(self, raw):
        if 'UploadId' not in self.values or 'Key' not in self.values:
            raise ParsingError("Missing required fields", _decode(raw))
        return MultipartUpload(self.values['UploadId'], self.values['Key'])


class ListMultipartUploadsParser(StreamingParser):
    document = 'ListMultipartUploads'

    def __init__(self):
        super().__init__()
        self.uploads: List[MultipartUpload] = []
        self.is_truncated = False
        self.next_key_marker = None
        self.next_upload_id_marker = None
        self._reset()

    def _reset(self):
        self.key = None
        self.upload_id = None
        self.initiated = None

    def start(self, name):
        if name == 'Upload':
            self._reset()

    def end(self, name, parent, text):
        if parent == 'Upload':
            if name == 'Key':
                self.key = text
            elif name == 'UploadId':
                self.upload_id = text
            elif name == 'Initiated':
                self.initiated = parse_iso8601(text)
        elif name == 'Upload':
            if self.key and self.upload_id:
                self.uploads.append(MultipartUpload(self.upload_id, self.key, self.initiated))
        elif name == 'IsTruncated':
            self.is_truncated = parse_bool(text)
        elif name == 'NextKeyMarker':
            self.next_key_marker = text or None
        elif name == 'NextUploadIdMarker':
            self.next_upload_id_marker = text or None

    def result(self, raw):
        return ListMultipartUploadsResult(self.uploads, self.is_truncated,
                                          self.next_key_marker, self.next_upload_id_marker)


class ListPartsParser(StreamingParser):
    document = 'ListParts'

    def __init__(self):
        super().__init__()
        self.parts: List[Part] = []
        self.is_truncated = False
        self.next_part_number_marker = None
        self._reset()

    def _reset(self):
        self.part_number = None
        self.etag = None
        self.size = None
        self.last_modified = None

    def start(self, name):
        if name == 'Part':
            self._reset()

    def end(self, name, parent, text):
        if parent == 'Part':
            if name == 'PartNumber':
                self.part_number = parse_int(text)
            elif name == 'ETag':
                self.etag = text
            elif name == 'Size':
                self.size = parse_int(text)
            elif name == 'LastModified':
                self.last_modified = parse_iso8601(text)
        elif name == 'Part':
            if self.part_number is not None and self.etag:
                self.parts.append(Part(self.part_number, self.etag, self.size, self.last_modified))
        elif name == 'IsTruncated':
            self.is_truncated = parse_bool(text)
        elif name == 'NextPartNumberMarker':
            self.next_part_number_marker = parse_int(text)

    def result(self, raw):
        return ListPartsResult(self.parts, self.is_truncated, self.next_part_number_marker)


def parse_error(source: XMLSource) -> APIError:
    """Parse an <Error> document. Returns the APIError; raises ParsingError."""
    return ErrorParser().parse(source)


def parse_list_buckets(source: XMLSource) -> ListBucketsResult:
    return ListBucketsParser().parse(source)


def parse_list_objects(source: XMLSource) -> ListObjectsResult:
    return ListObjectsParser().parse(source)


def parse_initiate_multipart_upload(source: XMLSource) -> MultipartUpload:
    return InitiateMultipartUploadParser().parse(source)


def parse_list_multipart_uploads(source: XMLSource) -> ListMultipartUploadsResult:
    return ListMultipartUploadsParser().parse(source)


def parse_list_parts(source: XMLSource) -> ListPartsResult:
    return ListPartsParser().parse(source)
