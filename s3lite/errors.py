"""Exception hierarchy for s3lite.

Every error raised by the library derives from S3Error so callers can catch
one type. The subclasses tell apart "the service said no" (APIError) from
"we could not understand the answer" (ParsingError) and from transport
failures (NetworkError, DownloadError).
"""

from enum import Enum
from typing import Optional


class S3Error(Exception):
    """Base class for all s3lite errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidEndpoint(S3Error):
    """The endpoint or the URL composed from it is unusable"""
    pass


class NetworkError(S3Error):
    """Connection, DNS or TLS level failure"""

    def __init__(self, message: str, underlying_error: Optional[BaseException] = None):
        super().__init__(message)
        self.underlying_error = underlying_error


class ParsingError(S3Error):
    """Malformed or incomplete XML response body"""

    def __init__(self, message: str, response_body: Optional[str] = None):
        super().__init__(message)
        self.response_body = response_body


class DownloadError(S3Error):
    """Interrupted transfer. resume_data, when present, restarts it."""

    def __init__(self, message: str, resume_data: Optional[bytes] = None,
                 underlying_error: Optional[BaseException] = None):
        super().__init__(message)
        self.resume_data = resume_data
        self.underlying_error = underlying_error


class MultipartError(S3Error):
    """Local failure while preparing a part for upload"""
    pass


class APIErrorCode(str, Enum):
    """
    Error code reported in an S3 <Error> document.

    Looking up a code the service invented after this list was written does not
    fail: APIErrorCode("SlowDown") returns an UNKNOWN member carrying the raw
    string, so new service codes never break parsing.
    """

    ACCESS_DENIED = "AccessDenied"
    BUCKET_ALREADY_EXISTS = "BucketAlreadyExists"
    BUCKET_ALREADY_OWNED_BY_YOU = "BucketAlreadyOwnedByYou"
    BUCKET_NOT_EMPTY = "BucketNotEmpty"
    INVALID_BUCKET_NAME = "InvalidBucketName"
    NO_SUCH_BUCKET = "NoSuchBucket"
    NO_SUCH_KEY = "NoSuchKey"
    NO_SUCH_UPLOAD = "NoSuchUpload"
    NOT_FOUND = "NotFound"
    PRECONDITION_FAILED = "PreconditionFailed"
    INVALID_REQUEST = "InvalidRequest"
    INVALID_PART = "InvalidPart"
    INVALID_PART_ORDER = "InvalidPartOrder"
    ENTITY_TOO_SMALL = "EntityTooSmall"
    SIGNATURE_DOES_NOT_MATCH = "SignatureDoesNotMatch"
    INVALID_ACCESS_KEY_ID = "InvalidAccessKeyId"

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        code = str.__new__(cls, value)
        code._name_ = "UNKNOWN"
        code._value_ = value
        return code

    @property
    def known(self) -> bool:
        return self._value_ in type(self)._value2member_map_

    def __str__(self):
        return self.value


class APIError(S3Error):
    """The service answered with a structured <Error> document"""

    def __init__(self, code: APIErrorCode, message: str, resource: Optional[str] = None,
                 request_id: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.resource = resource
        self.request_id = request_id
        self.status_code = status_code

    def __str__(self):
        return f"{self.code.value}: {self.message}"

    @property
    def is_not_found(self) -> bool:
        return self.code in (APIErrorCode.NO_SUCH_KEY, APIErrorCode.NOT_FOUND)


class ProfileError(S3Error):
    """A named profile or the config file cannot be resolved"""
    pass
