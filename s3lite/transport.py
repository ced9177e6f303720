"""
HTTP transport on top of a pooled requests session.

execute() returns the raw (body, status, headers) triple; download() streams
a response body to disk. Neither looks at the status code: translating error
responses is the client's job.
"""

import json
import logging
import os
import tempfile
import time
from typing import Callable, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from urllib3.util.retry import Retry

from .errors import DownloadError, NetworkError
from .request_builder import RequestDescriptor

log = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024  # 64KB chunks for streaming downloads

ProgressCallback = Callable[[int, Optional[int]], None]
Response = Tuple[bytes, int, CaseInsensitiveDict]


def create_session(max_retries: int = 3, pool_size: int = 20) -> requests.Session:
    """Create a requests session with retry logic and connection pooling"""
    session = requests.Session()
    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "PUT", "POST", "DELETE"],
        raise_on_status=False
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=10,
        pool_maxsize=pool_size
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def encode_resume_data(url: str, partial_path: str, offset: int, etag: Optional[str]) -> bytes:
    return json.dumps({'url': url, 'partial': partial_path, 'offset': offset, 'etag': etag}).encode('utf-8')


def decode_resume_data(resume_data: bytes) -> dict:
    try:
        state = json.loads(resume_data.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise DownloadError("Resume data is not usable", underlying_error=e) from e
    if not isinstance(state, dict) or 'partial' not in state or 'offset' not in state:
        raise DownloadError("Resume data is not usable")
    return state


class HTTPTransport:
    def __init__(self, max_retries: int = 3, timeout: float = 30, verify: bool = True,
                 session: Optional[requests.Session] = None):
        self.session = session or create_session(max_retries=max_retries)
        self.timeout = timeout
        self.verify = verify

    def _send(self, request: RequestDescriptor, stream: bool = False,
              extra_headers: Optional[dict] = None) -> requests.Response:
        headers = dict(request.headers)
        if extra_headers:
            headers.update(extra_headers)
        req = requests.Request(method=request.method, url=request.url, headers=headers,
                               data=request.body or None)
        prep = self.session.prepare_request(req)
        # requests re-quotes the URL; keep the exact path and query that were signed
        prep.url = request.url
        return self.session.send(prep, verify=self.verify, timeout=self.timeout, stream=stream)

    def execute(self, request: RequestDescriptor) -> Response:
        start_time = time.time()
        try:
            resp = self._send(request)
            body = resp.content
        except requests.RequestException as e:
            raise NetworkError(f"{request.method} {request.url} failed: {e}", e) from e
        log.debug(f"{request.method} {request.url} -> {resp.status_code} "
                  f"({len(body)} bytes, {time.time() - start_time:.3f}s)")
        return body, resp.status_code, resp.headers

    def download(
        self,
        request: RequestDescriptor,
        destination: str,
        resume_data: Optional[bytes] = None,
        progress: Optional[ProgressCallback] = None
    ) -> Tuple[str, int, CaseInsensitiveDict]:
        """
        Stream the response body into destination.

        The body is written to "<destination>.part" and renamed once complete.
        For status >= 400 the body goes to a temporary file instead and that
        path is returned, so the caller can read the error document; the
        destination is left alone.
        """
        partial_path = destination + '.part'
        offset = 0
        extra_headers = {}
        if resume_data is not None:
            state = decode_resume_data(resume_data)
            partial_path = state['partial']
            offset = int(state['offset'])
            extra_headers['Range'] = f"bytes={offset}-"
            if state.get('etag'):
                extra_headers['If-Match'] = state['etag']

        try:
            resp = self._send(request, stream=True, extra_headers=extra_headers)
        except requests.RequestException as e:
            raise DownloadError(f"GET {request.url} failed: {e}", resume_data, e) from e

        with resp:
            if resp.status_code >= 400:
                fd, error_path = tempfile.mkstemp(prefix='s3lite-error-')
                with os.fdopen(fd, 'wb') as f:
                    f.write(resp.content)
                return error_path, resp.status_code, resp.headers

            if resp.status_code != 206:
                offset = 0
            length = resp.headers.get('Content-Length')
            total = offset + int(length) if length is not None else None
            written = offset
            etag = resp.headers.get('ETag')

            try:
                with open(partial_path, 'ab' if offset else 'wb') as f:
                    for chunk in resp.iter_content(chunk_size=STREAM_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
                        if progress:
                            progress(written, total)
            except requests.RequestException as e:
                resume = encode_resume_data(request.url, partial_path, written, etag) if written else None
                raise DownloadError(f"Download of {request.url} interrupted after {written} bytes",
                                    resume, e) from e

        os.replace(partial_path, destination)
        log.debug(f"Downloaded {written} bytes to {destination}")
        return destination, resp.status_code, resp.headers
