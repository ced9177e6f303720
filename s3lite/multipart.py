"""
Concurrent multipart upload of a local file.

Once an upload id exists the session ends in exactly one of two ways:
complete_multipart_upload on success, or a single best-effort
abort_multipart_upload on any failure. The abort discards every part stored
under the upload id, so failed sessions never track parts individually.
"""

import logging
import os
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from itertools import islice
from typing import Dict, Iterator, List, Optional

from tqdm import tqdm

from .client import S3Client
from .errors import MultipartError
from .models import CompletedPart

log = logging.getLogger(__name__)

MIN_CHUNK_SIZE = 5 * 1024 * 1024  # S3 rejects smaller non-final parts
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024
DEFAULT_MAX_PARALLEL = 4


@dataclass(frozen=True)
class ChunkInfo:
    part_number: int
    offset: int
    length: int


def calculate_chunks(file_size: int, chunk_size: int) -> List[ChunkInfo]:
    """Split [0, file_size) into contiguous chunks numbered from 1"""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must not be negative, got {file_size}")

    chunks = []
    offset = 0
    part_number = 1
    while offset < file_size:
        length = min(chunk_size, file_size - offset)
        chunks.append(ChunkInfo(part_number, offset, length))
        offset += length
        part_number += 1
    return chunks


def read_chunk(file_path: str, chunk: ChunkInfo) -> bytes:
    """Read one chunk through its own file handle"""
    with open(file_path, 'rb') as f:
        f.seek(chunk.offset)
        data = f.read(chunk.length)
    if len(data) != chunk.length:
        raise MultipartError(
            f"Failed to read part {chunk.part_number} from {file_path}: "
            f"expected {chunk.length} bytes at offset {chunk.offset}, got {len(data)}"
        )
    return data


class MultipartUploader:
    def __init__(self, client: S3Client, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 max_parallel: int = DEFAULT_MAX_PARALLEL, progress: bool = False):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be at least 1, got {max_parallel}")
        if chunk_size < MIN_CHUNK_SIZE:
            log.warning(f"Chunk size {chunk_size} is below the 5 MiB S3 minimum for non-final parts")
        self.client = client
        self.chunk_size = chunk_size
        self.max_parallel = max_parallel
        self.progress = progress

    def upload(self, bucket: str, key: str, file_path: str, file_size: Optional[int] = None,
               content_type: Optional[str] = None) -> str:
        """Upload file_path to bucket/key and return the final ETag"""
        if file_size is None:
            file_size = os.path.getsize(file_path)

        upload = self.client.create_multipart_upload(bucket, key, content_type=content_type)
        upload_id = upload.upload_id
        log.info(f"Started multipart upload of {file_path} to {bucket}/{key} (uploadId={upload_id})")

        try:
            parts = self._upload_parts(bucket, key, upload_id, file_path, file_size)
            log.info(f"Completing multipart upload with {len(parts)} parts")
            etag = self.client.complete_multipart_upload(bucket, key, upload_id, parts)
        except BaseException:
            self._abort(bucket, key, upload_id)
            raise

        log.info(f"Multipart upload of {bucket}/{key} completed")
        return etag

    def _abort(self, bucket: str, key: str, upload_id: str) -> None:
        log.info(f"Aborting multipart upload {upload_id}")
        try:
            self.client.abort_multipart_upload(bucket, key, upload_id)
        except Exception as e:
            log.warning(f"Abort of multipart upload {upload_id} failed: {e}")

    def _upload_chunk(self, bucket: str, key: str, upload_id: str, file_path: str,
                      chunk: ChunkInfo) -> CompletedPart:
        data = read_chunk(file_path, chunk)
        part = self.client.upload_part(bucket, key, upload_id, chunk.part_number, data)
        log.debug(f"Uploaded part {chunk.part_number} ({chunk.length} bytes)")
        return part

    def _upload_parts(self, bucket: str, key: str, upload_id: str, file_path: str,
                      file_size: int) -> List[CompletedPart]:
        chunks = calculate_chunks(file_size, self.chunk_size)
        pending: Iterator[ChunkInfo] = iter(chunks)
        completed: List[CompletedPart] = []
        in_flight: Dict[Future, ChunkInfo] = {}
        progress_bar = tqdm(total=len(chunks), desc="Uploading parts", unit="part") if self.progress else None

        executor = ThreadPoolExecutor(max_workers=self.max_parallel)

        def admit(chunk: ChunkInfo) -> None:
            future = executor.submit(self._upload_chunk, bucket, key, upload_id, file_path, chunk)
            in_flight[future] = chunk

        try:
            for chunk in islice(pending, self.max_parallel):
                admit(chunk)

            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    chunk = in_flight.pop(future)
                    try:
                        completed.append(future.result())
                    except Exception as e:
                        log.error(f"Part {chunk.part_number} failed: {e}")
                        raise
                    if progress_bar:
                        progress_bar.update(1)
                    next_chunk = next(pending, None)
                    if next_chunk is not None:
                        admit(next_chunk)
        finally:
            # Queued work is dropped; parts already on the wire finish and are discarded
            executor.shutdown(wait=True, cancel_futures=True)
            if progress_bar:
                progress_bar.close()

        return completed
