"""Human, JSON and TSV renderings of listings and errors."""

import datetime
import json
from typing import List, Optional

from .errors import APIError, S3Error
from .models import Bucket, ListObjectsResult

FORMATS = ('human', 'json', 'tsv')


def format_bytes(size: int) -> str:
    """Format bytes to human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} PB"


def _iso(moment: Optional[datetime.datetime]) -> str:
    return moment.strftime('%Y-%m-%dT%H:%M:%SZ') if moment else ''


def format_buckets(buckets: List[Bucket], fmt: str) -> str:
    if fmt == 'json':
        return json.dumps([
            {'name': b.name, 'creationDate': _iso(b.creation_date) or None, 'region': b.region}
            for b in buckets
        ], indent=2)
    if fmt == 'tsv':
        return '\n'.join(f"{b.name}\t{_iso(b.creation_date)}" for b in buckets)
    return '\n'.join(f"{_iso(b.creation_date):20}  {b.name}/" for b in buckets)


def format_objects(listing: ListObjectsResult, fmt: str) -> str:
    if fmt == 'json':
        return json.dumps({
            'prefixes': listing.common_prefixes,
            'objects': [
                {'key': o.key, 'size': o.size, 'lastModified': _iso(o.last_modified) or None,
                 'etag': o.etag, 'storageClass': o.storage_class}
                for o in listing.objects
            ],
            'isTruncated': listing.is_truncated,
        }, indent=2)
    if fmt == 'tsv':
        lines = [f"{p}\t\t" for p in listing.common_prefixes]
        lines += [f"{o.key}\t{o.size if o.size is not None else ''}\t{_iso(o.last_modified)}"
                  for o in listing.objects]
        return '\n'.join(lines)

    lines = [f"{'':20}  {'DIR':>12}  {p}" for p in listing.common_prefixes]
    for o in listing.objects:
        size = format_bytes(o.size) if o.size is not None else '-'
        lines.append(f"{_iso(o.last_modified):20}  {size:>12}  {o.key}")
    return '\n'.join(lines)


def format_error(error: Exception, verbose: bool = False) -> str:
    message = error.message if isinstance(error, S3Error) else str(error)
    lines = [f"Error: {message}"]
    if verbose and isinstance(error, APIError):
        lines.append(f"  Code: {error.code.value}")
        if error.resource:
            lines.append(f"  Resource: {error.resource}")
        if error.request_id:
            lines.append(f"  Request ID: {error.request_id}")
    return '\n'.join(lines)
