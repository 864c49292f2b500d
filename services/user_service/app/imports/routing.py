"""Size-based choice between inline and queued imports."""

from enum import Enum

DEFAULT_SYNC_THRESHOLD_BYTES = 5 * 1024 * 1024


class ImportPath(str, Enum):
    """Execution path for a validated upload."""

    SYNC = "sync"
    ASYNC = "async"


def select_import_path(
    size_bytes: int,
    threshold_bytes: int = DEFAULT_SYNC_THRESHOLD_BYTES,
) -> ImportPath:
    """Files strictly larger than the threshold import inline; the rest are queued."""
    if size_bytes > threshold_bytes:
        return ImportPath.SYNC
    return ImportPath.ASYNC
