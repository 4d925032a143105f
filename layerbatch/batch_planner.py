"""
BatchPlanner - Deterministic mapping from item index to batch key and paths.

Both stages recompute the same layout independently from (index, batch_size),
so generation and transfer agree on directories without sharing state.
"""

import math
import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

BATCH_KEY_PATTERN = re.compile(r'^(\d+)-(\d+)$')

# End value of the single batch used when batch_size is 0
UNBOUNDED_END = 0

GENERATION_PROGRESS_FILE = 'generation_progress.json'
UPLOAD_PROGRESS_FILE = 'drive_upload_progress.json'
METADATA_FILE = 'metadata.json'


def compute_batch(index: int, batch_size: int) -> str:
    """
    Return the batch key "<start>-<end>" containing a 1-based index.

    Args:
        index: 1-based item index
        batch_size: Width of every batch; 0 means a single unbounded batch

    Returns:
        Batch key, e.g. compute_batch(23, 10) == "21-30"
    """
    if index < 1:
        raise ValueError(f"Item index must be >= 1, got {index}")
    if batch_size <= 0:
        return f"1-{UNBOUNDED_END}"
    start = ((index - 1) // batch_size) * batch_size + 1
    end = start + batch_size - 1
    return f"{start}-{end}"


def is_batch_key(name: str) -> bool:
    """Check whether a directory name looks like a batch key."""
    return BATCH_KEY_PATTERN.match(name) is not None


def batch_bounds(key: str) -> Tuple[int, Optional[int]]:
    """
    Parse a batch key into (start, end).

    End is None for the unbounded batch.
    """
    match = BATCH_KEY_PATTERN.match(key)
    if not match:
        raise ValueError(f"Not a batch key: {key!r}")
    start, end = int(match.group(1)), int(match.group(2))
    return start, (None if end == UNBOUNDED_END else end)


def iter_batch_keys(start_index: int, end_index: int, batch_size: int) -> Iterator[str]:
    """Yield each batch key covering [start_index, end_index] once, ascending."""
    if end_index < start_index:
        return
    if batch_size <= 0:
        yield compute_batch(start_index, batch_size)
        return
    index = start_index
    while index <= end_index:
        key = compute_batch(index, batch_size)
        yield key
        _, end = batch_bounds(key)
        index = end + 1


def partition_range(start: int, end: int, num_workers: int) -> List[Tuple[int, int]]:
    """
    Split [start, end] into contiguous, non-overlapping sub-ranges.

    Each range holds ceil(size / num_workers) indices; trailing workers
    that would receive nothing are dropped.

    Returns:
        List of inclusive (lo, hi) pairs
    """
    size = end - start + 1
    if size <= 0:
        return []
    workers = max(1, num_workers)
    per_worker = math.ceil(size / workers)

    ranges = []
    for i in range(workers):
        lo = start + i * per_worker
        if lo > end:
            break
        hi = min(lo + per_worker - 1, end)
        ranges.append((lo, hi))
    return ranges


def batch_sort_key(key: str) -> Tuple[int, int]:
    """Numeric sort key for batch keys ("2-3" before "11-20")."""
    start, end = batch_bounds(key)
    return start, end or 0


class BatchLayout:
    """
    Local output layout rooted at an output directory.

    <root>/<batchKey>/img/<index>.<ext>
    <root>/<batchKey>/metadata/metadata.json
    <root>/generation_progress.json
    <root>/drive_upload_progress.json
    """

    def __init__(self, root, batch_size: int):
        self.root = Path(root)
        self.batch_size = batch_size

    def batch_key(self, index: int) -> str:
        return compute_batch(index, self.batch_size)

    def batch_dir(self, key: str) -> Path:
        return self.root / key

    def image_dir(self, key: str) -> Path:
        return self.batch_dir(key) / 'img'

    def metadata_path(self, key: str) -> Path:
        return self.batch_dir(key) / 'metadata' / METADATA_FILE

    def image_path(self, index: int, extension: str) -> Path:
        """Output path for a rendered item."""
        return self.image_dir(self.batch_key(index)) / f"{index}.{extension}"

    @property
    def generation_progress_path(self) -> Path:
        return self.root / GENERATION_PROGRESS_FILE

    @property
    def upload_progress_path(self) -> Path:
        return self.root / UPLOAD_PROGRESS_FILE

    def list_batch_keys(self) -> List[str]:
        """List existing batch directories under root, sorted ascending."""
        if not self.root.is_dir():
            return []
        keys = [
            entry.name for entry in self.root.iterdir()
            if entry.is_dir() and is_batch_key(entry.name)
        ]
        return sorted(keys, key=batch_sort_key)
