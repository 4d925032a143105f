"""
Run statistics - Counters and rates for the generation and transfer stages.
"""

import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class GenerationStats:
    """
    Statistics for a generation run.

    Attributes:
        total_to_process: Items in the requested range
        rendered: Successfully rendered
        errors: Failed to render
        bytes_generated: Total bytes written
        start_time: Start timestamp
        error_details: List of error messages
    """
    total_to_process: int = 0
    rendered: int = 0
    errors: int = 0
    bytes_generated: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    @property
    def rate_per_minute(self) -> float:
        """Rendering rate in items per minute."""
        if self.elapsed_seconds > 0:
            return self.rendered / self.elapsed_seconds * 60
        return 0.0


@dataclass
class TransferStats:
    """
    Statistics for an upload run.

    Attributes:
        uploaded: Files uploaded this run
        failed: Files that failed this run
        skipped_files: Files skipped because they were already uploaded
        skipped_batches: Batches skipped as fully uploaded
        bytes_uploaded: Total bytes sent
        start_time: Start timestamp
        error_details: List of error messages
    """
    uploaded: int = 0
    failed: int = 0
    skipped_files: int = 0
    skipped_batches: int = 0
    bytes_uploaded: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time
