"""
GenerationCheckpoint - Durable, resumable progress for the generation stage.

The checkpoint is the only consumer of worker events and the only writer
of generation_progress.json.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .checkpoint_io import read_json, write_json_atomic
from .errors import CheckpointIOError
from .run_stats import GenerationStats
from .worker_pool import ItemFailed, ItemRendered, WorkerDone, WorkerEvent

PERSIST_INTERVAL = 10
LOG_INTERVAL = 100


def _now() -> str:
    return datetime.now().isoformat()


@dataclass
class GenerationProgress:
    """
    Snapshot of one generation run.

    Attributes:
        start_index: First index of the run
        current_index: Highest index rendered so far
        end_index: Last index of the run
        total_to_generate: Items in the run
        generated: Items rendered so far
        errors: [{'index': ..., 'error': ...}] for failed items
        start_time: ISO timestamp
        last_update_time: ISO timestamp
        format: Output image format
        batch_size: Batch width used for the output layout
        completed: True once every worker finished
    """
    start_index: int
    current_index: int
    end_index: int
    total_to_generate: int
    generated: int = 0
    errors: List[Dict] = field(default_factory=list)
    start_time: str = field(default_factory=_now)
    last_update_time: str = field(default_factory=_now)
    format: str = 'png'
    batch_size: int = 0
    completed: bool = False

    @classmethod
    def begin(cls, start_index: int, end_index: int, image_format: str, batch_size: int) -> 'GenerationProgress':
        """Initial snapshot for a run over [start_index, end_index]."""
        return cls(
            start_index=start_index,
            current_index=start_index - 1,
            end_index=end_index,
            total_to_generate=max(0, end_index - start_index + 1),
            format=image_format,
            batch_size=batch_size,
        )

    def to_dict(self) -> dict:
        """Convert to the on-disk JSON schema."""
        return {
            'startIndex': self.start_index,
            'currentIndex': self.current_index,
            'endIndex': self.end_index,
            'totalToGenerate': self.total_to_generate,
            'generated': self.generated,
            'errors': list(self.errors),
            'startTime': self.start_time,
            'lastUpdateTime': self.last_update_time,
            'format': self.format,
            'batchSize': self.batch_size,
            'completed': self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GenerationProgress':
        """Create from the on-disk JSON schema."""
        return cls(
            start_index=int(data['startIndex']),
            current_index=int(data['currentIndex']),
            end_index=int(data['endIndex']),
            total_to_generate=int(data.get('totalToGenerate', 0)),
            generated=int(data.get('generated', 0)),
            errors=list(data.get('errors', [])),
            start_time=data.get('startTime') or _now(),
            last_update_time=data.get('lastUpdateTime') or _now(),
            format=data.get('format', 'png'),
            batch_size=int(data.get('batchSize', 0)),
            completed=bool(data.get('completed', False)),
        )

    @classmethod
    def load(cls, path, logger: Optional[logging.Logger] = None) -> Optional['GenerationProgress']:
        """Load a snapshot, or None if absent or unreadable."""
        log = logger or logging.getLogger(__name__)
        data = read_json(path, log)
        if data is None:
            return None
        try:
            return cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            log.warning(f"Ignoring malformed generation progress {path}: {e}")
            return None

    def persist(self, path) -> None:
        """Write the snapshot atomically."""
        write_json_atomic(path, self.to_dict())


class GenerationCheckpoint:
    """
    Applies worker events to GenerationProgress and persists it.
    """

    def __init__(
        self,
        path,
        progress: GenerationProgress,
        persist_interval: int = PERSIST_INTERVAL,
        log_interval: int = LOG_INTERVAL,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize checkpoint.

        Args:
            path: Location of generation_progress.json
            progress: Snapshot to mutate (usually GenerationProgress.begin(...))
            persist_interval: Persist every N rendered items
            log_interval: Log a progress line every N rendered items
            logger: Optional logger instance
        """
        self.path = Path(path)
        self.progress = progress
        self.persist_interval = persist_interval
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(__name__)
        self.stats = GenerationStats(total_to_process=progress.total_to_generate)

    @staticmethod
    def resolve_start(
        path,
        force_regenerate: bool = False,
        default_start: int = 1,
        logger: Optional[logging.Logger] = None
    ) -> int:
        """
        Decide where a new run begins.

        - force_regenerate: discard the snapshot, start at 1
        - snapshot marked completed: treat as stale, start at 1
        - unfinished snapshot: resume at current_index + 1
        - no snapshot (or unreadable): start at default_start
        """
        log = logger or logging.getLogger(__name__)
        path = Path(path)

        if force_regenerate:
            if path.exists():
                try:
                    os.remove(path)
                    log.info("Force regenerate: removed existing progress file")
                except OSError as e:
                    log.warning(f"Could not remove progress file {path}: {e}")
            return 1

        progress = GenerationProgress.load(path, log)
        if progress is None:
            log.info("No progress file found, starting from the beginning")
            return default_start

        if progress.completed:
            log.info("Previous generation already completed, starting from the beginning")
            return 1

        resume_index = progress.current_index + 1
        log.info(f"Resuming image generation from item #{resume_index}")
        return resume_index

    def handle(self, event: WorkerEvent) -> None:
        """Apply one worker event."""
        if isinstance(event, ItemRendered):
            self._on_rendered(event)
        elif isinstance(event, ItemFailed):
            self._on_failed(event)
        elif isinstance(event, WorkerDone):
            self.logger.debug(f"Worker {event.worker_id} finished ({event.processed} items)")

    def _on_rendered(self, event: ItemRendered) -> None:
        progress = self.progress
        progress.generated += 1
        progress.last_update_time = _now()
        self.stats.rendered += 1
        self.stats.bytes_generated += event.size

        progress.current_index = max(progress.current_index, event.index)

        is_last = progress.generated >= progress.total_to_generate
        if progress.generated % self.persist_interval == 0 or is_last:
            self.persist()

        if progress.generated % self.log_interval == 0 or is_last:
            percent = progress.generated / progress.total_to_generate * 100 if progress.total_to_generate else 100.0
            self.logger.info(
                f"Progress: {progress.generated}/{progress.total_to_generate} ({percent:.2f}%)"
            )

    def _on_failed(self, event: ItemFailed) -> None:
        self.progress.errors.append({'index': event.index, 'error': event.error})
        self.progress.last_update_time = _now()
        self.stats.errors += 1
        self.stats.error_details.append(f"#{event.index}: {event.error}")
        self.persist()

    def finish(self) -> GenerationProgress:
        """Mark the run completed and persist unconditionally."""
        self.progress.completed = True
        self.progress.last_update_time = _now()
        self.persist()
        return self.progress

    def persist(self) -> None:
        """Persist the snapshot; a write failure is logged, not raised."""
        try:
            self.progress.persist(self.path)
        except CheckpointIOError as e:
            self.logger.error(f"Failed to save generation progress: {e}")
