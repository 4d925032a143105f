"""
TransferEngine - Uploads every rendered batch, skipping work already done.

Batches are processed one at a time in ascending key order. Within a batch,
files go up in windows of `concurrent_uploads`; a window is fully settled
and the checkpoint persisted before the next one starts. Only this engine,
on its own thread, mutates the UploadProgress.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .batch_planner import BatchLayout
from .drive_client import DriveClient
from .errors import AuthError, CheckpointIOError, TransferError
from .retry_policy import RetryPolicy
from .run_stats import TransferStats
from .upload_checkpoint import UploadProgress
from .upload_session import ChunkedUploadSession, DEFAULT_CHUNK_SIZE

RASTER_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.webp'}


@dataclass
class UploadOutcome:
    """Result of uploading one file."""
    path: Path
    size: int
    remote_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class TransferEngine:
    """
    Drives ChunkedUploadSession over every batch directory under a root.
    """

    def __init__(
        self,
        client: DriveClient,
        layout: BatchLayout,
        parent_folder_id: str,
        progress_path=None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        concurrent_uploads: int = 3,
        delete_local_after_upload: bool = False,
        retry_policy: Optional[RetryPolicy] = None,
        window_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        session_factory=ChunkedUploadSession,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize transfer engine.

        Args:
            client: Remote API client
            layout: Local output layout
            parent_folder_id: Remote folder receiving one sub-folder per batch
            progress_path: Upload checkpoint (default: layout.upload_progress_path)
            chunk_size: Bytes per chunk PUT
            concurrent_uploads: Files uploaded simultaneously
            delete_local_after_upload: Remove each local file once uploaded
            retry_policy: Backoff policy for remote calls
            window_delay: Seconds to pause between upload windows
            sleep: Sleep function (injectable for tests)
            session_factory: Builds the per-file upload session
            logger: Optional logger instance
        """
        self.client = client
        self.layout = layout
        self.parent_folder_id = parent_folder_id
        self.progress_path = Path(progress_path) if progress_path else layout.upload_progress_path
        self.chunk_size = chunk_size
        self.concurrent_uploads = max(1, concurrent_uploads)
        self.delete_local_after_upload = delete_local_after_upload
        self.retry_policy = retry_policy or RetryPolicy()
        self.window_delay = window_delay
        self.sleep = sleep
        self.session_factory = session_factory
        self.logger = logger or logging.getLogger(__name__)

        self.progress = UploadProgress()
        self.stats = TransferStats()

    def upload_all(self) -> TransferStats:
        """
        Upload every batch directory under the output root.

        Raises:
            FileNotFoundError: If the output root does not exist
            AuthError: If no access token can be obtained
        """
        if not self.layout.root.is_dir():
            raise FileNotFoundError(f"Output directory not found: {self.layout.root}")

        self.stats = TransferStats()
        self.progress = UploadProgress.load(self.progress_path, self.logger)

        batch_keys = self.layout.list_batch_keys()
        if not batch_keys:
            self.logger.info("No batch directories found")
            return self.stats

        self.logger.info(f"Found {len(batch_keys)} batch directories")
        # Fail the whole stage early if credentials are unusable
        self.client.tokens.get_token()

        for key in batch_keys:
            self.upload_batch(key)

        self._persist()
        self.logger.info(
            f"Upload complete: {self.stats.uploaded} uploaded, {self.stats.failed} failed, "
            f"{self.stats.skipped_files} already uploaded, "
            f"{self.stats.skipped_batches} batches skipped "
            f"({self.stats.elapsed_seconds:.1f}s)"
        )
        return self.stats

    def upload_batch(self, key: str) -> None:
        """Upload the files of one batch that have not been uploaded yet."""
        if self.progress.last_batch_uploaded == key:
            self.logger.info(f"Batch {key} already uploaded, skipping")
            self.stats.skipped_batches += 1
            return

        files = self.list_images(key)
        if not files:
            self.logger.info(f"No images found in batch {key}, skipping")
            return

        pending = [path for path in files if not self.progress.is_uploaded(path.name)]
        self.stats.skipped_files += len(files) - len(pending)

        if pending:
            self.logger.info(f"Batch {key}: uploading {len(pending)} of {len(files)} files")
            folder_id = self._resolve_folder(key, pending)
            if folder_id is not None:
                self._upload_windows(key, pending, folder_id)

        self._check_batch_complete(key)
        self._persist()

    def list_images(self, key: str) -> List[Path]:
        """Raster files currently present in a batch's image directory."""
        image_dir = self.layout.image_dir(key)
        if not image_dir.is_dir():
            return []
        return sorted(
            path for path in image_dir.iterdir()
            if path.is_file() and path.suffix.lower() in RASTER_EXTENSIONS
        )

    def _resolve_folder(self, key: str, pending: List[Path]) -> Optional[str]:
        try:
            return self.client.ensure_folder(key, self.parent_folder_id)
        except (TransferError, AuthError) as e:
            self.logger.error(f"Could not resolve remote folder for batch {key}: {e}")
            for path in pending:
                self._apply(UploadOutcome(path=path, size=0, error=str(e)))
            return None

    def _upload_windows(self, key: str, pending: List[Path], folder_id: str) -> None:
        window = self.concurrent_uploads
        with ThreadPoolExecutor(max_workers=window, thread_name_prefix=f"upload-{key}") as executor:
            for start in range(0, len(pending), window):
                futures = [
                    executor.submit(self._upload_file, path, folder_id)
                    for path in pending[start:start + window]
                ]
                # Settle the whole window before touching the checkpoint
                outcomes = [future.result() for future in futures]
                for outcome in outcomes:
                    self._apply(outcome)

                self._check_batch_complete(key)
                self._persist()

                if start + window < len(pending) and self.window_delay > 0:
                    self.sleep(self.window_delay)

    def _upload_file(self, path: Path, folder_id: str) -> UploadOutcome:
        """Upload one file; runs on a pool thread and never raises for transfer errors."""
        attempts = self.progress.failed_uploads.get(path.name, {}).get('attempts')
        if attempts:
            self.logger.info(f"Retrying previously failed file {path.name} (attempts: {attempts})")

        try:
            size = path.stat().st_size
            session = self.session_factory(
                self.client,
                str(path),
                folder_id,
                chunk_size=self.chunk_size,
                retry_policy=self.retry_policy,
                logger=self.logger,
            )
            remote_id = session.upload()
        except (TransferError, AuthError, OSError) as e:
            return UploadOutcome(path=path, size=0, error=str(e))

        return UploadOutcome(path=path, size=size, remote_id=remote_id)

    def _apply(self, outcome: UploadOutcome) -> None:
        name = outcome.path.name
        if not outcome.success:
            attempts = self.progress.record_failure(name, str(outcome.path), outcome.error)
            self.stats.failed += 1
            self.stats.error_details.append(f"{name}: {outcome.error}")
            self.logger.error(f"Failed to upload {name} (attempt {attempts}): {outcome.error}")
            return

        self.progress.record_success(name, outcome.remote_id, str(outcome.path), outcome.size)
        self.stats.uploaded += 1
        self.stats.bytes_uploaded += outcome.size
        self.logger.info(f"Uploaded {name} ({outcome.size} bytes)")

        if self.delete_local_after_upload:
            try:
                os.remove(outcome.path)
                self.logger.debug(f"Deleted local file {name}")
            except OSError as e:
                self.logger.warning(f"Failed to delete local file {name}: {e}")

    def _check_batch_complete(self, key: str) -> bool:
        """Mark the batch uploaded if every file now on disk has an upload record."""
        names = [path.name for path in self.list_images(key)]
        if not self.progress.all_uploaded(names):
            return False

        if self.progress.last_batch_uploaded != key:
            self.logger.info(f"Batch {key} fully uploaded")
        self.progress.last_batch_uploaded = key
        return True

    def _persist(self) -> None:
        try:
            self.progress.persist(self.progress_path)
        except CheckpointIOError as e:
            self.logger.error(f"Failed to save upload progress: {e}")
