"""
UploadProgress - Durable record of which files reached the remote store.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Optional

from .checkpoint_io import read_json, write_json_atomic


def _now() -> str:
    return datetime.now().isoformat()


@dataclass
class UploadProgress:
    """
    Upload checkpoint for one output root.

    Attributes:
        last_batch_uploaded: Key of the last batch found fully uploaded
        uploaded_files: filename -> {remoteId, path, size, uploadedAt}
        failed_uploads: filename -> {path, attempts, lastError, lastAttempt}
    """
    last_batch_uploaded: Optional[str] = None
    uploaded_files: Dict[str, Dict] = field(default_factory=dict)
    failed_uploads: Dict[str, Dict] = field(default_factory=dict)

    def is_uploaded(self, filename: str) -> bool:
        return filename in self.uploaded_files

    def record_success(self, filename: str, remote_id: str, path: str, size: int) -> None:
        """Record a finished upload and clear any earlier failure for it."""
        self.uploaded_files[filename] = {
            'remoteId': remote_id,
            'path': path,
            'size': size,
            'uploadedAt': _now(),
        }
        self.failed_uploads.pop(filename, None)

    def record_failure(self, filename: str, path: str, error: str) -> int:
        """
        Record a failed upload.

        Returns:
            Total attempts recorded for the file
        """
        previous = self.failed_uploads.get(filename, {})
        attempts = int(previous.get('attempts', 0)) + 1
        self.failed_uploads[filename] = {
            'path': path,
            'attempts': attempts,
            'lastError': error,
            'lastAttempt': _now(),
        }
        return attempts

    def all_uploaded(self, filenames: Iterable[str]) -> bool:
        """True when every given filename has an upload record."""
        return all(name in self.uploaded_files for name in filenames)

    def to_dict(self) -> dict:
        """Convert to the on-disk JSON schema."""
        return {
            'lastBatchUploaded': self.last_batch_uploaded,
            'uploadedFiles': self.uploaded_files,
            'failedUploads': self.failed_uploads,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'UploadProgress':
        """Create from the on-disk JSON schema."""
        return cls(
            last_batch_uploaded=data.get('lastBatchUploaded'),
            uploaded_files=dict(data.get('uploadedFiles') or {}),
            failed_uploads=dict(data.get('failedUploads') or {}),
        )

    @classmethod
    def load(cls, path, logger: Optional[logging.Logger] = None) -> 'UploadProgress':
        """Load the checkpoint, or an empty one if absent or unreadable."""
        data = read_json(path, logger)
        if data is None:
            return cls()
        return cls.from_dict(data)

    def persist(self, path) -> None:
        """Write the checkpoint atomically."""
        write_json_atomic(path, self.to_dict())
