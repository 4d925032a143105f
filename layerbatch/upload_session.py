"""
ChunkedUploadSession - Resumable single-file upload.

Opens a session, then sends the file in fixed-size chunks in increasing byte
order. A chunk that hits a rate limit, server error or network error is
resent under the RetryPolicy; the offset advances only when the server
confirms a chunk, and the retry budget starts over for every new chunk.
"""

import logging
import os
from typing import Optional

from .drive_client import DriveClient
from .errors import TerminalTransferError
from .retry_policy import RetryPolicy

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024

CONTENT_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.webp': 'image/webp',
}


def content_type_for(path: str) -> str:
    """Get content type for a file by extension."""
    return CONTENT_TYPES.get(os.path.splitext(path)[1].lower(), 'application/octet-stream')


class ChunkedUploadSession:
    """
    Uploads one local file to a remote folder.

    Attributes:
        session_uri: Opaque handle returned by the server
        bytes_uploaded: Bytes confirmed by the server so far
        total_size: Declared file size
    """

    def __init__(
        self,
        client: DriveClient,
        path: str,
        parent_id: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.client = client
        self.path = str(path)
        self.parent_id = parent_id
        self.chunk_size = chunk_size
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger or logging.getLogger(__name__)

        self.name = os.path.basename(self.path)
        self.session_uri: Optional[str] = None
        self.bytes_uploaded = 0
        self.total_size = 0

    def open(self) -> str:
        """Request an upload session scoped to the file's name, size and type."""
        self.total_size = os.path.getsize(self.path)
        self.bytes_uploaded = 0
        self.session_uri = self.retry_policy.call(
            lambda: self.client.open_session(
                self.name, self.total_size, content_type_for(self.path), self.parent_id
            ),
            f"Open upload session for {self.name}",
            self.logger,
        )
        return self.session_uri

    def upload(self) -> str:
        """
        Open a session and send the whole file.

        Returns:
            Remote file id

        Raises:
            TerminalTransferError: On a non-retryable error or an exhausted
                retry budget
        """
        self.open()

        with open(self.path, 'rb') as f:
            while True:
                f.seek(self.bytes_uploaded)
                chunk = f.read(self.chunk_size)
                start = self.bytes_uploaded

                result = self.retry_policy.call(
                    lambda: self.client.put_chunk(self.session_uri, chunk, start, self.total_size),
                    f"Upload {self.name} bytes {start}-{start + len(chunk) - 1}",
                    self.logger,
                )

                if result.complete:
                    self.bytes_uploaded = self.total_size
                    self.logger.debug(f"Uploaded {self.name} ({self.total_size} bytes)")
                    return result.remote_id

                if result.offset <= start and chunk:
                    raise TerminalTransferError(
                        f"Upload of {self.name} made no progress at byte {start}"
                    )
                self.bytes_uploaded = result.offset

                if self.bytes_uploaded >= self.total_size and not chunk:
                    raise TerminalTransferError(
                        f"Upload of {self.name} sent every byte but never completed"
                    )
