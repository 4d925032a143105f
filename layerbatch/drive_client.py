"""
DriveClient - Google Drive v3 REST calls used by the transfer stage.

Every method performs exactly one HTTP attempt and classifies failures as
TransientTransferError (network, 429, 5xx) or TerminalTransferError
(anything else). Retrying is left to the caller's RetryPolicy.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

import urllib3

from .drive_auth import TokenManager
from .errors import TerminalTransferError, TransientTransferError
from .retry_policy import RetryPolicy

FILES_URL = 'https://www.googleapis.com/drive/v3/files'
RESUMABLE_UPLOAD_URL = 'https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable'
FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

HTTP_RESUME_INCOMPLETE = 308


@dataclass
class ChunkResult:
    """
    Server answer to one chunk PUT.

    Attributes:
        complete: True once the whole file has been received
        offset: Next byte the server expects (file size when complete)
        remote_id: Remote file id (only when complete)
    """
    complete: bool
    offset: int
    remote_id: Optional[str] = None


class DriveClient:
    """
    Thin wrapper around the Drive endpoints.
    """

    def __init__(
        self,
        tokens: TokenManager,
        retry_policy: Optional[RetryPolicy] = None,
        http: Optional[urllib3.PoolManager] = None,
        timeout: float = 60.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize client.

        Args:
            tokens: Shared access token manager
            retry_policy: Policy used by ensure_folder
            http: urllib3 pool manager (shared across threads)
            timeout: Per-request timeout in seconds
            logger: Optional logger instance
        """
        self.tokens = tokens
        self.retry_policy = retry_policy or RetryPolicy()
        self.http = http or urllib3.PoolManager(maxsize=10)
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def _request(self, method: str, url: str, action: str, headers=None, **kwargs):
        all_headers = {'Authorization': f"Bearer {self.tokens.get_token()}"}
        all_headers.update(headers or {})
        try:
            return self.http.request(
                method,
                url,
                headers=all_headers,
                timeout=self.timeout,
                retries=False,
                redirect=False,
                **kwargs
            )
        except urllib3.exceptions.HTTPError as e:
            raise TransientTransferError(f"{action}: network error: {e}") from e

    def _raise_for_status(self, response, action: str) -> None:
        status = response.status
        if status < 400:
            return
        body = response.data.decode('utf-8', 'replace')[:500]
        message = f"{action} failed: {status} {body}"
        if status == 401:
            # Expired token: refresh on the next attempt
            self.tokens.invalidate()
            raise TransientTransferError(message, status=status)
        if status == 429 or status >= 500:
            raise TransientTransferError(message, status=status)
        raise TerminalTransferError(message, status=status)

    @staticmethod
    def _json(response, action: str) -> dict:
        try:
            return json.loads(response.data.decode('utf-8'))
        except ValueError as e:
            raise TerminalTransferError(f"{action}: unparseable response: {e}") from e

    def open_session(self, name: str, size: int, content_type: str, parent_id: str) -> str:
        """
        Open a resumable upload session.

        Returns:
            Session URI that receives the chunk PUTs
        """
        action = f"Open upload session for {name}"
        response = self._request(
            'POST',
            RESUMABLE_UPLOAD_URL,
            action,
            headers={
                'Content-Type': 'application/json; charset=UTF-8',
                'X-Upload-Content-Type': content_type,
                'X-Upload-Content-Length': str(size),
            },
            body=json.dumps({'name': name, 'parents': [parent_id]}).encode('utf-8'),
        )
        self._raise_for_status(response, action)

        location = response.headers.get('Location')
        if not location:
            raise TerminalTransferError(f"{action}: no Location header in response")
        return location

    def put_chunk(self, session_uri: str, data: bytes, start: int, total: int) -> ChunkResult:
        """
        Send bytes [start, start + len(data)) of a file of `total` bytes.

        A 308 response carries the server's confirmed range, which is
        authoritative for the next offset.
        """
        end = start + len(data) - 1
        # An empty body asks the server for its status (or finishes an empty file)
        content_range = f"bytes {start}-{end}/{total}" if data else f"bytes */{total}"
        action = f"Upload {content_range}"
        response = self._request(
            'PUT',
            session_uri,
            action,
            headers={
                'Content-Range': content_range,
                'Content-Length': str(len(data)),
            },
            body=data,
        )

        if response.status == HTTP_RESUME_INCOMPLETE:
            return ChunkResult(complete=False, offset=self._confirmed_offset(response, start + len(data)))

        self._raise_for_status(response, action)

        try:
            remote_id = self._json(response, action).get('id')
        except TerminalTransferError:
            remote_id = None
        return ChunkResult(
            complete=True,
            offset=total,
            remote_id=remote_id or self.session_upload_id(session_uri),
        )

    @staticmethod
    def _confirmed_offset(response, fallback: int) -> int:
        """Parse 'Range: bytes=0-N' into N + 1."""
        header = response.headers.get('Range')
        if not header or '-' not in header:
            return fallback
        try:
            return int(header.rsplit('-', 1)[1]) + 1
        except ValueError:
            return fallback

    @staticmethod
    def session_upload_id(session_uri: str) -> Optional[str]:
        """The upload_id query parameter of a session URI."""
        values = parse_qs(urlparse(session_uri).query).get('upload_id')
        return values[0] if values else None

    def find_folder(self, name: str, parent_id: str) -> Optional[str]:
        """Return the id of a folder named `name` directly under parent_id."""
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        query = (
            f"name='{escaped}' and mimeType='{FOLDER_MIME_TYPE}' "
            f"and '{parent_id}' in parents and trashed=false"
        )
        action = f"Find folder {name}"
        response = self._request(
            'GET', FILES_URL, action, fields={'q': query, 'fields': 'files(id,name)'}
        )
        self._raise_for_status(response, action)

        files = self._json(response, action).get('files') or []
        return files[0]['id'] if files else None

    def create_folder(self, name: str, parent_id: str) -> str:
        """Create a folder under parent_id and return its id."""
        action = f"Create folder {name}"
        response = self._request(
            'POST',
            FILES_URL,
            action,
            headers={'Content-Type': 'application/json; charset=UTF-8'},
            body=json.dumps({
                'name': name,
                'mimeType': FOLDER_MIME_TYPE,
                'parents': [parent_id],
            }).encode('utf-8'),
        )
        self._raise_for_status(response, action)

        folder_id = self._json(response, action).get('id')
        if not folder_id:
            raise TerminalTransferError(f"{action}: response has no id")
        return folder_id

    def ensure_folder(self, name: str, parent_id: str) -> str:
        """
        Find a folder by name under parent_id, creating it if absent.

        Lookup and create are separate calls, so two pipelines running at
        once can both create the folder.
        """
        existing = self.retry_policy.call(
            lambda: self.find_folder(name, parent_id), f"Find folder {name}", self.logger
        )
        if existing:
            return existing

        self.logger.info(f"Creating remote folder {name}")
        return self.retry_policy.call(
            lambda: self.create_folder(name, parent_id), f"Create folder {name}", self.logger
        )
