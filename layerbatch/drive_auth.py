"""
TokenManager - OAuth access token obtained by refresh-token exchange.

One manager is shared by every upload thread. The token is refreshed lazily
once it reaches 90% of its lifetime; concurrent callers wait for a single
in-flight refresh instead of starting their own. Network errors, 429 and
5xx responses from the token endpoint are retried under the RetryPolicy.
"""

import json
import logging
import threading
import time
from typing import Callable, Optional, Tuple

import urllib3

from .errors import AuthError, TerminalTransferError, TransientTransferError
from .retry_policy import RetryPolicy

TOKEN_URL = 'https://oauth2.googleapis.com/token'

# Fraction of expires_in after which the token counts as stale
REFRESH_FRACTION = 0.9


class TokenManager:
    """Caches a bearer token with its expiry and refreshes it on demand."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        http: Optional[urllib3.PoolManager] = None,
        clock: Callable[[], float] = time.monotonic,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.http = http or urllib3.PoolManager()
        self.clock = clock
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger or logging.getLogger(__name__)

        self.token: Optional[str] = None
        self.expiry: float = 0.0
        self._lock = threading.Lock()

    def is_fresh(self) -> bool:
        return self.token is not None and self.clock() < self.expiry

    def get_token(self) -> str:
        """
        Return a usable access token, refreshing it if stale.

        Raises:
            AuthError: If the token exchange fails
        """
        if self.is_fresh():
            return self.token

        with self._lock:
            # Another thread may have refreshed while we waited
            if self.is_fresh():
                return self.token
            self._refresh()
            return self.token

    def invalidate(self) -> None:
        """Force the next get_token() call to refresh."""
        self.expiry = 0.0

    def _refresh(self) -> None:
        self.logger.debug("Refreshing OAuth access token")
        try:
            token, expires_in = self.retry_policy.call(self._exchange, 'Token refresh', self.logger)
        except TerminalTransferError as e:
            raise AuthError(str(e)) from e

        self.token = token
        self.expiry = self.clock() + expires_in * REFRESH_FRACTION

    def _exchange(self) -> Tuple[str, float]:
        """One refresh-token exchange attempt."""
        try:
            response = self.http.request(
                'POST',
                TOKEN_URL,
                fields={
                    'client_id': self.client_id,
                    'client_secret': self.client_secret,
                    'refresh_token': self.refresh_token,
                    'grant_type': 'refresh_token',
                },
                encode_multipart=False,
            )
        except urllib3.exceptions.HTTPError as e:
            raise TransientTransferError(f"Token request failed: {e}") from e

        status = response.status
        if status == 429 or status >= 500:
            raise TransientTransferError(f"Token endpoint returned {status}", status=status)
        if status >= 400:
            raise AuthError(
                f"Failed to obtain access token: {status} "
                f"{response.data.decode('utf-8', 'replace')}"
            )

        try:
            payload = json.loads(response.data.decode('utf-8'))
            return payload['access_token'], float(payload.get('expires_in', 3600))
        except (ValueError, KeyError) as e:
            raise AuthError(f"Malformed token response: {e}") from e
