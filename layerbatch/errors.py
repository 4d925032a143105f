"""
Errors - Exception taxonomy for the generation and transfer stages.
"""

from typing import Optional


class LayerBatchError(Exception):
    """Base class for all layerbatch errors."""


class LayerMissing(LayerBatchError):
    """A layer source file for an item does not exist."""

    def __init__(self, index: int, layer: str, path: str):
        self.index = index
        self.layer = layer
        self.path = path
        super().__init__(f"Layer file not found for item #{index} ({layer}): {path}")


class ItemRenderError(LayerBatchError):
    """Composition of a single item failed."""

    def __init__(self, index: int, error: str):
        self.index = index
        self.error = error
        super().__init__(f"Error rendering item #{index}: {error}")


class MetadataMissing(LayerBatchError):
    """A batch has no metadata file to resolve its items from."""

    def __init__(self, batch_key: str, path: str):
        self.batch_key = batch_key
        self.path = path
        super().__init__(f"Metadata file not found for batch {batch_key}: {path}")


class MetadataInvalid(LayerBatchError):
    """A batch metadata file cannot be parsed into items."""

    def __init__(self, batch_key: str, path: str, error: str):
        self.batch_key = batch_key
        self.path = path
        self.error = error
        super().__init__(f"Invalid metadata for batch {batch_key} ({path}): {error}")


class CheckpointIOError(LayerBatchError):
    """A progress file could not be read or written."""


class AuthError(LayerBatchError):
    """The OAuth token exchange failed."""


class TransferError(LayerBatchError):
    """Base class for remote transfer failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class TransientTransferError(TransferError):
    """Network error, rate limit (429) or server error (5xx); safe to retry."""


class TerminalTransferError(TransferError):
    """Non-retryable failure, or the retry budget was exhausted."""
