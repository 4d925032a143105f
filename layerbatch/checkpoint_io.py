"""
Checkpoint IO - Crash-safe JSON persistence for progress files.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .errors import CheckpointIOError


def write_json_atomic(path, data: dict) -> None:
    """
    Write JSON to a temp file beside `path`, then replace `path` with it.

    A crash at any point leaves either the previous file or the new one,
    never a partial write.

    Raises:
        CheckpointIOError: If the file cannot be written
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix='.tmp', dir=str(path.parent)
        )
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise CheckpointIOError(f"Failed to write {path}: {e}") from e


def read_json(path, logger: Optional[logging.Logger] = None) -> Optional[dict]:
    """
    Read a JSON progress file.

    Returns:
        Parsed dict, or None when the file is absent or unreadable
        (an unreadable file is logged and treated as no prior progress)
    """
    log = logger or logging.getLogger(__name__)
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log.warning(f"Could not read progress file {path}: {e}")
        return None
    if not isinstance(data, dict):
        log.warning(f"Ignoring malformed progress file {path}")
        return None
    return data
