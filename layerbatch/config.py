"""
Configuration for the generation and transfer stages.

Values come from environment variables with CLI overrides applied on top.
Zero or missing numeric values fall back to the defaults below.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

IMAGE_FORMATS = ('png', 'jpg', 'webp')

DEFAULT_QUALITY = 90
DEFAULT_COMPRESSION_LEVEL = 6
DEFAULT_BATCH_SIZE = 10
DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024
DEFAULT_MAX_RETRIES = 5
DEFAULT_CONCURRENT_UPLOADS = 3
DEFAULT_WINDOW_DELAY = 0.5


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    return int(value)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _or_default(value, default):
    return value if value else default


@dataclass
class GenerationConfig:
    """
    Image generation settings.

    Attributes:
        output_dir: Root of the batch directories and progress files
        layers_dir: Directory holding one sub-directory per layer
        layer_order: Layer names, bottom to top
        num_workers: Worker processes (0 = CPU count minus one)
        image_format: Output format: png, jpg or webp
        quality: JPEG/WebP quality (1-100)
        compression_level: PNG compression level (0-9)
        batch_size: Items per batch directory
        start_index: First index when there is no progress to resume
        end_index: Optional last index (default: all known items)
        force_regenerate: Discard prior progress and start at index 1
    """
    output_dir: str = 'output'
    layers_dir: str = 'layers'
    layer_order: List[str] = field(default_factory=list)
    num_workers: int = 0
    image_format: str = 'png'
    quality: int = DEFAULT_QUALITY
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    batch_size: int = DEFAULT_BATCH_SIZE
    start_index: int = 1
    end_index: Optional[int] = None
    force_regenerate: bool = False

    def __post_init__(self):
        self.image_format = (self.image_format or 'png').lower()
        if self.image_format == 'jpeg':
            self.image_format = 'jpg'
        self.quality = _or_default(self.quality, DEFAULT_QUALITY)
        # 0 is a valid PNG level, so only None falls back
        if self.compression_level is None:
            self.compression_level = DEFAULT_COMPRESSION_LEVEL
        self.batch_size = _or_default(self.batch_size, DEFAULT_BATCH_SIZE)
        self.start_index = _or_default(self.start_index, 1)

    @property
    def resolved_workers(self) -> int:
        """Worker count with 0 mapped to host concurrency minus one."""
        if self.num_workers and self.num_workers > 0:
            return self.num_workers
        return max(1, (os.cpu_count() or 2) - 1)

    @classmethod
    def from_env(cls) -> 'GenerationConfig':
        """Create configuration from LAYERBATCH_* environment variables."""
        layer_order = os.getenv('LAYERBATCH_LAYER_ORDER', '')
        end_index = os.getenv('LAYERBATCH_END_INDEX')
        return cls(
            output_dir=os.getenv('LAYERBATCH_OUTPUT_DIR', 'output'),
            layers_dir=os.getenv('LAYERBATCH_LAYERS_DIR', 'layers'),
            layer_order=[name.strip() for name in layer_order.split(',') if name.strip()],
            num_workers=_env_int('LAYERBATCH_NUM_WORKERS', 0),
            image_format=os.getenv('LAYERBATCH_IMAGE_FORMAT', 'png'),
            quality=_env_int('LAYERBATCH_QUALITY', DEFAULT_QUALITY),
            compression_level=_env_int('LAYERBATCH_COMPRESSION_LEVEL', DEFAULT_COMPRESSION_LEVEL),
            batch_size=_env_int('LAYERBATCH_BATCH_SIZE', DEFAULT_BATCH_SIZE),
            start_index=_env_int('LAYERBATCH_START_INDEX', 1),
            end_index=int(end_index) if end_index else None,
            force_regenerate=_env_bool('LAYERBATCH_FORCE_REGENERATE'),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if not self.layer_order:
            errors.append("layer_order is empty (set LAYERBATCH_LAYER_ORDER or --layer)")
        if self.image_format not in IMAGE_FORMATS:
            errors.append(f"image_format must be one of {', '.join(IMAGE_FORMATS)}")
        if not 1 <= self.quality <= 100:
            errors.append("quality must be between 1 and 100")
        if not 0 <= self.compression_level <= 9:
            errors.append("compression_level must be between 0 and 9")
        if self.num_workers < 0:
            errors.append("num_workers must not be negative")
        if self.end_index is not None and self.end_index < self.start_index:
            errors.append("end_index must not be smaller than start_index")
        if not Path(self.layers_dir).is_dir():
            errors.append(f"layers_dir does not exist: {self.layers_dir}")
        return errors


@dataclass
class DriveConfig:
    """
    Remote upload settings.

    Attributes:
        client_id: OAuth client id
        client_secret: OAuth client secret
        refresh_token: OAuth refresh token
        folder_id: Parent folder that receives one sub-folder per batch
        chunk_size: Bytes per chunk PUT
        max_retries: Retries per remote call before giving up
        concurrent_uploads: Files uploaded simultaneously per window
        delete_local_after_upload: Remove local files once uploaded
        progress_path: Upload checkpoint path (default: <output>/drive_upload_progress.json)
        window_delay: Seconds to pause between upload windows
    """
    client_id: str = ''
    client_secret: str = ''
    refresh_token: str = ''
    folder_id: str = ''
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    concurrent_uploads: int = DEFAULT_CONCURRENT_UPLOADS
    delete_local_after_upload: bool = False
    progress_path: Optional[str] = None
    window_delay: float = DEFAULT_WINDOW_DELAY

    def __post_init__(self):
        self.chunk_size = _or_default(self.chunk_size, DEFAULT_CHUNK_SIZE)
        self.max_retries = _or_default(self.max_retries, DEFAULT_MAX_RETRIES)
        self.concurrent_uploads = _or_default(self.concurrent_uploads, DEFAULT_CONCURRENT_UPLOADS)

    @classmethod
    def from_env(cls) -> 'DriveConfig':
        """Create configuration from GOOGLE_* and LAYERBATCH_* environment variables."""
        return cls(
            client_id=os.getenv('GOOGLE_CLIENT_ID', ''),
            client_secret=os.getenv('GOOGLE_CLIENT_SECRET', ''),
            refresh_token=os.getenv('GOOGLE_REFRESH_TOKEN', ''),
            folder_id=os.getenv('GOOGLE_DRIVE_FOLDER_ID', ''),
            chunk_size=_env_int('LAYERBATCH_CHUNK_SIZE', DEFAULT_CHUNK_SIZE),
            max_retries=_env_int('LAYERBATCH_MAX_RETRIES', DEFAULT_MAX_RETRIES),
            concurrent_uploads=_env_int('LAYERBATCH_CONCURRENT_UPLOADS', DEFAULT_CONCURRENT_UPLOADS),
            delete_local_after_upload=_env_bool('LAYERBATCH_DELETE_LOCAL_AFTER_UPLOAD'),
            progress_path=os.getenv('LAYERBATCH_UPLOAD_PROGRESS_PATH') or None,
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if not self.client_id:
            errors.append("GOOGLE_CLIENT_ID is required")
        if not self.client_secret:
            errors.append("GOOGLE_CLIENT_SECRET is required")
        if not self.refresh_token:
            errors.append("GOOGLE_REFRESH_TOKEN is required")
        if not self.folder_id:
            errors.append("GOOGLE_DRIVE_FOLDER_ID is required")
        if self.chunk_size < 256 * 1024 or self.chunk_size % (256 * 1024) != 0:
            errors.append("chunk_size must be a positive multiple of 256 KiB")
        if self.concurrent_uploads < 1:
            errors.append("concurrent_uploads must be at least 1")
        return errors
