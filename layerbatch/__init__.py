"""
Layered Image Batch Pipeline

Two-stage operation:
    1. Generate: Composite layer images for every item, written in batch directories
    2. Upload: Push each batch to Google Drive with chunked resumable uploads

Both stages checkpoint their progress and resume after interruption.
"""

__version__ = "1.0.0"

from .config import GenerationConfig, DriveConfig
from .batch_planner import BatchLayout, compute_batch, partition_range
from .items import Item
from .compositor import LayerCompositor
from .worker_pool import CompositionWorkerPool
from .generation_checkpoint import GenerationProgress, GenerationCheckpoint
from .retry_policy import RetryPolicy
from .drive_auth import TokenManager
from .drive_client import DriveClient
from .upload_session import ChunkedUploadSession
from .upload_checkpoint import UploadProgress
from .transfer_engine import TransferEngine
from .run_stats import GenerationStats, TransferStats
from .pipeline import Pipeline

__all__ = [
    "GenerationConfig",
    "DriveConfig",
    "BatchLayout",
    "compute_batch",
    "partition_range",
    "Item",
    "LayerCompositor",
    "CompositionWorkerPool",
    "GenerationProgress",
    "GenerationCheckpoint",
    "RetryPolicy",
    "TokenManager",
    "DriveClient",
    "ChunkedUploadSession",
    "UploadProgress",
    "TransferEngine",
    "GenerationStats",
    "TransferStats",
    "Pipeline",
]
