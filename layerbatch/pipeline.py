"""
Pipeline - Wires the generation and transfer stages together.

Each stage resumes from its own checkpoint, so either can be re-run alone.
"""

import logging
from pathlib import Path
from typing import Optional

from .batch_planner import BatchLayout
from .compositor import LayerCompositor
from .config import DriveConfig, GenerationConfig
from .drive_auth import TokenManager
from .drive_client import DriveClient
from .generation_checkpoint import GenerationCheckpoint, GenerationProgress
from .items import discover_item_count, load_items
from .retry_policy import RetryPolicy
from .run_stats import GenerationStats, TransferStats
from .transfer_engine import TransferEngine
from .worker_pool import CompositionWorkerPool


class Pipeline:
    """
    Runs generation, then transfer, for one output root.
    """

    def __init__(
        self,
        generation: GenerationConfig,
        drive: Optional[DriveConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize pipeline.

        Args:
            generation: Generation settings (also defines the output layout)
            drive: Upload settings (required only for upload())
            logger: Optional logger instance
        """
        self.generation = generation
        self.drive = drive
        self.logger = logger or logging.getLogger(__name__)
        self.layout = BatchLayout(generation.output_dir, generation.batch_size)

    def generate(self) -> GenerationStats:
        """
        Render every item not covered by a prior unfinished run.

        Returns:
            GenerationStats for this run
        """
        config = self.generation
        Path(config.output_dir).mkdir(parents=True, exist_ok=True)
        progress_path = self.layout.generation_progress_path

        start = GenerationCheckpoint.resolve_start(
            progress_path,
            force_regenerate=config.force_regenerate,
            default_start=config.start_index,
            logger=self.logger,
        )

        known = discover_item_count(self.layout, config.layers_dir, config.layer_order, self.logger)
        if known == 0:
            self.logger.warning(f"No item metadata found under {config.output_dir}")
            return GenerationStats()

        end = min(config.end_index, known) if config.end_index else known
        items = load_items(
            self.layout, start, end, config.layers_dir, config.layer_order, self.logger
        )

        progress = GenerationProgress.begin(start, end, config.image_format, config.batch_size)
        progress.total_to_generate = len(items)
        checkpoint = GenerationCheckpoint(progress_path, progress, logger=self.logger)
        checkpoint.persist()

        if not items:
            self.logger.info(f"Nothing to generate between #{start} and #{end}")
            checkpoint.finish()
            return checkpoint.stats

        workers = config.resolved_workers
        self.logger.info(f"Starting image generation with {workers} worker(s)")
        self.logger.info(
            f"Image format: {config.image_format}, quality: {config.quality}, "
            f"compression level: {config.compression_level}"
        )
        self.logger.info(f"Generating items {start} to {end} (total: {len(items)})")

        compositor = LayerCompositor(
            image_format=config.image_format,
            quality=config.quality,
            compression_level=config.compression_level,
            logger=self.logger,
        )
        pool = CompositionWorkerPool(compositor, self.layout, num_workers=workers, logger=self.logger)
        pool.run(start, end, items, checkpoint.handle)
        checkpoint.finish()

        stats = checkpoint.stats
        self.logger.info(
            f"Image generation completed: {stats.rendered} rendered, {stats.errors} errors "
            f"({stats.elapsed_seconds:.1f}s)"
        )
        return stats

    def upload(self) -> TransferStats:
        """
        Upload every batch not yet recorded in the upload checkpoint.

        Returns:
            TransferStats for this run
        """
        drive = self.drive
        if drive is None:
            raise ValueError("Drive configuration is required for upload")

        retry_policy = RetryPolicy(max_retries=drive.max_retries)
        tokens = TokenManager(
            drive.client_id, drive.client_secret, drive.refresh_token,
            retry_policy=retry_policy, logger=self.logger
        )
        client = DriveClient(tokens, retry_policy=retry_policy, logger=self.logger)
        engine = TransferEngine(
            client,
            self.layout,
            drive.folder_id,
            progress_path=drive.progress_path,
            chunk_size=drive.chunk_size,
            concurrent_uploads=drive.concurrent_uploads,
            delete_local_after_upload=drive.delete_local_after_upload,
            retry_policy=retry_policy,
            window_delay=drive.window_delay,
            logger=self.logger,
        )
        return engine.upload_all()
