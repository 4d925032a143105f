"""
CompositionWorkerPool - Renders items in parallel over contiguous index ranges.

Workers never touch shared progress state. Each one reports through one-way
events (ItemRendered, ItemFailed, WorkerDone) that a single consumer in the
parent process applies.
"""

import logging
import multiprocessing
import queue
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from .batch_planner import BatchLayout, partition_range
from .compositor import LayerCompositor
from .items import Item


@dataclass(frozen=True)
class ItemRendered:
    """An item was written to disk."""
    index: int
    path: str
    size: int


@dataclass(frozen=True)
class ItemFailed:
    """An item could not be rendered. Index -1 means a whole worker failed."""
    index: int
    error: str


@dataclass(frozen=True)
class WorkerDone:
    """A worker exhausted its range."""
    worker_id: int
    processed: int


WorkerEvent = Union[ItemRendered, ItemFailed, WorkerDone]
EventSink = Callable[[WorkerEvent], None]


def render_range(
    worker_id: int,
    lo: int,
    hi: int,
    items: Dict[int, Item],
    compositor: LayerCompositor,
    layout: BatchLayout,
    emit: EventSink
) -> int:
    """
    Render every item in [lo, hi] and report each outcome through emit.

    A failing item is reported and skipped; it never stops the range.
    Indices without an item (no metadata entry) are skipped.

    Returns:
        Number of items attempted
    """
    logger = compositor.logger
    processed = 0

    for index in range(lo, hi + 1):
        item = items.get(index)
        if item is None:
            logger.debug(f"No metadata for item #{index}, skipping")
            continue

        output_path = layout.image_path(index, compositor.extension)
        try:
            size = compositor.render(item, output_path)
        except Exception as e:
            logger.error(f"Error generating image for item #{index}: {e}")
            emit(ItemFailed(index=index, error=str(e)))
        else:
            emit(ItemRendered(index=index, path=str(output_path), size=size))
        processed += 1

    emit(WorkerDone(worker_id=worker_id, processed=processed))
    return processed


def _worker_main(worker_id, lo, hi, items, compositor, layout, events) -> None:
    """Process entry point: render a range, sending events to the parent."""
    render_range(worker_id, lo, hi, items, compositor, layout, events.put)


class CompositionWorkerPool:
    """
    Splits an index range across worker processes.

    num_workers=1 runs the same per-item loop synchronously in this process.
    """

    def __init__(
        self,
        compositor: LayerCompositor,
        layout: BatchLayout,
        num_workers: int = 1,
        queue_size: int = 1000,
        poll_interval: float = 1.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize worker pool.

        Args:
            compositor: Renders a single item
            layout: Output layout (decides each item's path)
            num_workers: Number of workers (already resolved, >= 1)
            queue_size: Capacity of the event channel
            poll_interval: Seconds between liveness checks while waiting
            logger: Optional logger instance
        """
        self.compositor = compositor
        self.layout = layout
        self.num_workers = max(1, num_workers)
        self.queue_size = queue_size
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

    def plan(self, start: int, end: int) -> List[Tuple[int, int]]:
        """Sub-ranges each worker will own."""
        return partition_range(start, end, self.num_workers)

    def run(
        self,
        start: int,
        end: int,
        items: Dict[int, Item],
        sink: EventSink
    ) -> int:
        """
        Render items start..end, delivering every event to sink.

        Returns only after every worker has reported completion.

        Returns:
            Total number of items attempted
        """
        ranges = self.plan(start, end)
        if not ranges:
            return 0

        self.logger.info(
            f"Rendering items {start}-{end} with {len(ranges)} worker(s): "
            + ", ".join(f"[{lo}-{hi}]" for lo, hi in ranges)
        )

        if self.num_workers == 1:
            return sum(
                render_range(worker_id, lo, hi, items, self.compositor, self.layout, sink)
                for worker_id, (lo, hi) in enumerate(ranges)
            )

        return self._run_processes(ranges, items, sink)

    def _run_processes(
        self,
        ranges: List[Tuple[int, int]],
        items: Dict[int, Item],
        sink: EventSink
    ) -> int:
        ctx = multiprocessing.get_context()
        events = ctx.Queue(maxsize=self.queue_size)

        workers = []
        for worker_id, (lo, hi) in enumerate(ranges):
            subset = {i: items[i] for i in range(lo, hi + 1) if i in items}
            process = ctx.Process(
                target=_worker_main,
                args=(worker_id, lo, hi, subset, self.compositor, self.layout, events),
                daemon=True,
            )
            process.start()
            workers.append(process)

        done = set()
        total = 0
        while len(done) < len(workers):
            try:
                event = events.get(timeout=self.poll_interval)
            except queue.Empty:
                self._reap_dead_workers(workers, done, sink)
                continue

            sink(event)
            if isinstance(event, WorkerDone):
                done.add(event.worker_id)
                total += event.processed

        for process in workers:
            process.join()
        events.close()

        return total

    def _reap_dead_workers(self, workers, done, sink: EventSink) -> None:
        """Mark workers that died without reporting completion as done."""
        for worker_id, process in enumerate(workers):
            if worker_id in done or process.is_alive() or process.exitcode == 0:
                continue
            message = f"Worker {worker_id} exited with code {process.exitcode}"
            self.logger.error(message)
            sink(ItemFailed(index=-1, error=message))
            sink(WorkerDone(worker_id=worker_id, processed=0))
            done.add(worker_id)
