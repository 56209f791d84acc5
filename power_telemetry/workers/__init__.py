"""
Background workers for the telemetry pipeline.

- Sample buffering and periodic flush into the hourly tier
- Scheduled daily, weekly and monthly rollups
"""
from .sample_buffer import SampleBuffer
from .flush_worker import FlushWorker
from .rollup_worker import RollupWorker
from .worker_manager import WorkerManager

__all__ = [
    "SampleBuffer",
    "FlushWorker",
    "RollupWorker",
    "WorkerManager",
]
