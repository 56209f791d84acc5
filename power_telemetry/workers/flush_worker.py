"""
Flush worker.

Periodically drains the sample buffer, averages the window and writes
one hourly record.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..application.interfaces import HourlyRecordWriter
from ..config import BufferSettings
from ..domain.entities import AveragedSample, HourlyRecord
from ..domain.exceptions import DataLossWindow
from ..domain.value_objects import round_electrical, round_sub_unit
from .sample_buffer import SampleBuffer

logger = logging.getLogger(__name__)


class FlushWorker:
    """
    Background worker turning buffered samples into hourly records.

    A window whose write fails is logged as a DataLossWindow and not
    retried; the buffer has already been drained.
    """

    def __init__(
        self,
        buffer: SampleBuffer,
        writer: HourlyRecordWriter,
        buffer_settings: Optional[BufferSettings] = None,
    ):
        """
        Initialize the flush worker.

        Args:
            buffer: Buffer filled by the ingestion path.
            writer: Destination of the hourly records.
            buffer_settings: Flush interval and default substitutions.
        """
        self.buffer = buffer
        self._writer = writer
        self._settings = buffer_settings or BufferSettings()
        self.flush_interval = self._settings.flush_interval_seconds

        # Serializes timer and manual flushes
        self._flush_lock = asyncio.Lock()

        # State
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

        # Stats
        self._flushes_completed = 0
        self._flushes_skipped = 0
        self._flushes_failed = 0
        self._last_flush_time: Optional[datetime] = None
        self._last_record: Optional[HourlyRecord] = None

    async def start(self) -> None:
        """Start the flush worker."""
        if self._running:
            logger.warning("Flush worker already running")
            return

        logger.info(f"Starting flush worker (interval {self.flush_interval}s)")
        self._running = True
        self._shutdown_event.clear()

        self._task = asyncio.create_task(
            self._run_loop(),
            name="flush_worker",
        )

    async def stop(self) -> None:
        """Stop the worker, persisting whatever is still buffered."""
        if not self._running:
            return

        logger.info("Stopping flush worker")
        self._running = False
        self._shutdown_event.set()

        # Let an in-flight flush finish; its window is already drained
        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=self.flush_interval)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                logger.warning("Flush worker loop did not finish in time; cancelled")

        await self.flush_now()

        logger.info(
            f"Flush worker stopped. Flushes completed: {self._flushes_completed}, "
            f"failed: {self._flushes_failed}"
        )

    async def _run_loop(self) -> None:
        """Main flush loop."""
        logger.debug("Flush worker loop started")

        while self._running:
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.flush_interval,
                )
                break  # Shutdown requested
            except asyncio.TimeoutError:
                pass  # Normal timeout

            try:
                await self.flush_now()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in flush worker loop: {e}")

        logger.debug("Flush worker loop ended")

    async def flush_now(self) -> Optional[AveragedSample]:
        """
        Drain, average and persist the current window.

        Returns:
            The averaged window, or None when the buffer was empty.
        """
        async with self._flush_lock:
            averaged = self.buffer.drain_and_average()
            if averaged is None:
                self._flushes_skipped += 1
                logger.debug("Flush skipped: buffer empty")
                return None

            record = self.to_hourly_record(averaged)
            try:
                stored = await self._writer.write(record)
            except Exception as e:
                self._flushes_failed += 1
                loss = DataLossWindow(
                    window_end=averaged.window_end,
                    sample_count=averaged.sample_count,
                    values=averaged.to_dict(),
                    cause=e,
                )
                logger.error(f"{loss.message} values={loss.details['values']}")
                return averaged

            self._flushes_completed += 1
            self._last_flush_time = record.timestamp
            self._last_record = stored
            logger.info(
                f"Flushed {averaged.sample_count} samples: "
                f"{record.energy_kwh} kWh, {record.voltage} V, {record.current} A"
            )
            return averaged

    def to_hourly_record(
        self,
        averaged: AveragedSample,
        timestamp: Optional[datetime] = None,
    ) -> HourlyRecord:
        """
        Apply default substitutions and derive energy when none was sent.
        """
        s = self._settings
        voltage = averaged.voltage if averaged.voltage is not None else s.default_voltage
        current = averaged.current if averaged.current is not None else s.default_current
        power_factor = (
            averaged.power_factor if averaged.power_factor is not None else s.default_power_factor
        )
        frequency = averaged.frequency if averaged.frequency is not None else s.default_frequency

        energy_kwh = averaged.energy_kwh
        if energy_kwh is None:
            power_watts = averaged.power_watts
            if power_watts is None:
                power_watts = voltage * current * power_factor
            energy_kwh = power_watts * (self.flush_interval / 3600) / 1000

        return HourlyRecord(
            timestamp=timestamp or datetime.now(timezone.utc),
            energy_kwh=round_sub_unit(energy_kwh),
            voltage=round_electrical(voltage),
            current=round_electrical(current),
            power_factor=round_electrical(power_factor),
            frequency=round_electrical(frequency),
            sample_count=averaged.sample_count,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get worker statistics."""
        return {
            "running": self._running,
            "flush_interval_seconds": self.flush_interval,
            "buffer_size": self.buffer.size(),
            "flushes_completed": self._flushes_completed,
            "flushes_skipped": self._flushes_skipped,
            "flushes_failed": self._flushes_failed,
            "last_flush_time": self._last_flush_time.isoformat() if self._last_flush_time else None,
        }

    @property
    def is_running(self) -> bool:
        """Check if worker is running."""
        return self._running
