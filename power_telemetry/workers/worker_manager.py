"""
Worker manager for coordinating the pipeline's background workers.

Owns the sample buffer, the flush and rollup workers and the MQTT
subscriber, and wires them together.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..application.interfaces import HourlyRecordWriter
from ..application.services.ingestion_service import IngestionService
from ..application.services.rollup_service import RollupService
from ..config import AppSettings, get_settings
from ..infrastructure.database.repositories import ScopedHourlyWriter
from ..infrastructure.messaging import MQTTSubscriber
from .flush_worker import FlushWorker
from .rollup_worker import RollupWorker
from .sample_buffer import SampleBuffer

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages lifecycle of all background workers.

    Provides:
    - Centralized start/stop
    - Health monitoring
    - Statistics aggregation
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        hourly_writer: Optional[HourlyRecordWriter] = None,
        rollup_service: Optional[RollupService] = None,
    ):
        """
        Initialize the worker manager.

        Args:
            app_settings: Settings, defaults to the cached application settings.
            hourly_writer: Destination of flushed windows.
            rollup_service: Service used by the rollup worker.
        """
        self.settings = app_settings or get_settings()

        self.buffer = SampleBuffer(warn_size=self.settings.buffer.warn_size)
        self.flush_worker = FlushWorker(
            buffer=self.buffer,
            writer=hourly_writer or ScopedHourlyWriter(),
            buffer_settings=self.settings.buffer,
        )
        self.rollup_service = rollup_service or RollupService(
            timezone_name=self.settings.default_timezone,
        )
        self.rollup_worker = RollupWorker(
            rollup_service=self.rollup_service,
            rollup_settings=self.settings.rollup,
            timezone_name=self.settings.default_timezone,
        )
        self.ingestion = IngestionService(buffer=self.buffer, flush_worker=self.flush_worker)

        self.subscriber: Optional[MQTTSubscriber] = None
        if self.settings.mqtt.enabled:
            self.subscriber = MQTTSubscriber(self.settings.mqtt, self.ingestion.ingest_sample)
            self.ingestion.transport = self.subscriber

        self._running = False
        self._started_at: Optional[datetime] = None
        self._health_check_task: Optional[asyncio.Task] = None
        self._health_check_interval = 60  # seconds

        # Health status
        self._health_status: Dict[str, bool] = {}

    async def start_all(self) -> None:
        """Start all workers."""
        if self._running:
            logger.warning("Worker manager already running")
            return

        logger.info("Starting all workers")
        self._running = True
        self._started_at = datetime.now(timezone.utc)

        # Consumers first, then the transport feeding them
        await self.flush_worker.start()
        if self.settings.rollup.enabled:
            await self.rollup_worker.start()
        if self.subscriber:
            await self.subscriber.connect()

        self._health_check_task = asyncio.create_task(
            self._health_check_loop(),
            name="worker_health_check",
        )

        self._update_health_status()
        logger.info("All workers started")

    async def stop_all(self) -> None:
        """Stop all workers."""
        if not self._running:
            return

        logger.info("Stopping all workers")
        self._running = False

        if self._health_check_task:
            self._health_check_task.cancel()
            try:
                await self._health_check_task
            except asyncio.CancelledError:
                pass

        # Reverse order: stop input, then persist what is left
        if self.subscriber:
            await self.subscriber.close()
        await self.rollup_worker.stop()
        await self.flush_worker.stop()

        logger.info("All workers stopped")

    async def _health_check_loop(self) -> None:
        """Periodic health check loop."""
        while self._running:
            try:
                await asyncio.sleep(self._health_check_interval)
                self._update_health_status()

                for worker_name, is_healthy in self._health_status.items():
                    if not is_healthy:
                        logger.warning(f"Worker unhealthy: {worker_name}")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in health check: {e}")

    def _update_health_status(self) -> None:
        """Update health status for all workers."""
        status = {"flush_worker": self.flush_worker.is_running}
        if self.settings.rollup.enabled:
            status["rollup_worker"] = self.rollup_worker.is_running
        if self.subscriber:
            status["mqtt"] = self.subscriber.is_connected
        self._health_status = status

    def get_health(self) -> Dict[str, Any]:
        """
        Get health status of all workers.

        Returns:
            Health status dictionary.
        """
        self._update_health_status()

        return {
            "healthy": all(self._health_status.values()),
            "status": "running" if self._running else "stopped",
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": (
                (datetime.now(timezone.utc) - self._started_at).total_seconds()
                if self._started_at else 0
            ),
            "workers": self._health_status,
        }

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics from all workers.

        Returns:
            Combined statistics dictionary.
        """
        return {
            "manager": {
                "running": self._running,
                "started_at": self._started_at.isoformat() if self._started_at else None,
            },
            "buffer": self.buffer.get_stats(),
            "ingestion": self.ingestion.get_stats(),
            "flush_worker": self.flush_worker.get_stats(),
            "rollup_worker": self.rollup_worker.get_stats(),
            "mqtt": self.subscriber.get_stats() if self.subscriber else {"enabled": False},
        }

    @property
    def is_running(self) -> bool:
        """Check if manager is running."""
        return self._running
