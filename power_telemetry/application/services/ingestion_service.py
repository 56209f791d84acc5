"""
Ingestion Service - entry point for meter readings.

Used by the MQTT callback thread and by the HTTP API.
"""
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ...domain.entities import AveragedSample, Sample
from ...domain.exceptions import TransportNotConnected, ValidationGap
from ...infrastructure.messaging import MQTTSubscriber

if TYPE_CHECKING:
    from ...workers.flush_worker import FlushWorker
    from ...workers.sample_buffer import SampleBuffer

logger = logging.getLogger(__name__)


class IngestionService:
    """
    Decodes raw payloads into samples and feeds the buffer.

    ingest_sample never raises: malformed input is logged and dropped so
    the transport keeps running.
    """

    def __init__(
        self,
        buffer: "SampleBuffer",
        flush_worker: "FlushWorker",
        transport: Optional[MQTTSubscriber] = None,
    ):
        self.buffer = buffer
        self.flush_worker = flush_worker
        self.transport = transport

        self._accepted = 0
        self._rejected = 0

    def ingest_sample(self, raw: Any) -> None:
        """
        Buffer one reading.

        Args:
            raw: Decoded JSON object, or the JSON text/bytes of one.
        """
        self.accept(raw)

    def accept(self, raw: Any) -> bool:
        """Same as ingest_sample, reporting whether the reading was buffered."""
        try:
            payload = self._decode(raw)
            sample, gaps = Sample.from_payload(payload)
        except ValidationGap as gap:
            self._rejected += 1
            logger.warning(f"Dropped message: {gap.message}")
            return False
        except Exception as e:
            self._rejected += 1
            logger.error(f"Dropped message: unexpected error {e}")
            return False

        for gap in gaps:
            logger.warning(gap.message)

        if sample.is_empty:
            self._rejected += 1
            logger.warning("Dropped message: no recognised measurement")
            return False

        self.buffer.append(sample)
        self._accepted += 1
        logger.debug(f"Buffered sample, buffer size {self.buffer.size()}")
        return True

    @staticmethod
    def _decode(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError:
                raise ValidationGap("payload", raw[:50], "not UTF-8")
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                raise ValidationGap("payload", raw[:50], "not valid JSON")
        if not isinstance(raw, dict):
            raise ValidationGap("payload", raw, "not a JSON object")
        return raw

    async def flush_now(self) -> Optional[AveragedSample]:
        """Flush the current window immediately."""
        logger.info("Manual flush triggered")
        return await self.flush_worker.flush_now()

    def get_buffer_status(self) -> Dict[str, Any]:
        latest = self.buffer.peek()
        return {
            "size": self.buffer.size(),
            "latest_sample": latest.to_dict() if latest else None,
            "mqtt_connected": bool(self.transport and self.transport.is_connected),
        }

    def get_buffered_samples(self) -> List[Sample]:
        return self.buffer.snapshot()

    def publish_power_control(self, status: str) -> None:
        self._require_transport().publish_power_control(status)

    def publish_reboot(self) -> None:
        self._require_transport().publish_reboot()

    def _require_transport(self) -> MQTTSubscriber:
        if self.transport is None:
            raise TransportNotConnected("MQTT is disabled")
        return self.transport

    def get_stats(self) -> Dict[str, Any]:
        return {
            "accepted": self._accepted,
            "rejected": self._rejected,
        }
