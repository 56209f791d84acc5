"""
In-memory buffer between the MQTT callback thread and the flush worker.
"""
import logging
import threading
from typing import List, Optional

from ..domain.entities import AveragedSample, Sample

logger = logging.getLogger(__name__)


class SampleBuffer:
    """
    Unbounded list of samples awaiting the next flush.

    paho-mqtt delivers messages on its network thread while the flush
    worker runs on the event loop, so the list is guarded by a
    threading.Lock. Draining swaps the list out under the lock and
    averages outside it; a sample appended concurrently lands either in
    the drained window or in the next one, never in both or neither.
    """

    def __init__(self, warn_size: int = 10000):
        self._warn_size = warn_size
        self._lock = threading.Lock()
        self._samples: List[Sample] = []
        self._latest: Optional[Sample] = None
        self._warned = False

        # Stats
        self._total_appended = 0
        self._total_drained = 0

    def append(self, sample: Sample) -> None:
        """Add a sample. Never blocks beyond the critical section."""
        with self._lock:
            self._samples.append(sample)
            self._latest = sample
            self._total_appended += 1
            size = len(self._samples)
            warn = size >= self._warn_size and not self._warned
            if warn:
                self._warned = True

        if warn:
            logger.warning(
                f"Sample buffer holds {size} samples (warn size {self._warn_size}); "
                f"flushes may be failing or falling behind"
            )

    def drain(self) -> List[Sample]:
        """Take every buffered sample, leaving the buffer empty."""
        with self._lock:
            drained, self._samples = self._samples, []
            self._warned = False
            self._total_drained += len(drained)
        return drained

    def drain_and_average(self) -> Optional[AveragedSample]:
        """Drain and return the field-wise mean, or None if nothing was buffered."""
        drained = self.drain()
        if not drained:
            return None
        return AveragedSample.from_samples(drained)

    def peek(self) -> Optional[Sample]:
        """Most recently appended sample; survives drains."""
        with self._lock:
            return self._latest

    def size(self) -> int:
        with self._lock:
            return len(self._samples)

    def snapshot(self) -> List[Sample]:
        """Copy of the buffered samples without draining them."""
        with self._lock:
            return list(self._samples)

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._samples),
                "total_appended": self._total_appended,
                "total_drained": self._total_drained,
                "warn_size": self._warn_size,
            }
