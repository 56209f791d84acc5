"""
Persistence ports used by the workers.

The flush worker only needs somewhere to put an hourly record; keeping it
behind this interface lets it run against a fake in tests.
"""
from abc import ABC, abstractmethod

from ...domain.entities import HourlyRecord


class HourlyRecordWriter(ABC):
    """Write side of the hourly tier."""

    @abstractmethod
    async def write(self, record: HourlyRecord) -> HourlyRecord:
        """
        Persist one hourly record.

        Args:
            record: Record to insert

        Returns:
            The stored record with its generated ID
        """
        pass
