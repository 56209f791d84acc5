from .repositories import HourlyRecordWriter

__all__ = ["HourlyRecordWriter"]
