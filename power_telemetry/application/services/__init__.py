from .rollup_service import RollupService
from .alert_service import AlertService
from .ingestion_service import IngestionService

__all__ = [
    "RollupService",
    "AlertService",
    "IngestionService",
]
