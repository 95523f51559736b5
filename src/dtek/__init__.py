"""DTEK outage directory core.

Reads the public DTEK shutdowns site: region directories (locations and
streets), weekly outage schedules, and per-street building statuses.
"""

from src.dtek.models import BuildingStatus, DirectorySnapshot, ScheduleRange, StatusReport
from src.dtek.regions import DEFAULT_REGION, REGIONS, Region
from src.dtek.result import Err, Ok, Result
from src.dtek.retry import with_retry
from src.dtek.service import DtekService, ServiceRegistry, create_registry

__all__ = [
    "DtekService",
    "ServiceRegistry",
    "create_registry",
    "with_retry",
    "Region",
    "REGIONS",
    "DEFAULT_REGION",
    "DirectorySnapshot",
    "ScheduleRange",
    "BuildingStatus",
    "StatusReport",
    "Ok",
    "Err",
    "Result",
]
