from .coverage import CoverageStrategy
from .custom import CustomStrategy
from .date import DateStrategy
from .endorsement import EndorsementStrategy
from .limit import LimitStrategy

__all__ = [
    "CoverageStrategy",
    "CustomStrategy",
    "DateStrategy",
    "EndorsementStrategy",
    "LimitStrategy",
]
