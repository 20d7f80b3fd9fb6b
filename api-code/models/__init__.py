from .build import BuildRecord, BuildSummary
from .common import MongoModel, utc_now
from .deployment import Backup, DeploymentRecord, EnvironmentState, validate_version
from .metrics import MetricsSummary

__all__ = [
    "Backup",
    "BuildRecord",
    "BuildSummary",
    "DeploymentRecord",
    "EnvironmentState",
    "MetricsSummary",
    "MongoModel",
    "utc_now",
    "validate_version",
]
