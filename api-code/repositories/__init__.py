from .build_records import BuildRecordRepository
from .deployments import DeploymentRepository
from .in_memory import InMemoryBuildRecordRepository, InMemoryDeploymentRepository

__all__ = [
    "BuildRecordRepository",
    "DeploymentRepository",
    "InMemoryBuildRecordRepository",
    "InMemoryDeploymentRepository",
]
