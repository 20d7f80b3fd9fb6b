from .auth import build_auth_router
from .builds import build_builds_router
from .deploy import build_deploy_router
from .health import build_health_router

__all__ = [
    "build_auth_router",
    "build_builds_router",
    "build_deploy_router",
    "build_health_router",
]
