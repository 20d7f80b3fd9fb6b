from __future__ import annotations

from enum import Enum
from typing import Union

from domain.errors import InvalidEnvironment


class BuildStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UNSTABLE = "unstable"
    UNKNOWN = "unknown"


class DeploymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class DeploymentAction(str, Enum):
    DEPLOY = "deploy"
    BLUE_GREEN = "blue_green"
    ROLLBACK = "rollback"


class Environment(str, Enum):
    STAGING = "staging"
    PRODUCTION = "production"
    BLUE = "blue"
    GREEN = "green"

    @property
    def is_blue_green_slot(self) -> bool:
        return self in {Environment.BLUE, Environment.GREEN}

    @property
    def other_slot(self) -> "Environment":
        if self == Environment.BLUE:
            return Environment.GREEN
        if self == Environment.GREEN:
            return Environment.BLUE
        raise ValueError(f"{self.value} is not a blue/green slot")


BLUE_GREEN_SLOTS: tuple[Environment, ...] = (Environment.BLUE, Environment.GREEN)


def parse_environment(value: Union[Environment, str]) -> Environment:
    if isinstance(value, Environment):
        return value
    try:
        return Environment((value or "").strip().lower())
    except ValueError as exc:
        raise InvalidEnvironment(value) from exc
