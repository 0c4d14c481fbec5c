from enum import Enum

from pydantic import BaseModel


class ReadinessEnum(str, Enum):
    FAIL = "fail"
    """The component is not ready."""
    OK = "ok"
    """The component is ready."""


class ReadinessCheckModel(BaseModel):
    id: str  # Component name, e.g. "store" or "mail"
    status: ReadinessEnum


class ReadinessModel(BaseModel):
    """
    Aggregated readiness of the application.

    Status is OK only if every check is OK.
    """

    checks: list[ReadinessCheckModel]
    status: ReadinessEnum
