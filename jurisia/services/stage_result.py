"""
Tagged result type for analysis pipeline stages.

Every stage returns one of:

  Ok(value)                 - computed normally; safe to cache
  Degraded(value, reason)   - fallback value used after an upstream failure
  Unavailable(reason)       - nothing usable; the slot is rendered empty

The assembly step decides how each tag is rendered via ``render``.
"""
from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class StageStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclasses.dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    status: StageStatus = dataclasses.field(default=StageStatus.OK, init=False)


@dataclasses.dataclass(frozen=True)
class Degraded(Generic[T]):
    value: T
    reason: str
    status: StageStatus = dataclasses.field(default=StageStatus.DEGRADED, init=False)


@dataclasses.dataclass(frozen=True)
class Unavailable:
    reason: str
    status: StageStatus = dataclasses.field(default=StageStatus.UNAVAILABLE, init=False)


StageResult = Union[Ok[T], Degraded[T], Unavailable]


def render(result: "StageResult", empty: Any = None) -> Any:
    """Value to place in the aggregate: the carried value, or ``empty``."""
    if isinstance(result, (Ok, Degraded)):
        return result.value
    return empty
