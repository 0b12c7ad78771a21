"""Data models for envscan."""

from dataclasses import dataclass
from enum import Enum


class ItemStatus(Enum):
    """Collection status of a result item."""

    COLLECTED = "collected"
    NOT_COLLECTED = "not collected"


@dataclass(slots=True, frozen=True)
class EnvironRecord:
    """One ``name=value`` record split out of an environment stream."""

    name: str
    value: str


@dataclass(slots=True, frozen=True)
class ResultItem:
    """Immutable result of a scan for one variable (or one failed process)."""

    pid: int
    name: str | None = None
    value: str | None = None
    status: ItemStatus = ItemStatus.COLLECTED
    message: str | None = None

    def __post_init__(self) -> None:
        if self.status is ItemStatus.COLLECTED and (not self.name or self.value is None):
            raise ValueError("collected items need a name and a value")

    @property
    def collected(self) -> bool:
        return self.status is ItemStatus.COLLECTED

    def to_dict(self) -> dict:
        """Return a JSON-friendly representation, omitting unset fields."""
        data: dict = {"pid": self.pid, "status": self.status.value}
        if self.name is not None:
            data["name"] = self.name
        if self.value is not None:
            data["value"] = self.value
        if self.message is not None:
            data["message"] = self.message
        return data
