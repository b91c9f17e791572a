from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


class _Absent:
    """Marker for a column that does not exist on a row.

    Distinct from ``0`` and ``None``; falsy so display formatting can treat it
    like an empty value.
    """

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __copy__(self) -> "_Absent":
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> "_Absent":
        return self

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


HTML_CONTEXT = "html"
MACHINE_CONTEXT = "machine"
RENDER_CONTEXTS = (HTML_CONTEXT, MACHINE_CONTEXT)


def _noop_logger(msg: str) -> None:
    pass


@dataclass
class EvaluationContext:
    period: str | None = None
    date: str | None = None
    segment: str | None = None
    render_context: str = HTML_CONTEXT
    settings: dict[str, Any] = field(default_factory=dict)
    logger: Callable[[str], None] = _noop_logger


@dataclass
class EvaluationSummary:
    rows: int
    active: list[str]
    inactive: list[str]
    computed: dict[str, int]
    removed_columns: list[str]


@dataclass(frozen=True)
class TopDimensionEntry:
    name: Any
    nb_conversions: Any
    conversion_rate: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "nb_conversions": self.nb_conversions,
            "conversion_rate": self.conversion_rate,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class GoalDefinition:
    id_goal: str
    name: str
    allow_multiple: bool = False
