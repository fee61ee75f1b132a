"""Step records and the append-only audit trail of a creation session."""

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel

from empforge.exceptions import AuditOrderError, StepFinalizedError


class StepKind(str, Enum):
    REASONING = "reasoning"
    ACTING = "acting"


class StepPhase(str, Enum):
    INTENT_ANALYSIS = "intent_analysis"
    CLARIFICATION = "clarification"
    REQUIREMENT_DERIVATION = "requirement_derivation"
    CONFIG_GENERATION = "config_generation"
    OPTIMIZATION = "optimization"
    VALIDATION = "validation"
    REPAIR = "repair"


class StepStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


DEFAULT_CONFIDENCE = {
    StepKind.REASONING: 0.8,
    StepKind.ACTING: 0.9,
}


def _short_id() -> str:
    return uuid.uuid4().hex[:12]


def to_plain(value: Any) -> Any:
    """Convert step payloads (dataclasses, models, enums) to plain data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json', exclude_none=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_plain(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class Step:
    """One reasoning or acting action of the pipeline.

    A step is created ``pending`` just before its stage runs, moves to
    ``processing`` when the stage starts and ends ``completed`` or
    ``error``. Once finished it no longer changes.
    """
    kind: StepKind
    phase: StepPhase
    title: str
    content: str
    input: Any = None
    output: Any = None
    id: str = field(default_factory=_short_id)
    timestamp: datetime = field(default_factory=datetime.now)
    confidence: Optional[float] = None
    status: StepStatus = StepStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None

    def __post_init__(self):
        if self.confidence is None:
            self.confidence = DEFAULT_CONFIDENCE[self.kind]
        if not 0 <= self.confidence <= 1:
            raise ValueError(f"Step confidence must be within [0, 1], got {self.confidence}")

    @property
    def finished(self) -> bool:
        return self.status in (StepStatus.COMPLETED, StepStatus.ERROR)

    def _ensure_open(self):
        if self.finished:
            raise StepFinalizedError(self.id)

    def begin(self) -> None:
        self._ensure_open()
        self.status = StepStatus.PROCESSING
        self.started_at = datetime.now()

    def complete(self, output: Any = None, error: str | None = None) -> None:
        """Finish the step successfully.

        ``error`` may carry a message even on completion; the repair stage
        uses it for unresolved issues.
        """
        self._finish(StepStatus.COMPLETED, output, error)

    def fail(self, error: str | BaseException, output: Any = None) -> None:
        self._finish(StepStatus.ERROR, output, str(error))

    def _finish(self, status: StepStatus, output: Any, error: str | None) -> None:
        self._ensure_open()
        self.completed_at = datetime.now()
        started_at = self.started_at or self.timestamp
        self.duration_ms = (self.completed_at - started_at).total_seconds() * 1000
        if output is not None:
            self.output = output
        if error is not None:
            self.error = error
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "phase": self.phase.value,
            "title": self.title,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
            "status": self.status.value,
        }
        if self.input is not None:
            d["input"] = to_plain(self.input)
        if self.output is not None:
            d["output"] = to_plain(self.output)
        if self.duration_ms is not None:
            d["duration_ms"] = round(self.duration_ms, 2)
        if self.error is not None:
            d["error"] = self.error
        return d


class StepLog:
    """Append-only, timestamp-ordered list of steps."""

    def __init__(self) -> None:
        self._steps: list[Step] = []

    def append(self, step: Step) -> Step:
        if self._steps and step.timestamp < self._steps[-1].timestamp:
            raise AuditOrderError(step.id)
        self._steps.append(step)
        return step

    @property
    def last(self) -> Step | None:
        return self._steps[-1] if self._steps else None

    def by_phase(self, phase: StepPhase) -> list[Step]:
        return [step for step in self._steps if step.phase == phase]

    def to_list(self) -> list[dict[str, Any]]:
        return [step.to_dict() for step in self._steps]

    def __iter__(self) -> Iterator[Step]:
        return iter(tuple(self._steps))

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]
