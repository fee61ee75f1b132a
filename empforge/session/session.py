import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from empforge.model import ConfigRequirements, EmployeeForm, GeneratedConfig, IntentAnalysis, ValidationResult
from empforge.steps import StepLog, to_plain
from .state import CreationMode, SessionStatus


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:12]}"


@dataclass
class CreationSession:
    """One creation attempt and everything the pipeline produced for it.

    ``current_config`` starts as the synthesized form and then collects the
    optimizer, repair and manual patches; ``generated_config`` keeps the form
    as it was synthesized.
    """
    mode: CreationMode
    id: str = field(default_factory=new_session_id)
    status: SessionStatus = SessionStatus.INITIALIZING
    user_input: str = ''
    steps: StepLog = field(default_factory=StepLog)
    current_config: EmployeeForm = field(default_factory=EmployeeForm)
    analysis: IntentAnalysis | None = None
    requirements: ConfigRequirements | None = None
    generated_config: GeneratedConfig | None = None
    validation: ValidationResult | None = None
    started_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)
    # index of the first step recorded for the current submission
    submission_start: int = field(default=0, repr=False)

    def touch(self) -> None:
        self.updated_at = datetime.now()

    @property
    def processing_ms(self) -> float:
        return (self.updated_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "mode": self.mode.value,
            "status": self.status.value,
            "user_input": self.user_input,
            "started_at": self.started_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "current_config": to_plain(self.current_config),
        }
        if self.validation is not None:
            d["validation"] = to_plain(self.validation)
        if self.generated_config is not None:
            d["suggestions"] = to_plain(self.generated_config.suggestions)
            d["alternatives"] = [
                {"id": alt.id, "name": alt.name, "score": alt.score} for alt in self.generated_config.alternatives
            ]
        if self.metadata:
            d["metadata"] = to_plain(self.metadata)
        d["steps"] = self.steps.to_list()
        return d
