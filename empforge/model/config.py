"""Records produced by configuration synthesis."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from .form import EmployeeForm
from .validation import ValidationResult


class SuggestionType(str, Enum):
    IMPROVEMENT = "improvement"
    WARNING = "warning"
    OPTIMIZATION = "optimization"
    ENHANCEMENT = "enhancement"


@dataclass(frozen=True)
class ConfigSuggestion:
    type: SuggestionType
    field: str
    title: str
    description: str
    severity: Literal['low', 'medium', 'high']
    auto_applicable: bool


@dataclass(frozen=True)
class ConfigAlternative:
    """A variant of the synthesized form; ``changes`` is a partial form patch."""
    id: str
    name: str
    description: str
    changes: dict[str, Any]
    pros: tuple[str, ...]
    cons: tuple[str, ...]
    score: float


@dataclass(frozen=True)
class GeneratedConfig:
    form: EmployeeForm
    confidence: float
    completeness: float
    quality: float
    validation: ValidationResult
    suggestions: tuple[ConfigSuggestion, ...] = ()
    alternatives: tuple[ConfigAlternative, ...] = field(default_factory=tuple)

    def alternative(self, alternative_id: str) -> ConfigAlternative | None:
        return next((a for a in self.alternatives if a.id == alternative_id), None)
