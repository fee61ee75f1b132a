from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    severity: Literal['error', 'warning'] = 'error'
    fix_suggestion: str | None = None


@dataclass(frozen=True)
class ValidationWarning:
    field: str
    message: str
    impact: Literal['low', 'medium', 'high'] = 'low'
    suggestion: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()
    score: int = 100
    completeness: float = 0.0
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def error_fields(self) -> list[str]:
        return [error.field for error in self.errors]
