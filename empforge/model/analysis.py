"""Records produced by intent analysis."""

from dataclasses import dataclass, field
from enum import Enum


class PrimaryIntent(str, Enum):
    CREATE_EMPLOYEE = "create_employee"
    MODIFY_EMPLOYEE = "modify_employee"
    HELP = "help"
    UNCLEAR = "unclear"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class MissingInfo(str, Enum):
    """Pieces of information a creation request should carry."""
    NAME = "员工姓名"
    DEPARTMENT = "所属部门"
    ROLE_OR_RESPONSIBILITIES = "职责或角色定义"
    PERSONALITY = "性格特点"


@dataclass(frozen=True)
class Entities:
    """Entities extracted from the request.

    ``None`` and empty tuples mean the request did not mention the entity;
    downstream stages fall back to department defaults in that case.
    """
    name: str | None = None
    department: str | None = None
    role: str | None = None
    personality: tuple[str, ...] = ()
    responsibilities: tuple[str, ...] = ()
    tools: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisContext:
    urgency: Urgency = Urgency.MEDIUM
    complexity: Complexity = Complexity.MODERATE
    domain: str = ""


@dataclass(frozen=True)
class IntentAnalysis:
    primary_intent: PrimaryIntent
    confidence: float
    entities: Entities = field(default_factory=Entities)
    context: AnalysisContext = field(default_factory=AnalysisContext)
    missing_info: tuple[MissingInfo, ...] = ()
    suggestions: tuple[str, ...] = ()

    @property
    def is_unclear(self) -> bool:
        return self.primary_intent == PrimaryIntent.UNCLEAR
