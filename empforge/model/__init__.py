from .analysis import AnalysisContext, Complexity, Entities, IntentAnalysis, MissingInfo, PrimaryIntent, Urgency
from .config import ConfigAlternative, ConfigSuggestion, GeneratedConfig, SuggestionType
from .form import CompressionConfig, ContextConfig, EmployeeForm, PromptConfig, QuickSettings
from .requirements import (
    AdvancedRequirements,
    BasicRequirements,
    CapabilityRequirements,
    ConfigRequirements,
    MemoryStrategy,
    PersonaRequirements,
)
from .validation import ValidationIssue, ValidationResult, ValidationWarning

__all__ = [
    "AdvancedRequirements",
    "AnalysisContext",
    "BasicRequirements",
    "CapabilityRequirements",
    "Complexity",
    "CompressionConfig",
    "ConfigAlternative",
    "ConfigRequirements",
    "ConfigSuggestion",
    "ContextConfig",
    "EmployeeForm",
    "Entities",
    "GeneratedConfig",
    "IntentAnalysis",
    "MemoryStrategy",
    "MissingInfo",
    "PersonaRequirements",
    "PrimaryIntent",
    "PromptConfig",
    "QuickSettings",
    "SuggestionType",
    "Urgency",
    "ValidationIssue",
    "ValidationResult",
    "ValidationWarning",
]
