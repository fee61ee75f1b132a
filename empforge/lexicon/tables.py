"""Static lookup tables shared by every pipeline stage.

The tables live as versioned YAML files in ``empforge/lexicon/data`` and are
loaded once into frozen pydantic models. Stages receive them by reference;
nothing mutates them after loading.
"""

import logging
from functools import lru_cache
from importlib import resources
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing_extensions import Annotated

from empforge.exceptions import LexiconLoadError

logger = logging.getLogger(__name__)

Tone = Literal['friendly', 'professional', 'casual', 'formal']


class _Table(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')


class StructurePattern(_Table):
    name: str
    pattern: str
    weight: Annotated[float, Field(ge=0, le=1)]


class ComplexityThresholds(_Table):
    simple_max_length: int
    simple_max_tools: int
    complex_min_length: int
    complex_min_tools: int
    complex_min_responsibilities: int


class LengthBounds(_Table):
    min: int
    max: int


class Lexicon(_Table):
    """Vocabulary and patterns for intent analysis."""
    version: int
    punctuation: dict[str, str]
    departments: tuple[str, ...]
    roles: tuple[str, ...]
    personality_traits: tuple[str, ...]
    intent_verbs: Annotated[dict[str, tuple[str, ...]], Field(description='Ordered classification groups')]
    intent_keywords: Annotated[dict[str, tuple[str, ...]], Field(description='Keywords for the overlap ratio')]
    structure_patterns: tuple[StructurePattern, ...]
    specific_info_pattern: str
    name_patterns: tuple[str, ...]
    responsibility_patterns: tuple[str, ...]
    constraint_patterns: tuple[str, ...]
    min_capture_length: Annotated[int, Field(default=3)]
    tool_synonyms: dict[str, tuple[str, ...]]
    urgency_keywords: dict[Literal['high', 'medium', 'low'], tuple[str, ...]]
    complexity: ComplexityThresholds
    domain_keywords: dict[str, tuple[str, ...]]
    generic_domain: str
    length_bounds: LengthBounds


class PersonaTemplate(_Table):
    system_prompt: str
    personality: str
    default_tools: tuple[str, ...]
    tone: Tone


class DepartmentProfile(_Table):
    code: Annotated[str | None, Field(default=None)]
    default_name: Annotated[str | None, Field(default=None)]
    template: Annotated[PersonaTemplate | None, Field(default=None)]
    permissions: Annotated[tuple[str, ...], Field(default=())]
    knowledge_domains: Annotated[tuple[str, ...], Field(default=())]
    recommended_tools: Annotated[tuple[str, ...], Field(default=())]
    suggestions: Annotated[tuple[str, ...], Field(default=())]


class GenericProfile(_Table):
    department: str
    name: str
    description: str
    system_prompt: str
    personality: str
    tone: Tone
    code: str
    default_tools: tuple[str, ...]
    knowledge_domains: tuple[str, ...]


class SlotTable(_Table):
    base: tuple[str, ...]
    with_department: str
    by_tool: dict[str, str]


class DepartmentCatalog(_Table):
    """Per-department templates and the generic fallbacks."""
    version: int
    generic: GenericProfile
    base_permissions: tuple[str, ...]
    elevated_permissions: tuple[str, ...]
    tool_inference: dict[str, tuple[str, ...]]
    skills_by_tool: dict[str, str]
    skills_by_responsibility: dict[str, str]
    slots: SlotTable
    departments: dict[str, DepartmentProfile]

    def profile(self, department: str | None) -> DepartmentProfile:
        """Profile of *department*, or an empty profile when it is not catalogued."""
        if department and department in self.departments:
            return self.departments[department]
        return _EMPTY_PROFILE

    def code(self, department: str | None) -> str:
        return self.profile(department).code or self.generic.code


_EMPTY_PROFILE = DepartmentProfile()


def _read_table(name: str) -> dict:
    try:
        text = resources.files('empforge.lexicon').joinpath('data').joinpath(name).read_text(encoding='utf-8')
    except FileNotFoundError as e:
        raise LexiconLoadError(name, str(e)) from e
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise LexiconLoadError(name, 'top level must be a mapping')
    return data


@lru_cache(maxsize=None)
def load_lexicon() -> Lexicon:
    try:
        lexicon = Lexicon.model_validate(_read_table('lexicon.yml'))
    except ValidationError as e:
        raise LexiconLoadError('lexicon.yml', str(e)) from e
    logger.debug(f"Loaded lexicon v{lexicon.version}")
    return lexicon


@lru_cache(maxsize=None)
def load_catalog() -> DepartmentCatalog:
    try:
        catalog = DepartmentCatalog.model_validate(_read_table('departments.yml'))
    except ValidationError as e:
        raise LexiconLoadError('departments.yml', str(e)) from e
    logger.debug(f"Loaded department catalog v{catalog.version} with {len(catalog.departments)} departments")
    return catalog
