"""The requirement tree between free text and a concrete configuration."""

from dataclasses import dataclass
from enum import Enum

from .analysis import Urgency


class MemoryStrategy(str, Enum):
    SHORT = "short"
    LONG = "long"
    ADAPTIVE = "adaptive"


@dataclass(frozen=True)
class BasicRequirements:
    name: str
    department: str
    description: str
    priority: Urgency


@dataclass(frozen=True)
class PersonaRequirements:
    system_prompt: str
    personality: str
    responsibilities: tuple[str, ...]
    tone: str
    expertise: tuple[str, ...]


@dataclass(frozen=True)
class CapabilityRequirements:
    allowed_tools: tuple[str, ...]
    permissions: tuple[str, ...]
    knowledge_domains: tuple[str, ...]
    special_skills: tuple[str, ...]


@dataclass(frozen=True)
class AdvancedRequirements:
    compression_needed: bool
    slot_requirements: tuple[str, ...]
    memory_strategy: MemoryStrategy
    learning_enabled: bool


@dataclass(frozen=True)
class ConfigRequirements:
    basic: BasicRequirements
    persona: PersonaRequirements
    capabilities: CapabilityRequirements
    advanced: AdvancedRequirements
