from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing_extensions import Annotated

from empforge.exceptions import InvalidConfigPatchError
from .requirements import MemoryStrategy


class _FormModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')


class QuickSettings(_FormModel):
    tone: Annotated[str, Field(default='professional')]
    response_length: Annotated[Literal['short', 'moderate', 'detailed'], Field(default='moderate')]
    creativity: Annotated[Literal['conservative', 'balanced', 'creative'], Field(default='balanced')]


class CompressionConfig(_FormModel):
    enabled: Annotated[bool, Field(default=True)]
    strategy: Annotated[Literal['adaptive', 'truncate', 'summarize'], Field(default='adaptive')]
    trigger_threshold: Annotated[int, Field(default=4000, description='Token count that triggers compression')]
    preserve_quality: Annotated[bool, Field(default=True)]
    max_compression_ratio: Annotated[float, Field(default=0.5, gt=0, le=0.5)]


class ContextConfig(_FormModel):
    max_length: Annotated[int, Field(default=8000)]
    memory_strategy: Annotated[MemoryStrategy, Field(default=MemoryStrategy.ADAPTIVE)]
    cleanup_rules: Annotated[list[dict[str, Any]], Field(default_factory=list)]


class PromptConfig(_FormModel):
    mode: Annotated[Literal['simple', 'advanced'], Field(default='simple')]
    base_prompt: Annotated[str, Field(default='')]
    slots: Annotated[list[str], Field(default_factory=list)]
    quick_settings: Annotated[QuickSettings, Field(default_factory=QuickSettings)]
    compression_config: Annotated[CompressionConfig | None, Field(default=None)]
    context_config: Annotated[ContextConfig | None, Field(default=None)]


class EmployeeForm(_FormModel):
    """The digital employee configuration as the downstream editor sees it.

    Every field is optional so that the record can describe a partially
    filled configuration; :meth:`merge` applies partial patches.
    """
    name: Annotated[str | None, Field(default=None)]
    employee_number: Annotated[str | None, Field(default=None)]
    description: Annotated[str | None, Field(default=None)]
    department: Annotated[str | None, Field(default=None)]
    system_prompt: Annotated[str | None, Field(default=None)]
    personality: Annotated[str | None, Field(default=None)]
    responsibilities: Annotated[list[str] | None, Field(default=None)]
    example_dialogues: Annotated[list[dict[str, Any]] | None, Field(default=None)]
    enable_mentor: Annotated[bool | None, Field(default=None)]
    allowed_tools: Annotated[list[str] | None, Field(default=None)]
    resource_permissions: Annotated[list[dict[str, Any]] | None, Field(default=None)]
    can_self_learn: Annotated[bool | None, Field(default=None)]
    initial_faqs: Annotated[list[dict[str, Any]] | None, Field(default=None)]
    prompt_config: Annotated[PromptConfig | None, Field(default=None)]

    def filled(self, field_name: str) -> bool:
        """Whether *field_name* holds a non-empty value."""
        return bool(getattr(self, field_name))

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def merge(self, patch: Mapping[str, Any]) -> 'EmployeeForm':
        """Return a new form with *patch* applied on top of this one."""
        unknown = sorted(set(patch) - set(type(self).model_fields))
        if unknown:
            raise InvalidConfigPatchError(f"unknown fields {', '.join(unknown)}")
        data = self.model_dump(exclude_unset=True)
        data.update(patch)
        try:
            return type(self).model_validate(data)
        except ValidationError as e:
            raise InvalidConfigPatchError(str(e)) from e
