from enum import Enum

from pyaml_env import parse_config as parse_config_with_env
from pydantic import BaseModel, Field
from typing_extensions import Annotated


class ValidationPolicy(str, Enum):
    LENIENT = "lenient"
    STRICT = "strict"


class EngineConfig(BaseModel):
    confidence_threshold: Annotated[float, Field(
        default=0.7, ge=0, le=1, description='Analyses below this confidence branch into clarification')]
    max_reasoning_steps: Annotated[int, Field(default=10, gt=0, description='Upper bound of steps recorded per submitted input')]
    enable_suggestions: Annotated[bool, Field(default=True)]
    enable_alternatives: Annotated[bool, Field(default=True)]
    enable_validation: Annotated[bool, Field(default=True)]
    validation_policy: Annotated[ValidationPolicy, Field(
        default=ValidationPolicy.LENIENT,
        description='strict moves a session with unresolved validation errors to error')]
    stage_timeout: Annotated[float | None, Field(default=30.0, gt=0, description='Seconds allowed per stage')]
    session_timeout: Annotated[float | None, Field(
        default=None, gt=0, description='Seconds allowed per submitted input')]
    simulated_latency: Annotated[bool, Field(default=False, description='Sleep between stages like a remote backend')]
    template_lang: Annotated[str | None, Field(default='zh')]
    trail_dir: Annotated[str | None, Field(
        default=None, description='Directory for YAML step trails of finished sessions')]


def load_config(path: str) -> EngineConfig:
    """Read an engine config file, substituting environment variables."""
    with open(path, 'r', encoding='utf-8') as f:
        data = parse_config_with_env(data=f, tag=None)
    return EngineConfig.model_validate(data or {})
