import logging
from typing import Any

from empforge.lexicon import DepartmentCatalog, load_catalog
from empforge.model import CompressionConfig, ConfigRequirements, GeneratedConfig, PromptConfig
from empforge.template import TemplateEnvironment

logger = logging.getLogger(__name__)

SHORT_PROMPT_LENGTH = 100
MIN_TOOL_COUNT = 3
SELF_REFERENCE_MARKER = '您是'


class ConfigOptimizer:
    """Computes an optional patch on top of a synthesized form.

    Each rule writes a different field, so the rules can be applied in any
    order and the patch stays the same.
    """

    def __init__(
            self,
            *,
            catalog: DepartmentCatalog | None = None,
            template_env: TemplateEnvironment | None = None,
            lang: str | None = None,
    ):
        self.catalog = catalog or load_catalog()
        self.template_env = template_env or TemplateEnvironment('empforge')
        self.lang = lang

    def optimize(self, generated: GeneratedConfig, requirements: ConfigRequirements) -> dict[str, Any]:
        form = generated.form
        patch: dict[str, Any] = {}

        if form.system_prompt and len(form.system_prompt) < SHORT_PROMPT_LENGTH:
            patch['system_prompt'] = self.enhance_prompt(form.system_prompt, requirements)

        if len(requirements.capabilities.allowed_tools) < MIN_TOOL_COUNT:
            patch['allowed_tools'] = self.recommend_tools(form.allowed_tools or [], requirements.basic.department)

        if requirements.advanced.compression_needed:
            prompt_config = form.prompt_config or PromptConfig()
            patch['prompt_config'] = prompt_config.model_copy(update={
                'mode': 'advanced',
                'compression_config': CompressionConfig(),
            }).model_dump(mode='json')

        if patch:
            logger.info(f"Optimizer patched: {', '.join(patch)}")
        return patch

    def enhance_prompt(self, prompt: str, requirements: ConfigRequirements) -> str:
        return self.template_env.render(
            'enhanced_prompt.jinja2',
            lang=self.lang,
            self_referential=SELF_REFERENCE_MARKER in prompt,
            department=requirements.basic.department,
            prompt=prompt,
            responsibilities=list(requirements.persona.responsibilities),
            personality=requirements.persona.personality,
        )

    def recommend_tools(self, current: list[str], department: str) -> list[str]:
        recommended = self.catalog.profile(department).recommended_tools
        return current + [tool for tool in recommended if tool not in current]
