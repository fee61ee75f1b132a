import logging
import time
from typing import Callable

from empforge.lexicon import DepartmentCatalog, load_catalog
from empforge.model import (
    CompressionConfig,
    ConfigAlternative,
    ConfigRequirements,
    ConfigSuggestion,
    ContextConfig,
    EmployeeForm,
    GeneratedConfig,
    PromptConfig,
    QuickSettings,
    SuggestionType,
    Urgency,
)
from .validation import ConfigValidator, completeness_ratio, timestamp_suffix

logger = logging.getLogger(__name__)

ENHANCED_EXTRA_TOOLS = ('data_analysis', 'report_generator')
SIMPLIFIED_MAX_TOOLS = 3
CONTEXT_MAX_LENGTH = 8000

# (predicate, weight) pairs summed into the quality score
_QUALITY_WEIGHTS: tuple[tuple[Callable[[EmployeeForm], bool], float], ...] = (
    (lambda f: bool(f.system_prompt) and len(f.system_prompt) > 100, 0.3),
    (lambda f: bool(f.responsibilities), 0.2),
    (lambda f: bool(f.allowed_tools), 0.2),
    (lambda f: bool(f.personality) and len(f.personality) > 5, 0.15),
    (lambda f: bool(f.description) and len(f.description) > 10, 0.15),
)


class ConfigSynthesizer:
    """Turns a requirement tree into a concrete form plus quality metrics.

    The clock only feeds the employee number suffix; everything else is a
    function of the requirements.
    """

    def __init__(
            self,
            *,
            catalog: DepartmentCatalog | None = None,
            validator: ConfigValidator | None = None,
            clock: Callable[[], float] = time.time,
            enable_suggestions: bool = True,
            enable_alternatives: bool = True,
    ):
        self.catalog = catalog or load_catalog()
        self.validator = validator or ConfigValidator()
        self.clock = clock
        self.enable_suggestions = enable_suggestions
        self.enable_alternatives = enable_alternatives

    def synthesize(self, requirements: ConfigRequirements) -> GeneratedConfig:
        form = self.build_form(requirements)
        generated = GeneratedConfig(
            form=form,
            confidence=self.confidence(requirements),
            completeness=completeness_ratio(form),
            quality=self.quality(form),
            validation=self.validator.validate(form),
            suggestions=self.suggestions(form, requirements) if self.enable_suggestions else (),
            alternatives=self.alternatives(form, requirements) if self.enable_alternatives else (),
        )
        logger.debug(
            f"Synthesized '{form.name}' ({form.employee_number}): confidence={generated.confidence:.2f}, "
            f"completeness={generated.completeness:.2f}, quality={generated.quality:.2f}"
        )
        return generated

    def employee_number(self, department: str) -> str:
        return f"{self.catalog.code(department)}{timestamp_suffix(self.clock)}"

    def build_form(self, requirements: ConfigRequirements) -> EmployeeForm:
        basic, persona, capabilities = requirements.basic, requirements.persona, requirements.capabilities
        return EmployeeForm(
            name=basic.name,
            employee_number=self.employee_number(basic.department),
            description=basic.description,
            department=basic.department,
            system_prompt=persona.system_prompt,
            personality=persona.personality,
            responsibilities=list(persona.responsibilities),
            example_dialogues=[],
            enable_mentor=False,
            allowed_tools=list(capabilities.allowed_tools),
            resource_permissions=[],
            can_self_learn=True,
            initial_faqs=[],
            prompt_config=self.prompt_config(requirements),
        )

    @staticmethod
    def prompt_config(requirements: ConfigRequirements) -> PromptConfig:
        persona, advanced = requirements.persona, requirements.advanced
        config = PromptConfig(
            mode='simple',
            base_prompt=persona.system_prompt,
            quick_settings=QuickSettings(tone=persona.tone),
        )
        if not advanced.compression_needed:
            return config
        return config.model_copy(update={
            'mode': 'advanced',
            'compression_config': CompressionConfig(),
            'context_config': ContextConfig(max_length=CONTEXT_MAX_LENGTH, memory_strategy=advanced.memory_strategy),
        })

    @staticmethod
    def confidence(requirements: ConfigRequirements) -> float:
        confidence = 0.7
        if requirements.basic.priority == Urgency.HIGH:
            confidence += 0.1
        if len(requirements.capabilities.allowed_tools) > 2:
            confidence += 0.1
        return min(confidence, 1.0)

    @staticmethod
    def quality(form: EmployeeForm) -> float:
        return min(sum(weight for check, weight in _QUALITY_WEIGHTS if check(form)), 1.0)

    @staticmethod
    def suggestions(form: EmployeeForm, requirements: ConfigRequirements) -> tuple[ConfigSuggestion, ...]:
        suggestions = []
        if not form.system_prompt or len(form.system_prompt) < 50:
            suggestions.append(ConfigSuggestion(
                type=SuggestionType.IMPROVEMENT,
                field='system_prompt',
                title='系统提示词过短',
                description='建议丰富系统提示词内容，以提升AI的表现效果',
                severity='medium',
                auto_applicable=False,
            ))
        if not form.allowed_tools:
            suggestions.append(ConfigSuggestion(
                type=SuggestionType.ENHANCEMENT,
                field='allowed_tools',
                title='未配置工具',
                description='建议为数字员工配置相关工具以提升工作效率',
                severity='medium',
                auto_applicable=True,
            ))
        if not form.responsibilities:
            suggestions.append(ConfigSuggestion(
                type=SuggestionType.IMPROVEMENT,
                field='responsibilities',
                title='职责定义不明确',
                description='建议明确定义数字员工的主要职责',
                severity='high',
                auto_applicable=False,
            ))
        if requirements.advanced.compression_needed:
            suggestions.append(ConfigSuggestion(
                type=SuggestionType.OPTIMIZATION,
                field='prompt_config',
                title='启用高级配置',
                description='检测到复杂需求，建议启用高级配置模式',
                severity='low',
                auto_applicable=True,
            ))
        return tuple(suggestions)

    @staticmethod
    def alternatives(form: EmployeeForm, requirements: ConfigRequirements) -> tuple[ConfigAlternative, ...]:
        tools = list(form.allowed_tools or [])
        prompt_config = (form.prompt_config or PromptConfig()).model_dump(mode='json')
        alternatives = []
        if requirements.advanced.compression_needed:
            alternatives.append(ConfigAlternative(
                id='simplified',
                name='简化版本',
                description='减少复杂功能，专注核心能力',
                changes=dict(
                    allowed_tools=tools[:SIMPLIFIED_MAX_TOOLS],
                    prompt_config={**prompt_config, 'mode': 'simple'},
                ),
                pros=('配置简单', '响应快速', '易于维护'),
                cons=('功能有限', '扩展性较差'),
                score=0.7,
            ))
        alternatives.append(ConfigAlternative(
            id='enhanced',
            name='增强版本',
            description='添加更多工具和高级功能',
            changes=dict(
                allowed_tools=tools + [t for t in ENHANCED_EXTRA_TOOLS if t not in tools],
                can_self_learn=True,
                prompt_config={**prompt_config, 'mode': 'advanced'},
            ),
            pros=('功能丰富', '智能化程度高', '适应性强'),
            cons=('配置复杂', '资源消耗较大'),
            score=0.85,
        ))
        return tuple(alternatives)
