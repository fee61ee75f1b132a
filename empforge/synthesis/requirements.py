import logging

from empforge.lexicon import DepartmentCatalog, load_catalog
from empforge.model import (
    AdvancedRequirements,
    AnalysisContext,
    BasicRequirements,
    CapabilityRequirements,
    Complexity,
    ConfigRequirements,
    Entities,
    IntentAnalysis,
    MemoryStrategy,
    PersonaRequirements,
)
from empforge.template import TemplateEnvironment

logger = logging.getLogger(__name__)

_MEMORY_STRATEGIES = {
    Complexity.SIMPLE: MemoryStrategy.SHORT,
    Complexity.COMPLEX: MemoryStrategy.LONG,
}


def _unique(*groups) -> tuple[str, ...]:
    return tuple(dict.fromkeys(item for group in groups for item in group))


class RequirementDeriver:
    """Maps an intent analysis onto the requirement tree.

    Derivation only reads the analysis and the static department catalog,
    so equal analyses always give equal requirements.
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

    def derive(self, analysis: IntentAnalysis) -> ConfigRequirements:
        entities, context = analysis.entities, analysis.context
        requirements = ConfigRequirements(
            basic=self._basic(entities, context),
            persona=self._persona(entities),
            capabilities=self._capabilities(entities, context),
            advanced=self._advanced(entities, context),
        )
        logger.debug(
            f"Derived requirements for '{requirements.basic.name}' "
            f"with {len(requirements.capabilities.allowed_tools)} tools"
        )
        return requirements

    def _department(self, entities: Entities) -> str:
        return entities.department or self.catalog.generic.department

    def default_name(self, department: str | None, role: str | None) -> str:
        if role:
            return f"AI-{role}"
        return self.catalog.profile(department).default_name or self.catalog.generic.name

    def describe(self, entities: Entities) -> str:
        parts = self.template_env.render_lines(
            'description.jinja2',
            lang=self.lang,
            department=entities.department,
            role=entities.role,
            responsibilities=list(entities.responsibilities),
            personality=list(entities.personality),
        )
        return '，'.join(parts) or self.catalog.generic.description

    def _basic(self, entities: Entities, context: AnalysisContext) -> BasicRequirements:
        return BasicRequirements(
            name=entities.name or self.default_name(entities.department, entities.role),
            department=self._department(entities),
            description=self.describe(entities),
            priority=context.urgency,
        )

    def _persona(self, entities: Entities) -> PersonaRequirements:
        template = self.catalog.profile(self._department(entities)).template
        generic = self.catalog.generic
        system_prompt = self.template_env.render(
            'persona_prompt.jinja2',
            lang=self.lang,
            base=template.system_prompt if template else generic.system_prompt,
            responsibilities=list(entities.responsibilities),
            constraints=list(entities.constraints),
        )
        if template:
            personality = template.personality
        else:
            personality = '、'.join(entities.personality) or generic.personality
        return PersonaRequirements(
            system_prompt=system_prompt,
            personality=personality,
            responsibilities=entities.responsibilities,
            tone=template.tone if template else generic.tone,
            expertise=self.special_skills(entities),
        )

    def _capabilities(self, entities: Entities, context: AnalysisContext) -> CapabilityRequirements:
        department = self._department(entities)
        profile = self.catalog.profile(department)
        default_tools = profile.template.default_tools if profile.template else self.catalog.generic.default_tools
        return CapabilityRequirements(
            allowed_tools=_unique(default_tools, entities.tools, self.infer_tools(entities.responsibilities)),
            permissions=self.permissions(department, context.complexity),
            knowledge_domains=profile.knowledge_domains or self.catalog.generic.knowledge_domains,
            special_skills=self.special_skills(entities),
        )

    def _advanced(self, entities: Entities, context: AnalysisContext) -> AdvancedRequirements:
        return AdvancedRequirements(
            compression_needed=context.complexity == Complexity.COMPLEX,
            slot_requirements=self.slot_requirements(entities),
            memory_strategy=_MEMORY_STRATEGIES.get(context.complexity, MemoryStrategy.ADAPTIVE),
            learning_enabled=True,
        )

    def infer_tools(self, responsibilities: tuple[str, ...]) -> tuple[str, ...]:
        return _unique(*(
            tools
            for responsibility in responsibilities
            for keyword, tools in self.catalog.tool_inference.items()
            if keyword in responsibility
        ))

    def permissions(self, department: str, complexity: Complexity) -> tuple[str, ...]:
        permissions = list(self.catalog.base_permissions)
        if complexity == Complexity.COMPLEX:
            permissions.extend(self.catalog.elevated_permissions)
        permissions.extend(self.catalog.profile(department).permissions)
        return tuple(permissions)

    def special_skills(self, entities: Entities) -> tuple[str, ...]:
        skills = [skill for tool, skill in self.catalog.skills_by_tool.items() if tool in entities.tools]
        skills.extend(
            skill for keyword, skill in self.catalog.skills_by_responsibility.items()
            if any(keyword in r for r in entities.responsibilities)
        )
        return tuple(skills)

    def slot_requirements(self, entities: Entities) -> tuple[str, ...]:
        slots = self.catalog.slots
        required = list(slots.base)
        if entities.department:
            required.append(slots.with_department)
        required.extend(slot for tool, slot in slots.by_tool.items() if tool in entities.tools)
        return tuple(required)
