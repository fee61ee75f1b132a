import logging
import re

from empforge.lexicon import DepartmentCatalog, Lexicon, load_catalog, load_lexicon
from empforge.model import AnalysisContext, Complexity, Entities, IntentAnalysis, MissingInfo, PrimaryIntent, Urgency
from empforge.template import TemplateEnvironment

logger = logging.getLogger(__name__)


def _unique(items) -> tuple[str, ...]:
    """De-duplicate while keeping the first occurrence order."""
    return tuple(dict.fromkeys(items))


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class IntentAnalyzer:
    """Rule-based intent classification and entity extraction.

    Keyword lookups run on the case-folded text, regex captures on the
    punctuation-normalized text so extracted values keep their case.
    """

    def __init__(
            self,
            *,
            lexicon: Lexicon | None = None,
            catalog: DepartmentCatalog | None = None,
            template_env: TemplateEnvironment | None = None,
            lang: str | None = None,
    ):
        self.lexicon = lexicon or load_lexicon()
        self.catalog = catalog or load_catalog()
        self.template_env = template_env or TemplateEnvironment('empforge')
        self.lang = lang

        lex = self.lexicon
        self._punctuation = str.maketrans(lex.punctuation)
        self._intent_verbs = {
            PrimaryIntent(intent): tuple(k.lower() for k in keywords)
            for intent, keywords in lex.intent_verbs.items()
        }
        self._intent_keywords = {
            PrimaryIntent(intent): tuple(k.lower() for k in keywords)
            for intent, keywords in lex.intent_keywords.items()
        }
        self._structure = [(re.compile(p.pattern, re.IGNORECASE), p.weight) for p in lex.structure_patterns]
        self._specific_info = re.compile(lex.specific_info_pattern)
        self._name_patterns = [re.compile(p, re.IGNORECASE) for p in lex.name_patterns]
        self._responsibility_patterns = [re.compile(p) for p in lex.responsibility_patterns]
        self._constraint_patterns = [re.compile(p) for p in lex.constraint_patterns]
        self._tool_synonyms = {
            tool: tuple(s.lower() for s in synonyms) for tool, synonyms in lex.tool_synonyms.items()
        }

    def normalize(self, text: str) -> str:
        return text.translate(self._punctuation).strip()

    def analyze(self, text: str) -> IntentAnalysis:
        normalized = self.normalize(text)
        folded = normalized.lower()

        intent = self.classify(folded)
        confidence = self.confidence(normalized, folded, intent)
        entities = self.extract_entities(normalized, folded)
        context = self.infer_context(normalized, folded, entities)
        missing = self.missing_info(entities, intent)
        suggestions = self.suggest(entities, missing, context)

        logger.debug(f"Classified request as {intent.value} with confidence {confidence:.2f}")
        return IntentAnalysis(
            primary_intent=intent,
            confidence=confidence,
            entities=entities,
            context=context,
            missing_info=missing,
            suggestions=suggestions,
        )

    def _mentions(self, folded: str, terms) -> bool:
        return any(term.lower() in folded for term in terms)

    def classify(self, folded: str) -> PrimaryIntent:
        for intent, verbs in self._intent_verbs.items():
            if any(verb in folded for verb in verbs):
                return intent
        if self._mentions(folded, self.lexicon.departments) or self._mentions(folded, self.lexicon.roles):
            return PrimaryIntent.CREATE_EMPLOYEE
        return PrimaryIntent.UNCLEAR

    def confidence(self, normalized: str, folded: str, intent: PrimaryIntent) -> float:
        score = 0.5

        keywords = self._intent_keywords.get(intent, ())
        matched = sum(1 for keyword in keywords if keyword in folded)
        score += 0.3 * matched / max(len(keywords), 1)

        structure = sum(weight for pattern, weight in self._structure if pattern.search(folded))
        score += 0.2 * min(structure, 1.0)

        bounds = self.lexicon.length_bounds
        if bounds.min < len(normalized) < bounds.max:
            score += 0.1

        if self._has_specific_info(normalized, folded):
            score += 0.1

        return _clamp(score)

    def _has_specific_info(self, normalized: str, folded: str) -> bool:
        lex = self.lexicon
        return (
            self._mentions(folded, lex.departments)
            or self._mentions(folded, lex.roles)
            or self._mentions(folded, lex.personality_traits)
            or self._specific_info.search(normalized) is not None
        )

    def extract_entities(self, normalized: str, folded: str) -> Entities:
        lex = self.lexicon
        return Entities(
            name=self._extract_name(normalized),
            department=next((d for d in lex.departments if d.lower() in folded), None),
            role=next((r for r in lex.roles if r.lower() in folded), None),
            personality=_unique(t for t in lex.personality_traits if t.lower() in folded),
            responsibilities=self._capture_all(self._responsibility_patterns, normalized),
            tools=_unique(
                tool for tool, synonyms in self._tool_synonyms.items()
                if any(s in folded for s in synonyms)
            ),
            constraints=self._capture_all(self._constraint_patterns, normalized),
        )

    def _extract_name(self, normalized: str) -> str | None:
        for pattern in self._name_patterns:
            match = pattern.search(normalized)
            if match and match.group(1) and match.group(1).strip():
                return match.group(1).strip()
        return None

    def _capture_all(self, patterns: list[re.Pattern], normalized: str) -> tuple[str, ...]:
        captures = []
        for pattern in patterns:
            for match in pattern.finditer(normalized):
                value = match.group(1).strip()
                if len(value) >= self.lexicon.min_capture_length:
                    captures.append(value)
        return _unique(captures)

    def infer_context(self, normalized: str, folded: str, entities: Entities) -> AnalysisContext:
        lex = self.lexicon

        urgency = Urgency.MEDIUM
        for level, keywords in lex.urgency_keywords.items():
            if self._mentions(folded, keywords):
                urgency = Urgency(level)
                break

        thresholds = lex.complexity
        length = len(normalized)
        if length < thresholds.simple_max_length and len(entities.tools) <= thresholds.simple_max_tools:
            complexity = Complexity.SIMPLE
        elif (length > thresholds.complex_min_length
              or len(entities.tools) > thresholds.complex_min_tools
              or len(entities.responsibilities) > thresholds.complex_min_responsibilities):
            complexity = Complexity.COMPLEX
        else:
            complexity = Complexity.MODERATE

        domain = entities.department
        if not domain:
            domain = next(
                (name for name, keywords in lex.domain_keywords.items() if self._mentions(folded, keywords)),
                lex.generic_domain,
            )
        return AnalysisContext(urgency=urgency, complexity=complexity, domain=domain)

    @staticmethod
    def missing_info(entities: Entities, intent: PrimaryIntent) -> tuple[MissingInfo, ...]:
        if intent != PrimaryIntent.CREATE_EMPLOYEE:
            return ()
        missing = []
        if not entities.name:
            missing.append(MissingInfo.NAME)
        if not entities.department:
            missing.append(MissingInfo.DEPARTMENT)
        if not entities.role and not entities.responsibilities:
            missing.append(MissingInfo.ROLE_OR_RESPONSIBILITIES)
        if not entities.personality:
            missing.append(MissingInfo.PERSONALITY)
        return tuple(missing)

    def suggest(self, entities: Entities, missing: tuple[MissingInfo, ...], context: AnalysisContext) -> tuple[str, ...]:
        return tuple(self.template_env.render_lines(
            'analysis_suggestions.jinja2',
            lang=self.lang,
            missing_name=MissingInfo.NAME in missing,
            missing_department=MissingInfo.DEPARTMENT in missing,
            missing_role=MissingInfo.ROLE_OR_RESPONSIBILITIES in missing,
            role=entities.role,
            department=entities.department,
            department_suggestions=self.catalog.profile(entities.department).suggestions,
            complexity=context.complexity.value,
            urgency=context.urgency.value,
        ))
