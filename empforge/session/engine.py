import asyncio
import copy
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from empforge.analysis import IntentAnalyzer
from empforge.config import EngineConfig
from empforge.exceptions import (
    AlternativeNotFoundError,
    InvalidConfigPatchError,
    SessionStateError,
    StageFailedError,
    StageTimeoutError,
    StepLimitExceededError,
)
from empforge.export import TrailExporter
from empforge.lexicon import DepartmentCatalog, Lexicon, load_catalog, load_lexicon
from empforge.model import IntentAnalysis
from empforge.steps import Step, StepKind, StepPhase
from empforge.synthesis import ConfigOptimizer, ConfigRepairer, ConfigSynthesizer, ConfigValidator, RequirementDeriver
from empforge.template import TemplateEnvironment
from .channel import EngineChannel, LoggingChannel
from .latency import LatencyModel, NoLatency, SimulatedLatency
from .registry import SessionRegistry
from .session import CreationSession
from .state import CreationMode, Effect, SessionEvent, SessionStatus, transition

logger = logging.getLogger(__name__)

HANDOFF_TARGET = 'manual_configuration'
UNRESOLVED_REPAIR_MESSAGE = '无法自动修复，需要手动调整'


@dataclass(frozen=True)
class EngineStats:
    total_sessions: int
    completed_sessions: int
    error_sessions: int
    average_steps: float
    average_processing_time: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "completed_sessions": self.completed_sessions,
            "error_sessions": self.error_sessions,
            "average_steps": self.average_steps,
            "average_processing_time": self.average_processing_time,
        }


class CreationEngine:
    """Runs creation sessions through the analysis and synthesis pipeline.

    Every call that returns a session returns a deep copy; the live session
    objects never leave the engine. Within a session stages run strictly one
    after another; different sessions may interleave freely.
    """

    def __init__(
            self,
            config: EngineConfig | None = None,
            *,
            registry: SessionRegistry | None = None,
            channel: EngineChannel | None = None,
            latency: LatencyModel | None = None,
            exporter: TrailExporter | None = None,
            clock: Callable[[], float] = time.time,
            lexicon: Lexicon | None = None,
            catalog: DepartmentCatalog | None = None,
    ):
        self.config = config or EngineConfig()
        self.registry = registry or SessionRegistry()
        self.channel = channel or LoggingChannel(logger)
        if latency is None:
            latency = SimulatedLatency() if self.config.simulated_latency else NoLatency()
        self.latency = latency
        if exporter is None and self.config.trail_dir:
            exporter = TrailExporter(self.config.trail_dir)
        self.exporter = exporter

        lang = self.config.template_lang
        lexicon = lexicon or load_lexicon()
        catalog = catalog or load_catalog()
        self.template_env = TemplateEnvironment('empforge', default_lang=lang)
        self.analyzer = IntentAnalyzer(lexicon=lexicon, catalog=catalog, template_env=self.template_env, lang=lang)
        self.deriver = RequirementDeriver(catalog=catalog, template_env=self.template_env, lang=lang)
        self.validator = ConfigValidator()
        self.synthesizer = ConfigSynthesizer(
            catalog=catalog,
            validator=self.validator,
            clock=clock,
            enable_suggestions=self.config.enable_suggestions,
            enable_alternatives=self.config.enable_alternatives,
        )
        self.optimizer = ConfigOptimizer(catalog=catalog, template_env=self.template_env, lang=lang)
        self.repairer = ConfigRepairer(catalog=catalog, clock=clock)

        self._effects: dict[Effect, Callable[[CreationSession], Awaitable[SessionEvent | None]]] = {
            Effect.ANALYZE: self._analyze,
            Effect.CLARIFY: self._clarify,
            Effect.DERIVE: self._derive,
            Effect.SYNTHESIZE: self._synthesize,
            Effect.OPTIMIZE: self._optimize,
            Effect.VALIDATE: self._validate,
            Effect.REPAIR: self._repair,
            Effect.HANDOFF: self._handoff,
        }

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def create_session(self, mode: CreationMode | str, user_input: str | None = None) -> CreationSession:
        session = self.registry.add(CreationSession(mode=CreationMode(mode), user_input=user_input or ''))
        logger.info(f"Created session {session.id} in {session.mode.value} mode")
        return self._snapshot(session)

    async def submit_input(self, session_id: str, text: str) -> CreationSession:
        """Run the pipeline on *text* and return the resulting session.

        Raises :class:`SessionNotFoundError` for unknown ids and
        :class:`SessionStateError` when the session no longer accepts input.
        Stage failures and deadlines leave the session in ``error`` and
        raise :class:`StageFailedError`.
        """
        session = self.registry.get(session_id)
        async with self.registry.lock(session_id):
            if not self.registry.holds(session):
                session = self.registry.get(session_id)
            if not session.status.accepts_input:
                raise SessionStateError(session_id, session.status.value, 'submit input to')
            session.user_input = text
            session.submission_start = len(session.steps)
            session.touch()
            logger.info(f"Processing input for session {session_id}: \"{text}\"")
            try:
                await self._run_with_deadline(session)
            finally:
                self._export(session)
            return self._snapshot(session)

    async def patch_current_config(self, session_id: str, fields: Mapping[str, Any]) -> CreationSession:
        """Merge manual edits into the session's current config."""
        session = self.registry.get(session_id)
        async with self.registry.lock(session_id):
            self._patch(session, dict(fields))
            return self._snapshot(session)

    async def apply_alternative(self, session_id: str, alternative_id: str) -> CreationSession:
        """Merge the changes of an offered alternative into the current config."""
        session = self.registry.get(session_id)
        async with self.registry.lock(session_id):
            generated = session.generated_config
            alternative = generated.alternative(alternative_id) if generated else None
            if alternative is None:
                available = [a.id for a in generated.alternatives] if generated else []
                raise AlternativeNotFoundError(session_id, alternative_id, available)
            self._patch(session, alternative.changes)
            session.metadata['applied_alternative'] = alternative.id
            return self._snapshot(session)

    def cleanup_session(self, session_id: str) -> bool:
        """Forget a session; a stage still running for it finishes and its result is dropped."""
        removed = self.registry.remove(session_id) is not None
        if removed:
            logger.info(f"Session {session_id} cleaned up")
        return removed

    def get_session(self, session_id: str) -> CreationSession:
        return self._snapshot(self.registry.get(session_id))

    def active_sessions(self) -> list[CreationSession]:
        return [self._snapshot(session) for session in self.registry]

    def stats(self) -> EngineStats:
        sessions = list(self.registry)
        completed = [s for s in sessions if s.status == SessionStatus.COMPLETED]
        return EngineStats(
            total_sessions=len(sessions),
            completed_sessions=len(completed),
            error_sessions=sum(1 for s in sessions if s.status == SessionStatus.ERROR),
            average_steps=sum(len(s.steps) for s in sessions) / len(sessions) if sessions else 0.0,
            average_processing_time=sum(s.processing_ms for s in completed) / len(completed) if completed else 0.0,
        )

    def reset(self) -> None:
        """Drop every session."""
        count = len(self.registry)
        self.registry.clear()
        logger.info(f"Engine reset, {count} sessions dropped")

    # ------------------------------------------------------------------
    # Pipeline driver
    # ------------------------------------------------------------------

    @staticmethod
    def _snapshot(session: CreationSession) -> CreationSession:
        return copy.deepcopy(session)

    def _advance(self, session: CreationSession, event: SessionEvent) -> tuple[Effect, ...]:
        result = transition(
            session.status,
            event,
            mode=session.mode,
            validate=self.config.enable_validation,
            policy=self.config.validation_policy,
        )
        if result.status != session.status:
            logger.debug(f"Session {session.id}: {session.status.value} -> {result.status.value} on {event.value}")
        session.status = result.status
        session.touch()
        return result.effects

    async def _run_with_deadline(self, session: CreationSession):
        timeout = self.config.session_timeout
        if timeout is None:
            return await self._run(session)
        try:
            return await asyncio.wait_for(self._run(session), timeout)
        except asyncio.TimeoutError as e:
            step = session.steps.last
            phase = step.phase.value if step else 'session'
            if step is not None and not step.finished:
                step.fail(f"Session deadline of {timeout}s exceeded")
                await self.channel.step_updated(session.id, step)
            if not session.status.terminal:
                self._advance(session, SessionEvent.TIMED_OUT)
            raise StageTimeoutError(session.id, phase, timeout) from e

    async def _run(self, session: CreationSession):
        pending = deque(self._advance(session, SessionEvent.INPUT_SUBMITTED))
        while pending:
            effect = pending.popleft()
            if not self.registry.holds(session):
                logger.info(f"Session {session.id} was cleaned up; discarding the remaining {effect.value} stage")
                return
            event = await self._effects[effect](session)
            if event is not None:
                pending.extend(self._advance(session, event))
        logger.info(f"Session {session.id} finished processing with status {session.status.value}")

    async def _perform(self, session: CreationSession, step: Step, action: Callable[[], Any]) -> Any:
        """Record *step*, run *action* under the stage deadline and return its result.

        The caller completes the step; failures complete it with an error and
        move the session to ``error``.
        """
        if len(session.steps) - session.submission_start >= self.config.max_reasoning_steps:
            self._advance(session, SessionEvent.STAGE_FAILED)
            raise StepLimitExceededError(self.config.max_reasoning_steps)

        async def stage():
            await self.latency.delay(step.kind)
            return action()

        timeout = self.config.stage_timeout
        try:
            session.steps.append(step)
            step.begin()
            await self.channel.step_updated(session.id, step)
            if timeout is None:
                return await stage()
            return await asyncio.wait_for(stage(), timeout)
        except asyncio.TimeoutError as e:
            step.fail(f"Stage deadline of {timeout}s exceeded")
            await self.channel.step_updated(session.id, step)
            self._advance(session, SessionEvent.TIMED_OUT)
            raise StageTimeoutError(session.id, step.phase.value, timeout) from e
        except Exception as e:
            logger.exception(f"Stage {step.phase.value} failed for session {session.id}")
            if not step.finished:
                step.fail(e)
            await self.channel.step_updated(session.id, step)
            self._advance(session, SessionEvent.STAGE_FAILED)
            raise StageFailedError(session.id, step.phase.value, str(e)) from e

    async def _finish(self, session: CreationSession, step: Step, output: Any, error: str | None = None):
        step.complete(output, error)
        session.touch()
        await self.channel.step_updated(session.id, step)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _analyze(self, session: CreationSession) -> SessionEvent:
        step = Step(StepKind.REASONING, StepPhase.INTENT_ANALYSIS, '分析用户意图', '理解用户想要创建什么样的数字员工',
                    input=session.user_input)
        analysis = await self._perform(session, step, lambda: self.analyzer.analyze(session.user_input))
        session.analysis = analysis
        await self._finish(session, step, analysis)
        if analysis.is_unclear or analysis.confidence < self.config.confidence_threshold:
            return SessionEvent.INTENT_UNCLEAR
        return SessionEvent.INTENT_CLEAR

    def clarification_questions(self, analysis: IntentAnalysis) -> list[str]:
        entities = analysis.entities
        return self.template_env.render_lines(
            'clarification_questions.jinja2',
            lang=self.config.template_lang,
            department=entities.department,
            name=entities.name,
            responsibilities=list(entities.responsibilities),
            missing_info=[item.value for item in analysis.missing_info],
        )

    async def _clarify(self, session: CreationSession) -> None:
        analysis = session.analysis
        step = Step(StepKind.REASONING, StepPhase.CLARIFICATION, '澄清用户意图', '用户意图不够明确，需要进一步澄清',
                    input=analysis)
        questions = await self._perform(session, step, lambda: self.clarification_questions(analysis))
        await self._finish(session, step, {
            'needs_clarification': True,
            'questions': questions,
            'suggestions': list(analysis.suggestions),
        })

    async def _derive(self, session: CreationSession) -> SessionEvent:
        step = Step(StepKind.REASONING, StepPhase.REQUIREMENT_DERIVATION, '分析配置需求', '基于用户意图推导具体的配置需求',
                    input=session.analysis)
        requirements = await self._perform(session, step, lambda: self.deriver.derive(session.analysis))
        session.requirements = requirements
        await self._finish(session, step, requirements)
        return SessionEvent.REQUIREMENTS_DERIVED

    async def _synthesize(self, session: CreationSession) -> SessionEvent:
        step = Step(StepKind.ACTING, StepPhase.CONFIG_GENERATION, '生成基础配置', '基于需求分析生成数字员工配置',
                    input=session.requirements)
        generated = await self._perform(session, step, lambda: self.synthesizer.synthesize(session.requirements))
        session.generated_config = generated
        session.current_config = generated.form
        await self._finish(session, step, generated)
        return SessionEvent.CONFIG_SYNTHESIZED

    async def _optimize(self, session: CreationSession) -> SessionEvent:
        step = Step(StepKind.ACTING, StepPhase.OPTIMIZATION, '优化配置参数', '应用智能优化策略提升配置质量',
                    input=session.generated_config)

        def optimize():
            patch = self.optimizer.optimize(session.generated_config, session.requirements)
            session.current_config = session.current_config.merge(patch)
            return patch

        patch = await self._perform(session, step, optimize)
        await self._finish(session, step, patch)
        return SessionEvent.CONFIG_OPTIMIZED

    async def _validate(self, session: CreationSession) -> SessionEvent:
        step = Step(StepKind.REASONING, StepPhase.VALIDATION, '验证配置完整性', '检查配置的有效性和完整性',
                    input=session.current_config)
        validation = await self._perform(session, step, lambda: self.validator.validate(session.current_config))
        session.validation = validation
        await self._finish(session, step, validation)
        return SessionEvent.VALIDATION_PASSED if validation.is_valid else SessionEvent.VALIDATION_FAILED

    async def _repair(self, session: CreationSession) -> SessionEvent:
        step = Step(StepKind.ACTING, StepPhase.REPAIR, '修复配置问题', '自动修复发现的配置问题',
                    input=session.validation)

        def repair():
            fixes = self.repairer.repair(session.current_config, session.validation)
            if fixes:
                session.current_config = session.current_config.merge(fixes)
                session.validation = self.validator.validate(session.current_config)
            return fixes

        fixes = await self._perform(session, step, repair)
        if session.validation.is_valid:
            await self._finish(session, step, fixes)
            return SessionEvent.REPAIR_RESOLVED
        unresolved = ', '.join(session.validation.error_fields)
        await self._finish(session, step, fixes, f"{UNRESOLVED_REPAIR_MESSAGE}: {unresolved}")
        return SessionEvent.REPAIR_UNRESOLVED

    async def _handoff(self, session: CreationSession) -> None:
        session.metadata['handoff'] = HANDOFF_TARGET
        await self.channel.send_message(f"Session {session.id} handed off to {HANDOFF_TARGET}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _patch(self, session: CreationSession, fields: dict[str, Any]) -> None:
        merged = session.current_config.merge(fields)
        if session.status == SessionStatus.COMPLETED:
            missing = self.validator.validate(merged).error_fields
            if missing:
                raise InvalidConfigPatchError(f"completed sessions must keep {', '.join(missing)}")
        session.current_config = merged
        session.touch()
        logger.info(f"Patched {', '.join(fields)} of session {session.id}")

    def _export(self, session: CreationSession) -> None:
        if self.exporter is not None and session.status.terminal:
            self.exporter.export(session)
