import asyncio
import dataclasses
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest.mock import Mock

import yaml

from empforge.config import EngineConfig, ValidationPolicy
from empforge.exceptions import (
    AlternativeNotFoundError,
    AuditOrderError,
    InvalidConfigPatchError,
    SessionNotFoundError,
    SessionStateError,
    StageFailedError,
    StageTimeoutError,
    StepLimitExceededError,
)
from empforge.model import PrimaryIntent
from empforge.session import (
    CreationEngine,
    CreationMode,
    RecordingChannel,
    SessionStatus,
    SimulatedLatency,
)
from empforge.steps import StepKind, StepPhase, StepStatus

CS_REQUEST = "我需要一个客服助手，能够回答订单问题，要求友好耐心"
GREETING = "你好，在吗"
GENERIC_PROMPT = "您是一位专业的AI助手，能够高效完成各种任务。"


class SlowLatency:
    """Latency model that blocks every stage for a long time."""

    async def delay(self, kind: StepKind) -> None:
        await asyncio.sleep(5)


class CleanupLatency:
    """Latency model that removes a session while its first stage runs."""

    def __init__(self):
        self.engine = None
        self.session_id = None

    async def delay(self, kind: StepKind) -> None:
        if self.session_id is not None:
            self.engine.cleanup_session(self.session_id)
            self.session_id = None


class SkewedClockChannel(RecordingChannel):
    """Channel that moves the first completed step an hour into the future."""

    def __init__(self):
        super().__init__()
        self.skewed = False

    async def step_updated(self, session_id, step) -> None:
        if not self.skewed and step.status == StepStatus.COMPLETED:
            step.timestamp += timedelta(hours=1)
            self.skewed = True
        await super().step_updated(session_id, step)


def phases(session) -> list[StepPhase]:
    return [step.phase for step in session.steps]


class CreationEngineTestCase(unittest.IsolatedAsyncioTestCase):
    """Pipeline behavior of the creation engine"""

    def setUp(self):
        self.engine = CreationEngine()

    async def submit(self, text: str, mode: CreationMode = CreationMode.STANDARD, engine: CreationEngine | None = None):
        engine = engine or self.engine
        session = engine.create_session(mode)
        return await engine.submit_input(session.id, text)

    async def test_customer_service_request(self):
        session = await self.submit(CS_REQUEST)

        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertEqual(session.analysis.primary_intent, PrimaryIntent.CREATE_EMPLOYEE)
        self.assertTrue({"友好", "耐心"} <= set(session.analysis.entities.personality))
        self.assertIn("order_query", session.analysis.entities.tools)

        config = session.current_config
        self.assertEqual(config.name, "客服助手")
        self.assertEqual(config.department, "通用部门")
        self.assertTrue(config.system_prompt)
        self.assertIn("order_query", config.allowed_tools)
        self.assertIn("请保持友好、耐心的工作风格。", config.system_prompt)
        self.assertTrue(session.validation.is_valid)

        self.assertEqual(phases(session), [
            StepPhase.INTENT_ANALYSIS,
            StepPhase.REQUIREMENT_DERIVATION,
            StepPhase.CONFIG_GENERATION,
            StepPhase.OPTIMIZATION,
            StepPhase.VALIDATION,
        ])
        for step in session.steps:
            self.assertEqual(step.status, StepStatus.COMPLETED)
            self.assertIsNotNone(step.duration_ms)
        timestamps = [step.timestamp for step in session.steps]
        self.assertEqual(timestamps, sorted(timestamps))
        self.assertNotIn("handoff", session.metadata)

    async def test_greeting_asks_for_clarification(self):
        session = await self.submit(GREETING)

        self.assertEqual(session.status, SessionStatus.INPUT)
        self.assertLess(session.analysis.confidence, self.engine.config.confidence_threshold)
        self.assertEqual(phases(session), [StepPhase.INTENT_ANALYSIS, StepPhase.CLARIFICATION])
        output = session.steps[-1].output
        self.assertTrue(output["needs_clarification"])
        self.assertEqual(output["questions"], [
            "请问这个数字员工属于哪个部门？",
            "您希望给这个数字员工起什么名字？",
            "请描述一下这个数字员工的主要工作职责。",
        ])
        self.assertTrue(session.current_config.is_empty())

    async def test_input_after_clarification(self):
        session = self.engine.create_session(CreationMode.STANDARD)
        await self.engine.submit_input(session.id, GREETING)
        session = await self.engine.submit_input(session.id, CS_REQUEST)

        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertEqual(len(session.steps), 7)
        self.assertEqual(session.user_input, CS_REQUEST)

    async def test_completed_session_rejects_input(self):
        session = await self.submit(CS_REQUEST)
        with self.assertRaises(SessionStateError):
            await self.engine.submit_input(session.id, CS_REQUEST)

    async def test_unknown_session(self):
        with self.assertRaises(SessionNotFoundError):
            await self.engine.submit_input("session_missing", CS_REQUEST)
        with self.assertRaises(SessionNotFoundError):
            self.engine.get_session("session_missing")
        with self.assertRaises(SessionNotFoundError):
            await self.engine.patch_current_config("session_missing", {"name": "x"})

    async def test_identical_input_in_two_sessions(self):
        first = await self.submit(CS_REQUEST)
        second = await self.submit(CS_REQUEST)

        self.assertNotEqual(first.id, second.id)
        self.assertEqual(first.requirements, second.requirements)
        self.assertEqual(
            first.generated_config.form.model_copy(update={"employee_number": None}),
            second.generated_config.form.model_copy(update={"employee_number": None}),
        )
        self.assertEqual(first.generated_config.form.employee_number[:2], "DE")
        self.assertTrue({s.id for s in first.steps}.isdisjoint({s.id for s in second.steps}))

    async def test_quick_mode_skips_optimization(self):
        session = await self.submit(CS_REQUEST, CreationMode.QUICK)
        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertNotIn(StepPhase.OPTIMIZATION, phases(session))
        self.assertEqual(session.current_config, session.generated_config.form)

    async def test_advanced_mode_hands_off(self):
        session = await self.submit(CS_REQUEST, CreationMode.ADVANCED)
        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertEqual(session.metadata["handoff"], "manual_configuration")

    async def test_validation_disabled(self):
        engine = CreationEngine(EngineConfig(enable_validation=False))
        session = await self.submit(CS_REQUEST, engine=engine)
        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertNotIn(StepPhase.VALIDATION, phases(session))
        self.assertIsNone(session.validation)

    async def test_created_session_snapshot(self):
        session = self.engine.create_session("quick", CS_REQUEST)
        self.assertEqual(session.status, SessionStatus.INITIALIZING)
        self.assertEqual(session.mode, CreationMode.QUICK)
        self.assertEqual(session.user_input, CS_REQUEST)
        self.assertEqual(len(session.steps), 0)


class RepairTestCase(unittest.IsolatedAsyncioTestCase):
    """Validation failures and the repair stage"""

    def break_synthesis(self, engine: CreationEngine):
        synthesize = engine.synthesizer.synthesize

        def broken(requirements):
            generated = synthesize(requirements)
            form = generated.form.model_copy(update={"name": None, "system_prompt": None})
            return dataclasses.replace(generated, form=form)

        engine.synthesizer.synthesize = broken

    async def test_repair_resolves_missing_fields(self):
        engine = CreationEngine()
        self.break_synthesis(engine)
        session = engine.create_session(CreationMode.QUICK)
        session = await engine.submit_input(session.id, CS_REQUEST)

        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertEqual(phases(session)[-2:], [StepPhase.VALIDATION, StepPhase.REPAIR])
        repair_step = session.steps[-1]
        self.assertEqual(repair_step.status, StepStatus.COMPLETED)
        self.assertIsNone(repair_step.error)
        self.assertEqual(repair_step.output, {"name": "AI-通用部门", "system_prompt": GENERIC_PROMPT})
        self.assertEqual(session.current_config.name, "AI-通用部门")
        self.assertEqual(session.current_config.system_prompt, GENERIC_PROMPT)
        self.assertTrue(session.validation.is_valid)

    async def test_strict_policy_fails_unresolved_repair(self):
        engine = CreationEngine(EngineConfig(validation_policy=ValidationPolicy.STRICT))
        self.break_synthesis(engine)
        engine.repairer.repair = Mock(return_value=None)
        session = engine.create_session(CreationMode.QUICK)
        session = await engine.submit_input(session.id, CS_REQUEST)

        self.assertEqual(session.status, SessionStatus.ERROR)
        repair_step = session.steps[-1]
        self.assertEqual(repair_step.phase, StepPhase.REPAIR)
        self.assertIn("无法自动修复", repair_step.error)
        self.assertFalse(session.validation.is_valid)


class FailureTestCase(unittest.IsolatedAsyncioTestCase):
    """Stage failures, deadlines and step limits"""

    async def test_stage_failure(self):
        engine = CreationEngine()
        engine.deriver.derive = Mock(side_effect=RuntimeError("boom"))
        session = engine.create_session(CreationMode.STANDARD)

        with self.assertRaises(StageFailedError) as ctx:
            await engine.submit_input(session.id, CS_REQUEST)
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertEqual(ctx.exception.phase, "requirement_derivation")

        session = engine.get_session(session.id)
        self.assertEqual(session.status, SessionStatus.ERROR)
        self.assertEqual(session.steps[0].status, StepStatus.COMPLETED)
        self.assertEqual(session.steps[-1].status, StepStatus.ERROR)
        self.assertEqual(session.steps[-1].error, "boom")

    async def test_stage_timeout(self):
        engine = CreationEngine(EngineConfig(stage_timeout=0.05), latency=SlowLatency())
        session = engine.create_session(CreationMode.STANDARD)

        with self.assertRaises(StageTimeoutError) as ctx:
            await engine.submit_input(session.id, CS_REQUEST)
        self.assertEqual(ctx.exception.phase, "intent_analysis")

        session = engine.get_session(session.id)
        self.assertEqual(session.status, SessionStatus.ERROR)
        self.assertEqual(session.steps[-1].status, StepStatus.ERROR)

    async def test_session_timeout(self):
        engine = CreationEngine(EngineConfig(stage_timeout=None, session_timeout=0.05), latency=SlowLatency())
        session = engine.create_session(CreationMode.STANDARD)

        with self.assertRaises(StageTimeoutError):
            await engine.submit_input(session.id, CS_REQUEST)

        session = engine.get_session(session.id)
        self.assertEqual(session.status, SessionStatus.ERROR)
        self.assertEqual(session.steps[-1].status, StepStatus.ERROR)

    async def test_step_limit(self):
        engine = CreationEngine(EngineConfig(max_reasoning_steps=3))
        session = engine.create_session(CreationMode.STANDARD)

        with self.assertRaises(StepLimitExceededError):
            await engine.submit_input(session.id, CS_REQUEST)

        session = engine.get_session(session.id)
        self.assertEqual(session.status, SessionStatus.ERROR)
        self.assertEqual(len(session.steps), 3)

    async def test_step_limit_applies_per_submission(self):
        engine = CreationEngine(EngineConfig(max_reasoning_steps=5))
        session = engine.create_session(CreationMode.STANDARD)

        for _ in range(6):
            session = await engine.submit_input(session.id, GREETING)
            self.assertEqual(session.status, SessionStatus.INPUT)
            self.assertEqual(session.steps[-1].phase, StepPhase.CLARIFICATION)
        self.assertEqual(len(session.steps), 12)

        session = await engine.submit_input(session.id, CS_REQUEST)
        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertEqual(len(session.steps), 17)

    async def test_out_of_order_step_marks_error(self):
        engine = CreationEngine(channel=SkewedClockChannel())
        session = engine.create_session(CreationMode.STANDARD)

        with self.assertRaises(StageFailedError) as ctx:
            await engine.submit_input(session.id, CS_REQUEST)
        self.assertIsInstance(ctx.exception.__cause__, AuditOrderError)

        session = engine.get_session(session.id)
        self.assertEqual(session.status, SessionStatus.ERROR)
        self.assertEqual(len(session.steps), 1)
        self.assertEqual(session.steps[0].status, StepStatus.COMPLETED)


class SessionManagementTestCase(unittest.IsolatedAsyncioTestCase):
    """Registry queries, manual patches and housekeeping"""

    def setUp(self):
        self.engine = CreationEngine()

    async def completed_session(self, mode=CreationMode.STANDARD):
        session = self.engine.create_session(mode)
        return await self.engine.submit_input(session.id, CS_REQUEST)

    async def test_patch_current_config(self):
        session = await self.completed_session()
        session = await self.engine.patch_current_config(session.id, {"description": "专门处理订单的助手"})
        self.assertEqual(session.current_config.description, "专门处理订单的助手")
        self.assertEqual(session.current_config.name, "客服助手")

    async def test_patch_rejects_unknown_fields(self):
        session = await self.completed_session()
        with self.assertRaises(InvalidConfigPatchError):
            await self.engine.patch_current_config(session.id, {"salary": 1})

    async def test_completed_session_keeps_required_fields(self):
        session = await self.completed_session()
        with self.assertRaises(InvalidConfigPatchError):
            await self.engine.patch_current_config(session.id, {"name": ""})
        self.assertEqual(self.engine.get_session(session.id).current_config.name, "客服助手")

    async def test_apply_alternative(self):
        session = await self.completed_session()
        session = await self.engine.apply_alternative(session.id, "enhanced")
        self.assertIn("data_analysis", session.current_config.allowed_tools)
        self.assertEqual(session.current_config.prompt_config.mode, "advanced")
        self.assertEqual(session.metadata["applied_alternative"], "enhanced")

        with self.assertRaises(AlternativeNotFoundError) as ctx:
            await self.engine.apply_alternative(session.id, "simplified")
        self.assertEqual(ctx.exception.available, ["enhanced"])

    async def test_snapshots_are_isolated(self):
        session = await self.completed_session()
        session.metadata["note"] = "changed"
        session.status = SessionStatus.ERROR
        stored = self.engine.get_session(session.id)
        self.assertNotIn("note", stored.metadata)
        self.assertEqual(stored.status, SessionStatus.COMPLETED)

    async def test_stats(self):
        await self.completed_session()
        unclear = self.engine.create_session(CreationMode.STANDARD)
        await self.engine.submit_input(unclear.id, GREETING)

        stats = self.engine.stats()
        self.assertEqual(stats.total_sessions, 2)
        self.assertEqual(stats.completed_sessions, 1)
        self.assertEqual(stats.error_sessions, 0)
        self.assertAlmostEqual(stats.average_steps, 3.5)
        self.assertGreaterEqual(stats.average_processing_time, 0)
        self.assertEqual(stats.to_dict()["total_sessions"], 2)

    async def test_cleanup_and_reset(self):
        first = await self.completed_session()
        second = self.engine.create_session(CreationMode.QUICK)
        self.assertEqual(len(self.engine.active_sessions()), 2)

        self.assertTrue(self.engine.cleanup_session(first.id))
        self.assertFalse(self.engine.cleanup_session(first.id))
        self.assertEqual([s.id for s in self.engine.active_sessions()], [second.id])

        self.engine.reset()
        self.assertEqual(self.engine.active_sessions(), [])
        self.assertEqual(self.engine.stats().total_sessions, 0)

    async def test_cleanup_while_processing_discards_the_rest(self):
        latency = CleanupLatency()
        engine = CreationEngine(latency=latency)
        latency.engine = engine
        session = engine.create_session(CreationMode.STANDARD)
        latency.session_id = session.id

        session = await engine.submit_input(session.id, CS_REQUEST)
        self.assertEqual(phases(session), [StepPhase.INTENT_ANALYSIS])
        self.assertEqual(session.steps[0].status, StepStatus.COMPLETED)
        with self.assertRaises(SessionNotFoundError):
            engine.get_session(session.id)

    async def test_sessions_interleave(self):
        engine = CreationEngine(latency=SimulatedLatency(reasoning=0.02, acting=0.01))
        ids = [engine.create_session(CreationMode.STANDARD).id for _ in range(3)]
        sessions = await asyncio.gather(*(engine.submit_input(session_id, CS_REQUEST) for session_id in ids))
        self.assertTrue(all(s.status == SessionStatus.COMPLETED for s in sessions))
        self.assertGreaterEqual(sessions[0].steps[0].duration_ms, 15)

    async def test_concurrent_submissions_to_one_session(self):
        engine = CreationEngine(latency=SimulatedLatency(reasoning=0.01, acting=0.01))
        session = engine.create_session(CreationMode.STANDARD)
        results = await asyncio.gather(
            engine.submit_input(session.id, CS_REQUEST),
            engine.submit_input(session.id, CS_REQUEST),
            return_exceptions=True,
        )
        self.assertEqual(sum(1 for r in results if isinstance(r, SessionStateError)), 1)
        self.assertEqual(len(engine.get_session(session.id).steps), 5)


class ChannelAndExportTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_channel_sees_every_step_update(self):
        channel = RecordingChannel()
        engine = CreationEngine(channel=channel)
        session = engine.create_session(CreationMode.STANDARD)
        session = await engine.submit_input(session.id, CS_REQUEST)

        self.assertEqual(len(channel.updates), 2 * len(session.steps))
        self.assertEqual(
            [status for _, _, status in channel.updates[:2]],
            [StepStatus.PROCESSING, StepStatus.COMPLETED],
        )

    async def test_trail_export(self):
        with tempfile.TemporaryDirectory() as tmp:
            engine = CreationEngine(EngineConfig(trail_dir=tmp))
            session = engine.create_session(CreationMode.STANDARD)
            session = await engine.submit_input(session.id, CS_REQUEST)

            path = Path(tmp) / f"{session.id}.yaml"
            self.assertTrue(path.exists())
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            self.assertEqual(data["status"], "completed")
            self.assertEqual(data["current_config"]["name"], "客服助手")
            self.assertEqual([s["phase"] for s in data["steps"]], [p.value for p in phases(session)])

    async def test_unfinished_sessions_are_not_exported(self):
        with tempfile.TemporaryDirectory() as tmp:
            engine = CreationEngine(EngineConfig(trail_dir=tmp))
            session = engine.create_session(CreationMode.STANDARD)
            await engine.submit_input(session.id, GREETING)
            self.assertEqual(list(Path(tmp).iterdir()), [])
