from enum import Enum
from logging import Logger
from typing import Protocol

from empforge.steps import Step, StepStatus


class MessageLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EngineChannel(Protocol):
    async def send_message(self, content: str, level: MessageLevel = MessageLevel.INFO) -> None:
        """Send a message to the host."""
        pass

    async def debug(self, content: str):
        return await self.send_message(content, MessageLevel.DEBUG)

    async def warning(self, content: str):
        return await self.send_message(content, MessageLevel.WARNING)

    async def error(self, content: str):
        return await self.send_message(content, MessageLevel.ERROR)

    async def step_updated(self, session_id: str, step: Step) -> None:
        """Called whenever a step starts or finishes."""
        match step.status:
            case StepStatus.ERROR:
                await self.error(f"[{session_id}] {step.title}: {step.error}")
            case StepStatus.COMPLETED if step.error:
                await self.warning(f"[{session_id}] {step.title}: {step.error}")
            case StepStatus.COMPLETED:
                await self.debug(f"[{session_id}] {step.title} completed in {step.duration_ms:.1f}ms")
            case _:
                await self.debug(f"[{session_id}] {step.title} {step.status.value}")


class LoggingChannel(EngineChannel):
    def __init__(self, logger: Logger) -> None:
        self.logger = logger

    async def send_message(self, content: str, level: MessageLevel = MessageLevel.INFO) -> None:
        match level:
            case MessageLevel.DEBUG:
                self.logger.debug(content)
            case MessageLevel.WARNING:
                self.logger.warning(content)
            case MessageLevel.ERROR:
                self.logger.error(content)
            case _:
                self.logger.info(content)


class RecordingChannel(EngineChannel):
    """Keeps every step update in memory, for hosts that render the trail live."""

    def __init__(self) -> None:
        self.messages: list[tuple[MessageLevel, str]] = []
        self.updates: list[tuple[str, str, StepStatus]] = []

    async def send_message(self, content: str, level: MessageLevel = MessageLevel.INFO) -> None:
        self.messages.append((level, content))

    async def step_updated(self, session_id: str, step: Step) -> None:
        self.updates.append((session_id, step.id, step.status))
        await super().step_updated(session_id, step)
