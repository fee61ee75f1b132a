import asyncio
from typing import Protocol

from empforge.steps import StepKind


class LatencyModel(Protocol):
    async def delay(self, kind: StepKind) -> None:
        """Wait for as long as a stage of *kind* takes on the backend."""
        ...


class NoLatency(LatencyModel):
    async def delay(self, kind: StepKind) -> None:
        return None


class SimulatedLatency(LatencyModel):
    """Fixed per-kind sleeps standing in for remote inference calls."""

    def __init__(self, reasoning: float = 0.5, acting: float = 0.3):
        self.delays = {
            StepKind.REASONING: reasoning,
            StepKind.ACTING: acting,
        }

    async def delay(self, kind: StepKind) -> None:
        await asyncio.sleep(self.delays[kind])
