from .channel import EngineChannel, LoggingChannel, MessageLevel, RecordingChannel
from .engine import CreationEngine, EngineStats
from .latency import LatencyModel, NoLatency, SimulatedLatency
from .registry import SessionRegistry
from .session import CreationSession
from .state import CreationMode, Effect, SessionEvent, SessionStatus, Transition, transition

__all__ = [
    "CreationEngine",
    "CreationMode",
    "CreationSession",
    "Effect",
    "EngineChannel",
    "EngineStats",
    "LatencyModel",
    "LoggingChannel",
    "MessageLevel",
    "NoLatency",
    "RecordingChannel",
    "SessionEvent",
    "SessionRegistry",
    "SessionStatus",
    "SimulatedLatency",
    "Transition",
    "transition",
]
