from .config import EngineConfig, load_config
from .session import CreationEngine, CreationMode, CreationSession, SessionStatus

__all__ = [
    "CreationEngine",
    "CreationMode",
    "CreationSession",
    "EngineConfig",
    "SessionStatus",
    "load_config",
]
