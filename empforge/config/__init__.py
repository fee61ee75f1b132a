from .engine import EngineConfig, ValidationPolicy, load_config

__all__ = ["EngineConfig", "ValidationPolicy", "load_config"]
