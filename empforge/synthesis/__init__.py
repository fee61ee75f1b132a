from .config import ConfigSynthesizer
from .optimizer import ConfigOptimizer
from .requirements import RequirementDeriver
from .validation import ConfigRepairer, ConfigValidator

__all__ = [
    "ConfigOptimizer",
    "ConfigRepairer",
    "ConfigSynthesizer",
    "ConfigValidator",
    "RequirementDeriver",
]
