from .intent import IntentAnalyzer

__all__ = ["IntentAnalyzer"]
