"""
Layer 3 - Auto-Capture
Debounced capture trigger driven by alignment verdicts.
"""
from .debounce import DebounceController, DebounceState

__all__ = [
    'DebounceController',
    'DebounceState',
]
