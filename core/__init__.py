"""
Core Module - Raid Scanner Lifecycle

This module provides the application lifecycle layer and the shared state
and exception types. It owns engine state and the timer thread WITHOUT any:
- Vision/detection logic
- OCR or capture code
- Overlay rendering

Components:
    - engine: DetectionEngine (fixed-interval tick driver)
    - state: EngineState and UiState enums
    - exceptions: Exception hierarchy for lifecycle and external failures

Usage:
    from core import DetectionEngine, EngineState

    engine = DetectionEngine(orchestrator, tick_interval=2.0)
    engine.start()
    # ... ticks run on the orchestrator's worker pool ...
    engine.stop()
"""

from core.state import EngineState, UiState
from core.exceptions import (
    CaptureError,
    EngineException,
    EngineStateError,
    EngineThreadError,
    LockOrderError,
    OcrEngineError,
    ScannerException,
)
from core.engine import DetectionEngine

__all__ = [
    'DetectionEngine',
    'EngineState',
    'UiState',
    'ScannerException',
    'CaptureError',
    'OcrEngineError',
    'LockOrderError',
    'EngineException',
    'EngineStateError',
    'EngineThreadError',
]
