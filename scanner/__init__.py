"""
Scanner Module - Raid Scanner
=============================
Decision layer on top of vision: scan kinds and their locks, icon hash
policies, UI state classification and transitions, per-state
extraction and the detection tick.

Modules:
    - results: ScanResult, ScanKind, StateTransition (+ MatchCandidate,
      PlayerMarkerDetection re-exports)
    - locks: OrderedLock / ScanLocks (global lock order)
    - debounce: StateDebouncer, SignatureDebouncer, CooldownGate
    - icon_matcher: The three icon hash acceptance policies
    - state_classifier: StateRule list and StateClassifier
    - extractors: Per-state extraction routines
    - orchestrator: ScanOrchestrator

Usage:
    from scanner import ScanOrchestrator

    orchestrator = ScanOrchestrator(capture, ocr, catalog, icon_store, callbacks=callbacks)
    orchestrator.request_tooltip_scan((x, y))
    orchestrator.request_tick()
"""

from .results import (
    MatchCandidate,
    MatchMethod,
    PlayerMarkerDetection,
    ScanKind,
    ScanResult,
    StateTransition,
)
from .locks import OrderedLock, ScanLocks, held_lock_names
from .debounce import CooldownGate, SignatureDebouncer, StateDebouncer, extraction_signature
from .icon_matcher import IconMatch, IconMatcher
from .state_classifier import DEFAULT_STATE_RULES, StateClassifier, StateRule
from .extractors import StateExtractors
from .orchestrator import ScanOrchestrator, capture_attempts, tooltip_regions

__all__ = [
    'MatchCandidate',
    'MatchMethod',
    'PlayerMarkerDetection',
    'ScanKind',
    'ScanResult',
    'StateTransition',
    'OrderedLock',
    'ScanLocks',
    'held_lock_names',
    'CooldownGate',
    'SignatureDebouncer',
    'StateDebouncer',
    'extraction_signature',
    'IconMatch',
    'IconMatcher',
    'DEFAULT_STATE_RULES',
    'StateClassifier',
    'StateRule',
    'StateExtractors',
    'ScanOrchestrator',
    'capture_attempts',
    'tooltip_regions',
]
