"""
Core Exceptions

Custom exceptions for engine lifecycle control and scanner failures.

"Not found" and "low confidence" are ordinary outcomes and are returned as
values (None or a low-confidence result). Only external failures and
programming errors are exceptions.
"""


class ScannerException(Exception):
    """Base exception for Raid Scanner errors"""
    pass


class CaptureError(ScannerException):
    """Raised by the capture source when a screen region cannot be grabbed"""
    pass


class OcrEngineError(ScannerException):
    """Raised when the OCR engine is missing or fails to run"""
    pass


class LockOrderError(ScannerException):
    """
    Raised when a call path acquires scan locks out of the global order.

    This is a programming error, not a runtime condition. The order is
    name < icon < tooltip; re-entering a lock already held is allowed.
    """
    pass


class EngineException(ScannerException):
    """Base exception for DetectionEngine errors"""
    pass


class EngineStateError(EngineException):
    """Raised when engine operation is invalid for current state"""
    pass


class EngineThreadError(EngineException):
    """Raised when thread management fails"""
    pass
