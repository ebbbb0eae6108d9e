"""Exceptions for decoengine."""


class DecoEngineError(Exception):
    """Base exception for decompression engine errors."""
    pass


class InvalidIndex(DecoEngineError, IndexError):
    """Raised when a segment references an unregistered breathing source."""
    pass


class InvalidSegment(DecoEngineError, ValueError):
    """Raised for non-positive duration or rate, or a negative depth."""
    pass


class InvalidGas(DecoEngineError, ValueError):
    """Raised when gas fractions are out of range or do not sum to one."""
    pass


class InvalidConfig(DecoEngineError, ValueError):
    """Raised when a dive configuration value is out of range."""
    pass


class UnreachablePlan(DecoEngineError):
    """Raised when no breathing source satisfies the ppO2 limits at a required stop."""
    pass


class ToxicityExceeded(DecoEngineError):
    """Raised when a segment's ppO2 exceeds the configured hard limit."""
    pass


class InvalidHandle(DecoEngineError, KeyError):
    """Raised when a session handle is unknown or already closed."""
    pass


class BufferReleased(DecoEngineError):
    """Raised when an owned buffer is read or released after release."""
    pass
