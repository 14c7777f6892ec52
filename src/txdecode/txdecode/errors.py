"""
Exceptions raised by txdecode.

Every failure the decoder can report derives from :class:`TxDecodeError` and
carries a ``details`` mapping (selector, stage, candidates tried, ...) so a
presentation layer can build an actionable message without parsing text.
"""

import json
from typing import Any, Dict, Optional


class TxDecodeError(Exception):
    """
    Base exception for all txdecode errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        error_code: Error code for programmatic handling
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": True,
            "type": self.error_code,
            "message": self.message,
            **self.details,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _context(**kwargs: Any) -> Dict[str, Any]:
    return {key: value for key, value in kwargs.items() if value is not None}


# ============================================================================
# Input errors
# ============================================================================

class MalformedCalldata(TxDecodeError):
    """Raised when calldata cannot carry a 4-byte selector."""

    def __init__(self, message: str, length: Optional[int] = None, **kwargs):
        super().__init__(message, _context(stage="extract", length=length, **kwargs))


class DecodeCancelled(TxDecodeError):
    """Raised when a caller cancels an in-flight decode."""

    def __init__(self, selector: Optional[str] = None, stage: Optional[str] = None, **kwargs):
        super().__init__(
            "Decode cancelled.",
            _context(selector=selector, stage=stage, **kwargs),
        )


# ============================================================================
# Signature directory errors
# ============================================================================

class DirectoryError(TxDecodeError):
    """Base class for signature directory failures."""

    def __init__(self, message: str, selector: Optional[str] = None, **kwargs):
        super().__init__(message, _context(stage="directory", selector=selector, **kwargs))


class LookupUnavailable(DirectoryError):
    """Raised on transport, timeout or HTTP errors from the directory."""


class LookupMalformed(DirectoryError):
    """Raised when the directory response does not have the expected shape."""


# ============================================================================
# Per-candidate errors
# ============================================================================

class SignatureSyntaxError(TxDecodeError):
    """Raised when signature text does not match the function grammar."""

    def __init__(self, text: str, reason: str, **kwargs):
        super().__init__(
            f"Invalid function signature '{text}': {reason}",
            _context(signature=text, reason=reason, **kwargs),
        )


class DecodeLayoutError(TxDecodeError):
    """Raised when ABI-encoded bytes are truncated or inconsistent with the declared types."""

    def __init__(self, message: str, signature: Optional[str] = None, **kwargs):
        super().__init__(message, _context(stage="decode", signature=signature, **kwargs))


# ============================================================================
# Verified ABI errors
# ============================================================================

class VerifiedABIError(TxDecodeError):
    """Base class for verified ABI service failures."""

    def __init__(self, message: str, address: Optional[str] = None, **kwargs):
        super().__init__(message, _context(stage="verified_abi", address=address, **kwargs))


class ABIServiceUnavailable(VerifiedABIError):
    """Raised on transport, timeout or rate-limit failures from the ABI service."""


class ABIServiceRejected(VerifiedABIError):
    """Raised when the ABI service reports a non-success status."""


class ABIParseError(VerifiedABIError):
    """Raised when the returned ABI document is not a valid JSON ABI."""


class FunctionNotFound(VerifiedABIError):
    """Raised when a fetched ABI has no function with the requested selector."""


# ============================================================================
# Summary errors
# ============================================================================

class AllCandidatesExhausted(TxDecodeError):
    """Raised when no candidate decoded and no fallback could be used."""

    def __init__(self, selector: str, candidates_tried: int, stage: str, **kwargs):
        if candidates_tried:
            message = f"All {candidates_tried} candidate signatures failed to decode calldata for selector {selector}."
        else:
            message = f"No signatures found for selector {selector}."
        super().__init__(
            message,
            _context(selector=selector, candidates_tried=candidates_tried, stage=stage, **kwargs),
        )


class CacheWriteError(TxDecodeError):
    """Raised when an ABI cache entry cannot be written."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, _context(stage="cache", path=path, **kwargs))


class TransactionSourceError(TxDecodeError):
    """Raised when a transaction cannot be fetched from the RPC endpoint."""

    def __init__(self, message: str, rpc_url: Optional[str] = None, tx_hash: Optional[str] = None, **kwargs):
        super().__init__(message, _context(stage="transaction", rpc_url=rpc_url, tx_hash=tx_hash, **kwargs))
