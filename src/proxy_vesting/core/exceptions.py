"""
Exception hierarchy for proxy-vesting.

Provides typed exceptions for schedule computation, reconciliation and chain
interaction so callers can tell a bad allocation table apart from a failed
extrinsic or an unreachable node.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class ProxyVestingError(Exception):
    """Base exception for all proxy-vesting errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(ProxyVestingError):
    """Raised when allocation or reconciliation input fails validation rules."""
    pass


class InvalidInputError(ValidationError):
    """Raised for a malformed or out-of-range allocation entry.

    Examples: negative amount, zero period count, non-integer block height,
    an intended recipient with no matching on-chain observation.
    """
    pass


class DistributionMismatchError(ValidationError):
    """Raised when derived schedules do not account for the allocated total.

    Covers both a conservation failure (scheduled sum differs from the intended
    total) and a nonzero per-entry remainder. Always fatal.
    """
    pass


# ==================== Chain Errors ====================


class ChainError(ProxyVestingError):
    """Raised when an interaction with the chain node fails."""
    pass


class ChainConnectionError(ChainError):
    """Raised when the RPC endpoint cannot be reached."""
    recoverable = True


class ExtrinsicFailedError(ChainError):
    """Raised when a submitted extrinsic is rejected or fails to dispatch."""

    def __init__(
        self,
        message: str,
        extrinsic_hash: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.extrinsic_hash = extrinsic_hash


class ProvisioningError(ChainError):
    """Raised when a batch was included but its events do not match expectations.

    Examples: fewer proxies created than requested, a delegate that is not the
    configured multisig, a transferred total that differs from the plan.
    """
    pass


class SudoKeyMismatchError(ChainError):
    """Raised when the signing account is not the chain's sudo key."""
    pass


class RuntimeUpgradeError(ChainError):
    """Raised when a runtime upgrade cannot be prepared or submitted."""
    pass


class UpgradeTimeoutError(RuntimeUpgradeError):
    """Raised when the new runtime is not observed before the deadline."""

    def __init__(
        self,
        message: str,
        old_spec_version: Optional[int] = None,
        last_spec_version: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.old_spec_version = old_spec_version
        self.last_spec_version = last_spec_version


# ==================== Configuration Errors ====================


class ConfigurationError(ProxyVestingError):
    """Raised when required configuration is missing or invalid."""
    pass


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error."""
    if isinstance(exc, ProxyVestingError):
        return exc.recoverable
    return isinstance(exc, (ConnectionError, TimeoutError))


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, ProxyVestingError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, ExtrinsicFailedError) and exc.extrinsic_hash:
        context["extrinsic_hash"] = exc.extrinsic_hash

    if isinstance(exc, UpgradeTimeoutError):
        context["old_spec_version"] = exc.old_spec_version
        context["last_spec_version"] = exc.last_spec_version

    return context
