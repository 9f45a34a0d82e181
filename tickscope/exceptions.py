"""
Errors raised by tickscope.

Engine errors (alignment, domain, bounds, derivation) are deterministic for
a given input and are never retried. They also subclass ValueError so that
callers treating them as bad input keep working.
"""

from typing import Optional


class TickScopeError(Exception):
    """Base error for tickscope."""
    pass


class AlignmentError(TickScopeError, ValueError):
    """Tick or array start is not aligned to the pool's tick spacing."""
    pass


class DomainError(TickScopeError, ValueError):
    """Tick, price, spacing or decimals outside the supported range."""
    pass


class InvalidBoundsError(TickScopeError, ValueError):
    """Malformed percentage or price-bound request."""
    pass


class NoValidAddressError(TickScopeError, ValueError):
    """All 256 bump seeds produced on-curve digests."""
    pass


class AccountDecodeError(TickScopeError):
    """Raw account bytes do not match the expected layout."""
    pass


# ── RPC ──

class SolanaRpcError(TickScopeError):
    """RPC request failed or returned an error object."""
    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        if code is not None:
            message = f"RPC error {code}: {message}"
        super().__init__(message)


class RpcTimeoutError(SolanaRpcError):
    """RPC request timed out."""
    pass


class AccountNotFoundError(SolanaRpcError):
    """Account does not exist on the cluster."""
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account not found: {address}")
