"""
tickscope: Raydium CLMM tick and tick array analysis.
"""

from .exceptions import (
    TickScopeError,
    AlignmentError,
    DomainError,
    InvalidBoundsError,
    NoValidAddressError,
    AccountDecodeError,
    SolanaRpcError,
    RpcTimeoutError,
    AccountNotFoundError,
)
from .state import TickRecord, TickArray, PoolSnapshot, BitmapExtension
from .pda import (
    DerivedAddress,
    find_program_address,
    derive_tick_array_address,
    derive_bitmap_extension_address,
)
from .bitmap import scan, scan_pool
from .swap_planner import (
    SwapDirection,
    GapPolicy,
    SwapPlanRequest,
    SwapPlan,
    plan_swap_arrays,
)

__version__ = "0.1.0"
