"""
Pool Inspector

Fetches a pool's accounts over RPC and runs the engine on them:
PoolState, the optional bitmap extension, tick arrays by start index.
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from config import RAYDIUM_CLMM
from .analysis import InitializedRange, initialized_in_range
from .bitmap import scan_pool
from .layouts import (
    decode_bitmap_extension,
    decode_pool_state,
    decode_tick_array,
    parse_pool_state,
)
from .math.arrays import validate_array_start
from .math.liquidity_curve import LiquidityCurve
from .math.ticks import PriceFormat
from .pda import (
    DerivedAddress,
    PubkeyLike,
    decode_pubkey,
    derive_bitmap_extension_address,
    derive_tick_array_address,
    encode_pubkey,
)
from .rpc import SolanaRpcClient
from .state import BitmapExtension, PoolSnapshot, TickArray
from .swap_planner import (
    DEFAULT_GAP_POLICY,
    GapPolicy,
    SwapDirection,
    SwapPlan,
    SwapPlanRequest,
    plan_swap_arrays,
)

logger = logging.getLogger(__name__)


class PoolInspector:
    """
    Read-only view of one CLMM pool.

    Pool state and extension are fetched once and cached; call refresh()
    to drop the cache.

    Usage:
        inspector = PoolInspector(SolanaRpcClient(rpc_url), pool_id)
        plan = inspector.swap_plan(SwapDirection.BUY_T1, 0.1, 0.5)
    """

    def __init__(self, client: SolanaRpcClient, pool_id: PubkeyLike,
                 program_id: Optional[PubkeyLike] = None):
        self.client = client
        self.pool_id = decode_pubkey(pool_id)
        self.program_id = decode_pubkey(program_id or RAYDIUM_CLMM.program_id)
        self._snapshot: Optional[PoolSnapshot] = None
        self._extension: Optional[BitmapExtension] = None
        self._extension_loaded = False

    @property
    def pool_address(self) -> str:
        return encode_pubkey(self.pool_id)

    def refresh(self) -> None:
        self._snapshot = None
        self._extension = None
        self._extension_loaded = False

    # ── Accounts ──

    def fetch_pool(self) -> PoolSnapshot:
        """PoolState of the pool (cached)."""
        if self._snapshot is None:
            logger.info(f"Fetching pool state {self.pool_address}")
            data = self.client.get_account_data(self.pool_id)
            self._snapshot = decode_pool_state(data, pool_id=self.pool_id)
            logger.info(
                f"Pool {self.pool_address}: tick {self._snapshot.tick_current}, "
                f"spacing {self._snapshot.tick_spacing}"
            )
        return self._snapshot

    def fetch_pool_raw(self):
        """Full decoded PoolState container, uncached."""
        return parse_pool_state(self.client.get_account_data(self.pool_id))

    def extension_address(self) -> DerivedAddress:
        return derive_bitmap_extension_address(self.pool_id, self.program_id)

    def fetch_extension(self) -> Optional[BitmapExtension]:
        """Bitmap extension, or None when the pool has no extension account."""
        if not self._extension_loaded:
            address = self.extension_address()
            data = self.client.get_account_info(address.address)
            if data is None:
                logger.warning(
                    f"No bitmap extension account {address.base58} for pool {self.pool_address}, "
                    f"using the default bitmap only"
                )
                self._extension = None
            else:
                self._extension = decode_bitmap_extension(data)
                if self._extension.pool_id != self.pool_id:
                    logger.warning(
                        f"Bitmap extension {address.base58} belongs to pool "
                        f"{encode_pubkey(self._extension.pool_id)}"
                    )
            self._extension_loaded = True
        return self._extension

    def tick_array_address(self, start_index: int) -> DerivedAddress:
        return derive_tick_array_address(self.pool_id, start_index, self.program_id)

    def fetch_tick_array(self, start_index: int) -> Tuple[DerivedAddress, TickArray]:
        """
        One tick array that must exist.

        Raises:
            AlignmentError: start_index is not an array start for this pool
            AccountNotFoundError: the array account does not exist
        """
        spacing = self.fetch_pool().tick_spacing
        validate_array_start(start_index, spacing)
        address = self.tick_array_address(start_index)
        data = self.client.get_account_data(address.address)
        return address, decode_tick_array(data, spacing)

    def fetch_tick_array_at(self, address: PubkeyLike) -> TickArray:
        """Tick array by account address instead of start index."""
        spacing = self.fetch_pool().tick_spacing
        return decode_tick_array(self.client.get_account_data(address), spacing)

    def fetch_tick_arrays(self, start_indices: Iterable[int]) -> List[TickArray]:
        """
        Tick arrays in one batched fetch; missing accounts are skipped with a warning.

        Returned in ascending start order.
        """
        spacing = self.fetch_pool().tick_spacing
        starts = sorted(set(start_indices))
        for start_index in starts:
            validate_array_start(start_index, spacing)
        addresses = [self.tick_array_address(start_index) for start_index in starts]

        logger.info(f"Fetching {len(starts)} tick arrays")
        accounts = self.client.get_multiple_accounts([a.address for a in addresses])

        tick_arrays = []
        for start_index, address, data in zip(starts, addresses, accounts):
            if data is None:
                logger.warning(f"Tick array {start_index} ({address.base58}) does not exist, skipping")
                continue
            tick_arrays.append(decode_tick_array(data, spacing))
        return tick_arrays

    # ── Analysis ──

    def initialized_arrays(self) -> Set[int]:
        """Start indices flagged in the default bitmap and the extension."""
        return scan_pool(self.fetch_pool(), self.fetch_extension())

    def swap_plan(self, direction: SwapDirection, favorable_pct: float, adverse_pct: float,
                  start_tick: Optional[int] = None, checked: bool = True,
                  gap_policy: GapPolicy = DEFAULT_GAP_POLICY,
                  start_price: Optional[float] = None,
                  price_format: PriceFormat = PriceFormat.RAW_T1_PER_T0) -> SwapPlan:
        snapshot = self.fetch_pool()
        request = SwapPlanRequest(
            direction=direction,
            favorable_pct=favorable_pct,
            adverse_pct=adverse_pct,
            start_tick=start_tick,
            start_price=start_price,
            price_format=price_format,
            checked=checked,
            gap_policy=gap_policy,
        )
        initialized = self.initialized_arrays() if checked else None
        return plan_swap_arrays(snapshot, request, initialized)

    def liquidity_curve(self, array_starts: Optional[Iterable[int]] = None) -> LiquidityCurve:
        """Liquidity curve over the given arrays (default: every initialized array)."""
        if array_starts is None:
            array_starts = self.initialized_arrays()
        return LiquidityCurve(self.fetch_tick_arrays(array_starts))

    def initialized_range(self, min_tick: int, max_tick: int) -> InitializedRange:
        return initialized_in_range(
            self.initialized_arrays(), self.fetch_pool().tick_spacing, min_tick, max_tick
        )

    def inspect_array(self, start_index: Optional[int] = None,
                      address: Optional[PubkeyLike] = None) -> Tuple[str, TickArray]:
        """
        Tick array by start index or by account address (exactly one).

        Returns:
            (base58 address, TickArray)
        """
        if (start_index is None) == (address is None):
            raise ValueError("Pass exactly one of start_index or address")
        if start_index is not None:
            derived, tick_array = self.fetch_tick_array(start_index)
            return derived.base58, tick_array
        return encode_pubkey(decode_pubkey(address)), self.fetch_tick_array_at(address)
