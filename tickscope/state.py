"""
Decoded on-chain state used by the engine.

Everything here is read-only for the duration of one analysis call.
Pubkeys are kept as raw 32-byte values; use tickscope.pda.encode_pubkey
for display.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple

from config import TICK_ARRAY_SIZE
from .exceptions import DomainError
from .math.arrays import array_start_for_tick, validate_array_start


@dataclass(frozen=True)
class TickRecord:
    """Liquidity data of one initialized tick."""
    tick: int
    liquidity_net: int       # i128, signed change when crossing upwards
    liquidity_gross: int     # u128, total liquidity referencing the tick

    @property
    def initialized(self) -> bool:
        return self.liquidity_gross != 0


@dataclass(frozen=True)
class TickArray:
    """
    One 60-slot tick array.

    Slots without a record hold no liquidity. records is copied into a
    read-only mapping and left out of the hash.
    """
    start_index: int
    tick_spacing: int
    records: Mapping[int, TickRecord] = field(default_factory=dict, hash=False)   # slot -> record
    pool_id: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "records", MappingProxyType(dict(self.records)))
        validate_array_start(self.start_index, self.tick_spacing)
        for slot, record in self.records.items():
            if not 0 <= slot < TICK_ARRAY_SIZE:
                raise DomainError(f"Slot {slot} outside [0, {TICK_ARRAY_SIZE - 1}]")
            expected = self.tick_for_slot(slot)
            if record.tick != expected:
                raise DomainError(
                    f"Record in slot {slot} has tick {record.tick}, expected {expected}"
                )

    def tick_for_slot(self, slot: int) -> int:
        return self.start_index + slot * self.tick_spacing

    def record_at(self, slot: int) -> Optional[TickRecord]:
        return self.records.get(slot)

    @property
    def end_index(self) -> int:
        """Last usable tick."""
        return self.tick_for_slot(TICK_ARRAY_SIZE - 1)

    @property
    def initialized_tick_count(self) -> int:
        return sum(1 for record in self.records.values() if record.initialized)

    def initialized_records(self) -> Iterator[TickRecord]:
        """Initialized records in ascending tick order."""
        for slot in sorted(self.records):
            record = self.records[slot]
            if record.initialized:
                yield record


@dataclass(frozen=True)
class PoolSnapshot:
    """Subset of PoolState needed for analysis."""
    tick_current: int
    sqrt_price_x64: int
    tick_spacing: int
    decimals_0: int
    decimals_1: int
    tick_array_bitmap: Tuple[int, ...]       # 16 x u64
    liquidity: int = 0
    pool_id: bytes = b""
    amm_config: bytes = b""
    token_mint_0: bytes = b""
    token_mint_1: bytes = b""
    status: int = 0

    @property
    def current_array_start(self) -> int:
        return array_start_for_tick(self.tick_current, self.tick_spacing)


@dataclass(frozen=True)
class BitmapExtension:
    """TickArrayBitmapExtension account: 14 chunks x 8 words per side."""
    pool_id: bytes
    positive: Tuple[Tuple[int, ...], ...]
    negative: Tuple[Tuple[int, ...], ...]
