"""
Raydium CLMM Tick Mathematics

Core formulas:
- price(i) = 1.0001^i                    (raw price, token1 per token0)
- sqrtPriceX64 = sqrt(price) * 2^64      (Q64.64 fixed point)
- human price = raw * 10^decimals0 / 10^decimals1

Price -> tick is always a floor: a price between two ticks belongs to
the lower one, which is how the program rounds liquidity boundaries.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from config import (
    TICK_BASE,
    MIN_TICK,
    MAX_TICK,
    MIN_SQRT_PRICE_X64,
    MAX_SQRT_PRICE_X64,
    Q64,
    MAX_TOKEN_DECIMALS,
)
from ..exceptions import DomainError

logger = logging.getLogger(__name__)

I32_MIN = -(2 ** 31)
I32_MAX = 2 ** 31 - 1
U128_MAX = 2 ** 128 - 1

# sqrt(1.0001^-(2^i)) * 2^64 for i = 1..18, truncated exactly as the program does.
# Bit 0 is the starting ratio (see tick_to_sqrt_price_x64).
_SQRT_RATIO_FACTORS: Tuple[Tuple[int, int], ...] = (
    (0x2, 0xfff97272373d4000),
    (0x4, 0xfff2e50f5f657000),
    (0x8, 0xffe5caca7e10f000),
    (0x10, 0xffcb9843d60f7000),
    (0x20, 0xff973b41fa98e800),
    (0x40, 0xff2ea16466c9b000),
    (0x80, 0xfe5dee046a9a3800),
    (0x100, 0xfcbe86c7900bb000),
    (0x200, 0xf987a7253ac65800),
    (0x400, 0xf3392b0822bb6000),
    (0x800, 0xe7159475a2caf000),
    (0x1000, 0xd097f3bdfd2f2000),
    (0x2000, 0xa9f746462d9f8000),
    (0x4000, 0x70d869a156f31c00),
    (0x8000, 0x31be135f97ed3200),
    (0x10000, 0x9aa508b5b85a500),
    (0x20000, 0x5d6af8dedc582c),
    (0x40000, 0x2216e584f5fa),
)
_SQRT_RATIO_BIT0 = 0xfffcb933bd6fb800


class PriceFormat(Enum):
    """Ways a pool price can be expressed."""
    RAW_T1_PER_T0 = "t1-per-t0-raw"
    RAW_T0_PER_T1 = "t0-per-t1-raw"
    HUMAN_T1_PER_T0 = "t1-per-t0-human"
    HUMAN_T0_PER_T1 = "t0-per-t1-human"

    @property
    def is_human(self) -> bool:
        """Needs the token decimals pair."""
        return self in (PriceFormat.HUMAN_T1_PER_T0, PriceFormat.HUMAN_T0_PER_T1)

    @property
    def is_inverted(self) -> bool:
        """Quoted as token0 per token1 (reciprocal of the pool price)."""
        return self in (PriceFormat.RAW_T0_PER_T1, PriceFormat.HUMAN_T0_PER_T1)


@dataclass(frozen=True)
class PriceQuote:
    """All representations of the price at one tick."""
    tick: int
    t1_per_t0_raw: float
    t0_per_t1_raw: float
    t1_per_t0_human: float
    t0_per_t1_human: float
    sqrt_price_x64: int


def validate_decimals(decimals_0: int, decimals_1: int) -> None:
    """
    Check the token decimals pair.

    Raises:
        DomainError: negative decimals or more than MAX_TOKEN_DECIMALS
    """
    for name, value in (("decimals0", decimals_0), ("decimals1", decimals_1)):
        if not 0 <= value <= MAX_TOKEN_DECIMALS:
            raise DomainError(
                f"{name}={value} is out of range [0, {MAX_TOKEN_DECIMALS}]"
            )


def decimal_adjustment(decimals_0: int, decimals_1: int) -> float:
    """Multiplier from raw to human price: 10^decimals0 / 10^decimals1."""
    validate_decimals(decimals_0, decimals_1)
    return 10.0 ** decimals_0 / 10.0 ** decimals_1


def tick_to_raw_price(tick: int) -> float:
    """
    Tick to raw price (token1 / token0): 1.0001^tick.

    Defined for any i32 tick, but only ticks within [MIN_TICK, MAX_TICK]
    are usable on-chain. Far outside that range f64 overflows or
    underflows; that is reported instead of returned.

    Raises:
        DomainError: tick outside i32, or result is inf / 0 / NaN
    """
    if not I32_MIN <= tick <= I32_MAX:
        raise DomainError(f"Tick {tick} does not fit in i32")
    try:
        price = TICK_BASE ** tick
    except OverflowError:
        raise DomainError(f"Price for tick {tick} overflows f64")
    if price == 0.0 or not math.isfinite(price):
        raise DomainError(f"Price for tick {tick} is not representable ({price})")
    return price


def raw_price_to_tick(raw_price: float) -> int:
    """
    Raw price (token1 / token0) to tick, rounding down.

    floor(log_1.0001(price)), corrected against tick_to_raw_price so that
    a price exactly at a tick maps back to that tick.

    Args:
        raw_price: token1 per token0 without decimal adjustment

    Returns:
        Largest tick whose price is <= raw_price

    Raises:
        DomainError: price not positive / not finite, or tick outside [MIN_TICK, MAX_TICK]

    Example:
        >>> raw_price_to_tick(1.0)
        0
        >>> raw_price_to_tick(1.00015)  # between tick 1 and tick 2
        1
    """
    if math.isnan(raw_price) or raw_price <= 0 or math.isinf(raw_price):
        raise DomainError(f"Price must be positive and finite, got {raw_price}")

    tick = math.floor(math.log(raw_price) / math.log(TICK_BASE))
    if not MIN_TICK - 1 <= tick <= MAX_TICK + 1:
        raise DomainError(f"Price {raw_price} maps to tick {tick}, outside [{MIN_TICK}, {MAX_TICK}]")

    # log() can be off by one ulp around exact tick prices
    while TICK_BASE ** (tick + 1) <= raw_price:
        tick += 1
    while TICK_BASE ** tick > raw_price:
        tick -= 1

    if not MIN_TICK <= tick <= MAX_TICK:
        raise DomainError(f"Price {raw_price} maps to tick {tick}, outside [{MIN_TICK}, {MAX_TICK}]")
    return tick


def raw_to_human(raw_price: float, decimals_0: int, decimals_1: int,
                 price_format: PriceFormat) -> float:
    """
    Express a raw price (token1 / token0) in the requested format.

    Raw formats ignore the decimals pair (it is still validated).
    """
    adjustment = decimal_adjustment(decimals_0, decimals_1)
    if price_format == PriceFormat.RAW_T1_PER_T0:
        return raw_price
    if price_format == PriceFormat.RAW_T0_PER_T1:
        return 1.0 / raw_price
    if price_format == PriceFormat.HUMAN_T1_PER_T0:
        return raw_price * adjustment
    return 1.0 / (raw_price * adjustment)


def human_to_raw(price: float, decimals_0: int, decimals_1: int,
                 price_format: PriceFormat) -> float:
    """
    Inverse of raw_to_human: price in price_format -> raw token1 / token0.

    Raises:
        DomainError: price not positive / not finite
    """
    if math.isnan(price) or price <= 0 or math.isinf(price):
        raise DomainError(f"Price must be positive and finite, got {price}")
    adjustment = decimal_adjustment(decimals_0, decimals_1)
    if price_format == PriceFormat.RAW_T1_PER_T0:
        return price
    if price_format == PriceFormat.RAW_T0_PER_T1:
        return 1.0 / price
    if price_format == PriceFormat.HUMAN_T1_PER_T0:
        return price / adjustment
    return 1.0 / (price * adjustment)


def tick_to_price(tick: int, price_format: PriceFormat = PriceFormat.RAW_T1_PER_T0,
                  decimals_0: int = 0, decimals_1: int = 0) -> float:
    """Tick to price in any format."""
    return raw_to_human(tick_to_raw_price(tick), decimals_0, decimals_1, price_format)


def price_to_tick(price: float, price_format: PriceFormat = PriceFormat.RAW_T1_PER_T0,
                  decimals_0: int = 0, decimals_1: int = 0) -> int:
    """
    Price in any format to tick (floored in raw token1 / token0 space).

    Note: for inverted formats a higher input price means a LOWER tick.
    """
    raw_price = human_to_raw(price, decimals_0, decimals_1, price_format)
    return raw_price_to_tick(raw_price)


def align_tick_to_spacing(tick: int, tick_spacing: int, round_down: bool = True) -> int:
    """
    Align a tick to the pool's tick spacing.

    Args:
        tick: Source tick
        tick_spacing: Pool tick spacing
        round_down: True = towards -inf, False = towards +inf

    Returns:
        Aligned tick
    """
    if tick_spacing <= 0:
        raise DomainError(f"tick_spacing must be positive, got {tick_spacing}")
    if tick % tick_spacing == 0:
        return tick

    # Floor division is a true floor for negative ticks too
    if round_down:
        return (tick // tick_spacing) * tick_spacing
    return ((tick // tick_spacing) + 1) * tick_spacing


def tick_to_sqrt_price_x64(tick: int) -> int:
    """
    Tick to Q64.64 sqrt price, bit-exact with the program's get_sqrt_price_at_tick.

    Multiplies precomputed sqrt(1.0001^-(2^i)) factors for every set bit of
    |tick| and takes the reciprocal for positive ticks.

    Raises:
        DomainError: |tick| > MAX_TICK
    """
    abs_tick = abs(tick)
    if abs_tick > MAX_TICK:
        raise DomainError(f"Tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")

    ratio = _SQRT_RATIO_BIT0 if abs_tick & 0x1 else Q64
    for mask, factor in _SQRT_RATIO_FACTORS:
        if abs_tick & mask:
            ratio = (ratio * factor) >> 64

    if tick > 0:
        ratio = U128_MAX // ratio
    return ratio


def sqrt_price_x64_to_tick(sqrt_price_x64: int) -> int:
    """
    Greatest tick whose canonical sqrt price is <= sqrt_price_x64.

    Raises:
        DomainError: sqrt price outside [MIN_SQRT_PRICE_X64, MAX_SQRT_PRICE_X64)
    """
    if not MIN_SQRT_PRICE_X64 <= sqrt_price_x64 < MAX_SQRT_PRICE_X64:
        raise DomainError(
            f"sqrt_price_x64 {sqrt_price_x64} outside "
            f"[{MIN_SQRT_PRICE_X64}, {MAX_SQRT_PRICE_X64})"
        )

    # Float estimate, then fix up against the exact integer curve
    price = (sqrt_price_x64 / Q64) ** 2
    tick = math.floor(math.log(price) / math.log(TICK_BASE))
    tick = max(MIN_TICK, min(MAX_TICK - 1, tick))

    while tick < MAX_TICK and tick_to_sqrt_price_x64(tick + 1) <= sqrt_price_x64:
        tick += 1
    while tick > MIN_TICK and tick_to_sqrt_price_x64(tick) > sqrt_price_x64:
        tick -= 1
    return tick


def sqrt_price_x64_to_raw_price(sqrt_price_x64: int) -> float:
    """Q64.64 sqrt price to raw price (token1 / token0)."""
    sqrt_price = sqrt_price_x64 / Q64
    return sqrt_price ** 2


def price_quote(tick: int, decimals_0: int, decimals_1: int) -> PriceQuote:
    """All price representations for a tick."""
    raw_price = tick_to_raw_price(tick)
    adjustment = decimal_adjustment(decimals_0, decimals_1)
    return PriceQuote(
        tick=tick,
        t1_per_t0_raw=raw_price,
        t0_per_t1_raw=1.0 / raw_price,
        t1_per_t0_human=raw_price * adjustment,
        t0_per_t1_human=1.0 / (raw_price * adjustment),
        sqrt_price_x64=tick_to_sqrt_price_x64(tick),
    )
