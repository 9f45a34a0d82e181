from .ticks import (
    PriceFormat,
    PriceQuote,
    tick_to_raw_price,
    raw_price_to_tick,
    tick_to_price,
    price_to_tick,
    align_tick_to_spacing,
    tick_to_sqrt_price_x64,
    sqrt_price_x64_to_tick,
    price_quote,
)
from .arrays import (
    TickDirection,
    TickLocation,
    ticks_per_array,
    array_start_for_tick,
    slot_for_tick,
    locate_tick,
    tick_range_for_array,
    iter_array_starts,
)
