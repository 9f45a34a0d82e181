"""
Raydium CLMM tick / tick array inspector

Offline commands (no RPC):
  tick-to-price, price-to-tick, tick-info, array-info,
  array-to-price-range, price-range-to-arrays, derive-pda

On-chain commands (rpc ...):
  pool-state, token-mints, default-bitmap, extension-bitmap, inspect-array,
  full-analysis, liquidity-curve, initialized-range, initialized-range-percent,
  get-swap-arrays
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from config import (
    RAYDIUM_CLMM,
    CLUSTERS,
    DEFAULT_CURVE_WIDTH,
    DEFAULT_RPC_TIMEOUT,
    TICK_ARRAY_SIZE,
    get_rpc_url,
)
from tickscope.analysis import (
    arrays_for_price_range,
    current_array_position,
    describe_array,
    percent_price_range,
    price_range_to_ticks,
)
from tickscope.bitmap import default_bitmap_offsets, offsets_to_array_starts, scan
from tickscope.exceptions import TickScopeError
from tickscope.inspector import PoolInspector
from tickscope.math.arrays import (
    array_start_for_tick,
    locate_tick,
    slot_ticks,
    tick_range_for_array,
    validate_tick_spacing,
)
from tickscope.math.liquidity_curve import bucket_liquidity, liquidity_ranges
from tickscope.math.ticks import PriceFormat, price_quote, price_to_tick, tick_to_price
from tickscope.pda import derive_tick_array_address, encode_pubkey
from tickscope.rpc import SolanaRpcClient
from tickscope.swap_planner import GapPolicy, SwapDirection

load_dotenv()

logger = logging.getLogger("tickscope")

HUMAN_FORMATS = {
    "t0-per-t1": PriceFormat.HUMAN_T0_PER_T1,
    "t1-per-t0": PriceFormat.HUMAN_T1_PER_T0,
}


def setup_logging(verbose: bool = False) -> None:
    """Console handler for the tickscope loggers."""
    level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def format_liquidity(liquidity: int) -> str:
    """Compact liquidity: 1.50T / 2.00B / 3.25M / 4.00K."""
    for threshold, suffix in ((10 ** 12, "T"), (10 ** 9, "B"), (10 ** 6, "M"), (10 ** 3, "K")):
        if liquidity >= threshold:
            return f"{liquidity / threshold:.2f}{suffix}"
    return str(liquidity)


def _banner(title: str, char: str = "=") -> None:
    print("\n" + char * 70)
    print(title)
    print(char * 70)


def _print_price_range(start_index: int, tick_spacing: int, decimals_0: int, decimals_1: int,
                       indent: str = "    ") -> None:
    for label, fmt in (("T0/T1", PriceFormat.HUMAN_T0_PER_T1), ("T1/T0", PriceFormat.HUMAN_T1_PER_T0)):
        desc = describe_array(start_index, tick_spacing, fmt, decimals_0, decimals_1)
        print(f"{indent}{label} price range: [{desc.price_at_first:.6f}, {desc.price_at_last:.6f}]")


# ============================================================
# Offline commands
# ============================================================

def cmd_tick_to_price(args):
    quote = price_quote(args.tick, args.decimals0, args.decimals1)
    _banner(f"Prices at tick {quote.tick}")
    print(f"  T1/T0 raw:    {quote.t1_per_t0_raw:.12g}")
    print(f"  T0/T1 raw:    {quote.t0_per_t1_raw:.12g}")
    print(f"  T1/T0 human:  {quote.t1_per_t0_human:.12g}")
    print(f"  T0/T1 human:  {quote.t0_per_t1_human:.12g}")
    print(f"  sqrtPriceX64: {quote.sqrt_price_x64}")


def cmd_price_to_tick(args):
    fmt = PriceFormat(args.format)
    tick = price_to_tick(args.price, fmt, args.decimals0, args.decimals1)
    print(f"Price {args.price} ({fmt.value}) -> tick {tick}")
    if args.tick_spacing:
        location = locate_tick(tick, args.tick_spacing)
        print(f"  Aligned tick (spacing {args.tick_spacing}): {location.aligned_tick}")
        print(f"  Array start: {location.array_start}, slot {location.slot}")


def cmd_tick_info(args):
    location = locate_tick(args.tick, args.tick_spacing)
    _banner(f"Tick {args.tick} (spacing {args.tick_spacing})")
    if not location.is_aligned:
        print(f"  Not a usable tick, floored to {location.aligned_tick}")
    print(f"  Array start index: {location.array_start}")
    print(f"  Slot:              {location.slot}")
    first, last = tick_range_for_array(location.array_start, args.tick_spacing)
    print(f"  Array tick range:  [{first}, {last}]")


def cmd_array_info(args):
    first, last = tick_range_for_array(args.start_index, args.tick_spacing)
    _banner(f"Tick array starting at {args.start_index}")
    print(f"  Tick spacing: {args.tick_spacing}")
    print(f"  Tick range:   [{first}, {last}]")
    print(f"  {TICK_ARRAY_SIZE} slots:")
    for slot, tick in enumerate(slot_ticks(args.start_index, args.tick_spacing)):
        print(f"    Slot {slot:2}: tick {tick}")


def cmd_array_to_price_range(args):
    first, last = tick_range_for_array(args.start_index, args.tick_spacing)
    _banner(f"Price range of array {args.start_index} (ticks {first} to {last})")
    _print_price_range(args.start_index, args.tick_spacing, args.decimals0, args.decimals1, indent="  ")


def cmd_price_range_to_arrays(args):
    fmt = PriceFormat(args.format)
    arrays = arrays_for_price_range(
        args.price_lower, args.price_upper, args.tick_spacing, fmt, args.decimals0, args.decimals1
    )
    _banner(f"Arrays crossed from {args.price_lower} to {args.price_upper} ({fmt.value}): {len(arrays)}")
    print(f"{'Start Index':<15} | {'Tick Range':<27} | Price Range")
    print("-" * 70)
    for start_index in arrays:
        desc = describe_array(start_index, args.tick_spacing, fmt, args.decimals0, args.decimals1)
        ticks = f"[{desc.first_tick}, {desc.last_tick}]"
        print(f"{start_index:<15} | {ticks:<27} | [{desc.price_at_first:.8f}, {desc.price_at_last:.8f}]")


def cmd_derive_pda(args):
    validate_tick_spacing(args.tick_spacing)
    if (args.tick is None) == (args.price is None):
        raise TickScopeError("Pass exactly one of --tick or --price")
    if args.tick is not None:
        tick = args.tick
    else:
        tick = price_to_tick(args.price, PriceFormat(args.format), args.decimals0, args.decimals1)

    start_index = array_start_for_tick(tick, args.tick_spacing)
    derived = derive_tick_array_address(args.pool_id, start_index, args.program_id)
    _banner("Tick array PDA")
    print(f"  Input tick:   {tick}")
    print(f"  Tick spacing: {args.tick_spacing}")
    print(f"  Array start:  {start_index}")
    print(f"  Pool:         {args.pool_id}")
    print(f"  PDA:          {derived.base58} (bump {derived.bump})")


# ============================================================
# RPC commands
# ============================================================

def _inspector(args) -> PoolInspector:
    rpc_url = get_rpc_url(args.cluster, args.rpc_url)
    client = SolanaRpcClient(rpc_url, timeout=args.timeout)
    return PoolInspector(client, args.pool_id, args.program_id)


def cmd_pool_state(args):
    inspector = _inspector(args)
    state = inspector.fetch_pool_raw()
    _banner(f"Pool state {inspector.pool_address}")
    print(f"  AMM config:   {encode_pubkey(state.amm_config)}")
    print(f"  Token 0:      {encode_pubkey(state.token_mint_0)} ({state.mint_decimals_0} decimals)")
    print(f"  Token 1:      {encode_pubkey(state.token_mint_1)} ({state.mint_decimals_1} decimals)")
    print(f"  Tick spacing: {state.tick_spacing}")
    print(f"  Liquidity:    {state.liquidity} ({format_liquidity(state.liquidity)})")
    print(f"  sqrtPriceX64: {state.sqrt_price_x64}")
    print(f"  Status:       {state.status}")
    quote = price_quote(state.tick_current, state.mint_decimals_0, state.mint_decimals_1)
    print(f"  Current tick: {quote.tick}")
    print(f"    T1/T0 human: {quote.t1_per_t0_human:.12g}")
    print(f"    T0/T1 human: {quote.t0_per_t1_human:.12g}")


def cmd_token_mints(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    print(f"Token mints of pool {inspector.pool_address}")
    print(f"  Token 0 (t0): {encode_pubkey(snapshot.token_mint_0)}")
    print(f"  Token 1 (t1): {encode_pubkey(snapshot.token_mint_1)}")


def cmd_default_bitmap(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    initialized = sorted(offsets_to_array_starts(
        default_bitmap_offsets(snapshot.tick_array_bitmap), snapshot.tick_spacing
    ))
    _banner(f"Default bitmap: {len(initialized)} initialized arrays")
    for start_index in initialized:
        print(f"  Start index {start_index}")
        _print_price_range(start_index, snapshot.tick_spacing, snapshot.decimals_0, snapshot.decimals_1)


def cmd_extension_bitmap(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    extension = inspector.fetch_extension()
    if extension is None:
        print(f"Pool {inspector.pool_address} has no bitmap extension account")
        return
    initialized = sorted(scan(
        [0] * len(snapshot.tick_array_bitmap), extension.positive, extension.negative,
        snapshot.tick_spacing,
    ))
    _banner(f"Extension bitmap: {len(initialized)} initialized arrays")
    for start_index in initialized:
        print(f"  Start index {start_index}")
        _print_price_range(start_index, snapshot.tick_spacing, snapshot.decimals_0, snapshot.decimals_1)


def cmd_inspect_array(args):
    inspector = _inspector(args)
    address, tick_array = inspector.inspect_array(args.start_index, args.pda)
    snapshot = inspector.fetch_pool()
    _banner(f"Tick array {tick_array.start_index}")
    print(f"  PDA: {address}")
    print(f"  {tick_array.initialized_tick_count} initialized ticks")
    _print_price_range(tick_array.start_index, snapshot.tick_spacing,
                       snapshot.decimals_0, snapshot.decimals_1, indent="  ")
    print("-" * 70)
    for slot, tick in enumerate(slot_ticks(tick_array.start_index, snapshot.tick_spacing)):
        record = tick_array.record_at(slot)
        if record is None:
            print(f"- Slot {slot:<2} (tick {tick}) is empty")
            continue
        print(f"+ Slot {slot:<2} tick {tick}")
        print(f"    Liquidity net:   {record.liquidity_net}")
        print(f"    Liquidity gross: {record.liquidity_gross}")
    print("-" * 70)


def cmd_full_analysis(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    fmt = HUMAN_FORMATS[args.format]
    initialized = sorted(inspector.initialized_arrays())
    here = current_array_position(initialized, snapshot.tick_current)
    current_price = tick_to_price(snapshot.tick_current, fmt, snapshot.decimals_0, snapshot.decimals_1)

    _banner(f"Full liquidity analysis for {inspector.pool_address}")
    print(f"Current tick: {snapshot.tick_current}")
    print(f"\n{'Array Start/Tick':<17} | Price / Price Range")
    print("-" * 70)
    for idx, start_index in enumerate(initialized):
        if idx == here:
            print("-" * 70)
            print(f"{'Tick ' + str(snapshot.tick_current):<17} | Price: {current_price:.6f}   <-- YOU ARE HERE")
            print("-" * 70)
        desc = describe_array(start_index, snapshot.tick_spacing, fmt, snapshot.decimals_0, snapshot.decimals_1)
        print(f"{start_index:<17} | [{desc.price_at_first:.6f}, {desc.price_at_last:.6f}]")
    if here == len(initialized):
        print("-" * 70)
        print(f"{'Tick ' + str(snapshot.tick_current):<17} | Price: {current_price:.6f}   <-- YOU ARE HERE")
        print("-" * 70)
    print(f"\nPrice format: {fmt.value}")


def cmd_liquidity_curve(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    fmt = HUMAN_FORMATS[args.format]
    curve = inspector.liquidity_curve()
    if len(curve) == 0:
        print("No liquidity boundaries found in this pool")
        return
    peak = curve.max_liquidity()
    if peak <= 0:
        print("No active liquidity found in this pool")
        return

    def price(tick):
        return tick_to_price(tick, fmt, snapshot.decimals_0, snapshot.decimals_1)

    if args.buckets:
        rows = [(b.tick_lower, b.tick_upper, b.liquidity) for b in bucket_liquidity(curve, args.max_width)]
    else:
        rows = [(r.tick_lower, r.tick_upper, r.liquidity) for r in liquidity_ranges(curve)]

    _banner("Liquidity distribution")
    print(f"{'Price Range':<35} | {'Liquidity':<12} | Distribution")
    print("-" * 100)
    current_array = None
    for tick_lower, tick_upper, liquidity in rows:
        if args.show_arrays:
            array_start = array_start_for_tick(tick_lower, snapshot.tick_spacing)
            if array_start != current_array:
                print(f"--- Array {array_start} ---")
                current_array = array_start
        low, high = sorted((price(tick_lower), price(tick_upper)))
        bar = "█" * max(1, int(liquidity / peak * args.max_width)) if liquidity > 0 else ""
        marker = ""
        if tick_lower <= snapshot.tick_current <= tick_upper:
            marker = f"  [CURRENT PRICE: {price(snapshot.tick_current):.6f}]"
        print(f"[{low:<15.6f} - {high:<15.6f}] | {format_liquidity(liquidity):<12} | {bar}{marker}")


def _print_initialized_range(inspector: PoolInspector, min_tick: int, max_tick: int) -> None:
    snapshot = inspector.fetch_pool()
    result = inspector.initialized_range(min_tick, max_tick)
    print(f"Tick range [{result.min_tick}, {result.max_tick}]")

    def show(start_index):
        address = inspector.tick_array_address(start_index)
        print(f"  Array {start_index}  PDA {address.base58}")
        _print_price_range(start_index, snapshot.tick_spacing, snapshot.decimals_0, snapshot.decimals_1)

    print("\n--- Lower surrounding initialized array ---")
    if result.lower_neighbor is None:
        print("  (none below the range)")
    else:
        show(result.lower_neighbor)

    _banner(f"Initialized arrays within range: {len(result.arrays)}")
    for start_index in result.arrays:
        show(start_index)

    print("\n--- Upper surrounding initialized array ---")
    if result.upper_neighbor is None:
        print("  (none above the range)")
    else:
        show(result.upper_neighbor)


def cmd_initialized_range(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    min_tick, max_tick = price_range_to_ticks(
        args.price_lower, args.price_upper, HUMAN_FORMATS[args.format],
        snapshot.decimals_0, snapshot.decimals_1,
    )
    _print_initialized_range(inspector, min_tick, max_tick)


def cmd_initialized_range_percent(args):
    inspector = _inspector(args)
    snapshot = inspector.fetch_pool()
    price_lower, price_upper = percent_price_range(args.price, args.lower_pct, args.upper_pct)
    print(f"Base price {args.price:.8f}, range -{args.lower_pct:.2f}% to +{args.upper_pct:.2f}%")
    min_tick, max_tick = price_range_to_ticks(
        price_lower, price_upper, HUMAN_FORMATS[args.format],
        snapshot.decimals_0, snapshot.decimals_1,
    )
    _print_initialized_range(inspector, min_tick, max_tick)


def cmd_get_swap_arrays(args):
    inspector = _inspector(args)
    direction = SwapDirection(args.direction)

    plan = inspector.swap_plan(
        direction, args.favorable_pct, args.adverse_pct,
        checked=not args.blind, gap_policy=GapPolicy(args.gap_policy),
        start_price=args.price, price_format=HUMAN_FORMATS[args.format],
    )

    mode = "BLIND" if args.blind else "CHECKED"
    low, high = plan.tick_range
    print(f"Start tick:  {plan.start_tick}")
    print(f"Direction:   {direction.value} (tick {direction.tick_direction.name})")
    print(f"Tick range:  [{low}, {high}]")
    _banner(f"REQUIRED SWAP ARRAYS ({mode}): {len(plan.all_arrays())}")

    def show(label, start_index):
        address = inspector.tick_array_address(start_index)
        print(f"  [{label:<14}] {start_index:<10} {address.base58}")

    for start_index in plan.favorable_arrays:
        show("FAVORABLE", start_index)
    if plan.favorable_arrays:
        print("-" * 70)
    for start_index in plan.arrays:
        show("CORE", start_index)
    if plan.surrounding_array is not None:
        print("-" * 70)
        label = "SURROUNDING_DN" if direction == SwapDirection.BUY_T1 else "SURROUNDING_UP"
        show(label, plan.surrounding_array)
    elif plan.checked:
        print("\n[WARNING] No initialized surrounding array found in the swap direction")
    print("=" * 70)


# ============================================================
# Argument parsing
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Raydium CLMM tick / tick array inspector")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    price_formats = [fmt.value for fmt in PriceFormat]

    def decimals(p):
        p.add_argument("--decimals0", type=int, default=0, help="Token 0 decimals")
        p.add_argument("--decimals1", type=int, default=0, help="Token 1 decimals")

    p = subparsers.add_parser("tick-to-price", help="Tick to every price format")
    p.add_argument("--tick", type=int, required=True)
    decimals(p)
    p.set_defaults(func=cmd_tick_to_price)

    p = subparsers.add_parser("price-to-tick", help="Price to tick (floored)")
    p.add_argument("--price", type=float, required=True)
    p.add_argument("--format", choices=price_formats, default=PriceFormat.HUMAN_T1_PER_T0.value)
    p.add_argument("--tick-spacing", type=int, help="Also show the array and slot")
    decimals(p)
    p.set_defaults(func=cmd_price_to_tick)

    p = subparsers.add_parser("tick-info", help="Array and slot of a tick")
    p.add_argument("--tick", type=int, required=True)
    p.add_argument("--tick-spacing", type=int, required=True)
    p.set_defaults(func=cmd_tick_info)

    p = subparsers.add_parser("array-info", help="Tick range and slots of an array")
    p.add_argument("--start-index", type=int, required=True)
    p.add_argument("--tick-spacing", type=int, required=True)
    p.set_defaults(func=cmd_array_info)

    p = subparsers.add_parser("array-to-price-range", help="Price range covered by an array")
    p.add_argument("--start-index", type=int, required=True)
    p.add_argument("--tick-spacing", type=int, required=True)
    decimals(p)
    p.set_defaults(func=cmd_array_to_price_range)

    p = subparsers.add_parser("price-range-to-arrays", help="Arrays crossed by a price range")
    p.add_argument("--price-lower", type=float, required=True)
    p.add_argument("--price-upper", type=float, required=True)
    p.add_argument("--tick-spacing", type=int, required=True)
    p.add_argument("--format", choices=price_formats, default=PriceFormat.HUMAN_T1_PER_T0.value)
    decimals(p)
    p.set_defaults(func=cmd_price_range_to_arrays)

    p = subparsers.add_parser("derive-pda", help="Tick array PDA for a tick or price")
    p.add_argument("--pool-id", required=True)
    p.add_argument("--tick-spacing", type=int, required=True)
    p.add_argument("--tick", type=int)
    p.add_argument("--price", type=float)
    p.add_argument("--format", choices=price_formats, default=PriceFormat.HUMAN_T1_PER_T0.value)
    p.add_argument("--program-id", default=RAYDIUM_CLMM.program_id)
    decimals(p)
    p.set_defaults(func=cmd_derive_pda)

    # ── rpc ──
    rpc_common = argparse.ArgumentParser(add_help=False)
    rpc_common.add_argument("--pool-id", required=True)
    rpc_common.add_argument("--rpc-url", help="Overrides SOLANA_RPC_URL and the cluster default")
    rpc_common.add_argument("--cluster", choices=sorted(CLUSTERS), default="mainnet-beta")
    rpc_common.add_argument("--program-id", default=RAYDIUM_CLMM.program_id)
    rpc_common.add_argument("--timeout", type=float, default=DEFAULT_RPC_TIMEOUT, help="RPC timeout, seconds")

    rpc = subparsers.add_parser("rpc", help="On-chain commands")
    rpc_sub = rpc.add_subparsers(dest="rpc_command", help="RPC commands")

    def rpc_parser(name, func, help_text):
        sub = rpc_sub.add_parser(name, parents=[rpc_common], help=help_text)
        sub.set_defaults(func=func)
        return sub

    rpc_parser("pool-state", cmd_pool_state, "Decoded PoolState")
    rpc_parser("token-mints", cmd_token_mints, "Token mints of the pool")
    rpc_parser("default-bitmap", cmd_default_bitmap, "Arrays flagged in the default bitmap")
    rpc_parser("extension-bitmap", cmd_extension_bitmap, "Arrays flagged in the bitmap extension")

    p = rpc_parser("inspect-array", cmd_inspect_array, "Slots of one tick array")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--start-index", type=int)
    group.add_argument("--pda")

    p = rpc_parser("full-analysis", cmd_full_analysis, "All initialized arrays around the current tick")
    p.add_argument("--format", choices=sorted(HUMAN_FORMATS), default="t0-per-t1")

    p = rpc_parser("liquidity-curve", cmd_liquidity_curve, "Text liquidity distribution")
    p.add_argument("--format", choices=sorted(HUMAN_FORMATS), default="t0-per-t1")
    p.add_argument("--max-width", type=int, default=DEFAULT_CURVE_WIDTH)
    p.add_argument("--buckets", action="store_true", help="At most --max-width equal-width buckets")
    p.add_argument("--show-arrays", action="store_true", help="Mark tick array boundaries")

    p = rpc_parser("initialized-range", cmd_initialized_range, "Initialized arrays in a price range")
    p.add_argument("--price-lower", type=float, required=True)
    p.add_argument("--price-upper", type=float, required=True)
    p.add_argument("--format", choices=sorted(HUMAN_FORMATS), required=True)

    p = rpc_parser("initialized-range-percent", cmd_initialized_range_percent,
                   "Initialized arrays around a price, +- percent")
    p.add_argument("--price", type=float, required=True)
    p.add_argument("--lower-pct", type=float, required=True)
    p.add_argument("--upper-pct", type=float, required=True)
    p.add_argument("--format", choices=sorted(HUMAN_FORMATS), required=True)

    p = rpc_parser("get-swap-arrays", cmd_get_swap_arrays, "Tick arrays a swap needs")
    p.add_argument("--direction", choices=[d.value for d in SwapDirection], required=True)
    p.add_argument("--format", choices=sorted(HUMAN_FORMATS), default="t0-per-t1",
                   help="Format of --price")
    p.add_argument("--favorable-pct", type=float, required=True)
    p.add_argument("--adverse-pct", "--impact-pct", dest="adverse_pct", type=float, required=True)
    p.add_argument("--price", type=float, help="Start price (default: live pool tick)")
    p.add_argument("--blind", action="store_true", help="Do not check the bitmaps")
    p.add_argument("--gap-policy", choices=[g.value for g in GapPolicy],
                   default=GapPolicy.SKIP_GAPS.value)

    return parser


def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(0)

    try:
        args.func(args)
    except TickScopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
