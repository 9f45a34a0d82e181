"""
Raydium CLMM account layouts (construct).

Accounts are Anchor zero-copy structs: an 8-byte discriminator
(sha256("account:<Name>")[:8]) followed by the packed little-endian fields.
u128 / i128 are read as 16-byte little-endian integers.
"""

import hashlib
import logging
from typing import Dict

from construct import (
    Array,
    Bytes,
    BytesInteger,
    ConstructError,
    Int8ul,
    Int16ul,
    Int32sl,
    Int32ul,
    Int64ul,
    Struct,
)

from config import (
    TICK_ARRAY_SIZE,
    DEFAULT_BITMAP_WORDS,
    EXTENSION_BITMAP_CHUNKS,
    EXTENSION_CHUNK_WORDS,
    PUBKEY_LENGTH,
)
from .exceptions import AccountDecodeError, TickScopeError
from .state import BitmapExtension, PoolSnapshot, TickArray, TickRecord

logger = logging.getLogger(__name__)

DISCRIMINATOR_LENGTH = 8

U128 = BytesInteger(16, signed=False, swapped=True)
I128 = BytesInteger(16, signed=True, swapped=True)
PUBKEY = Bytes(PUBKEY_LENGTH)


def account_discriminator(account_name: str) -> bytes:
    """Anchor account discriminator."""
    return hashlib.sha256(f"account:{account_name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


POOL_STATE_DISCRIMINATOR = account_discriminator("PoolState")
TICK_ARRAY_DISCRIMINATOR = account_discriminator("TickArrayState")
BITMAP_EXTENSION_DISCRIMINATOR = account_discriminator("TickArrayBitmapExtension")


# ============================================================
# Layouts (without discriminator)
# ============================================================

REWARD_INFO = Struct(
    "reward_state" / Int8ul,
    "open_time" / Int64ul,
    "end_time" / Int64ul,
    "last_update_time" / Int64ul,
    "emissions_per_second_x64" / U128,
    "reward_total_emissioned" / Int64ul,
    "reward_claimed" / Int64ul,
    "token_mint" / PUBKEY,
    "token_vault" / PUBKEY,
    "authority" / PUBKEY,
    "reward_growth_global_x64" / U128,
)

POOL_STATE = Struct(
    "bump" / Int8ul,
    "amm_config" / PUBKEY,
    "owner" / PUBKEY,
    "token_mint_0" / PUBKEY,
    "token_mint_1" / PUBKEY,
    "token_vault_0" / PUBKEY,
    "token_vault_1" / PUBKEY,
    "observation_key" / PUBKEY,
    "mint_decimals_0" / Int8ul,
    "mint_decimals_1" / Int8ul,
    "tick_spacing" / Int16ul,
    "liquidity" / U128,
    "sqrt_price_x64" / U128,
    "tick_current" / Int32sl,
    "padding3" / Int16ul,
    "padding4" / Int16ul,
    "fee_growth_global_0_x64" / U128,
    "fee_growth_global_1_x64" / U128,
    "protocol_fees_token_0" / Int64ul,
    "protocol_fees_token_1" / Int64ul,
    "swap_in_amount_token_0" / U128,
    "swap_out_amount_token_1" / U128,
    "swap_in_amount_token_1" / U128,
    "swap_out_amount_token_0" / U128,
    "status" / Int8ul,
    "padding" / Bytes(7),
    "reward_infos" / Array(3, REWARD_INFO),
    "tick_array_bitmap" / Array(DEFAULT_BITMAP_WORDS, Int64ul),
    "total_fees_token_0" / Int64ul,
    "total_fees_claimed_token_0" / Int64ul,
    "total_fees_token_1" / Int64ul,
    "total_fees_claimed_token_1" / Int64ul,
    "fund_fees_token_0" / Int64ul,
    "fund_fees_token_1" / Int64ul,
    "open_time" / Int64ul,
    "recent_epoch" / Int64ul,
    "padding1" / Array(24, Int64ul),
    "padding2" / Array(32, Int64ul),
)

TICK_STATE = Struct(
    "tick" / Int32sl,
    "liquidity_net" / I128,
    "liquidity_gross" / U128,
    "fee_growth_outside_0_x64" / U128,
    "fee_growth_outside_1_x64" / U128,
    "reward_growths_outside_x64" / Array(3, U128),
    "padding" / Array(13, Int32ul),
)

TICK_ARRAY_STATE = Struct(
    "pool_id" / PUBKEY,
    "start_tick_index" / Int32sl,
    "ticks" / Array(TICK_ARRAY_SIZE, TICK_STATE),
    "initialized_tick_count" / Int8ul,
    "recent_epoch" / Int64ul,
    "padding" / Bytes(107),
)

TICK_ARRAY_BITMAP_EXTENSION = Struct(
    "pool_id" / PUBKEY,
    "positive_tick_array_bitmap" / Array(
        EXTENSION_BITMAP_CHUNKS, Array(EXTENSION_CHUNK_WORDS, Int64ul)
    ),
    "negative_tick_array_bitmap" / Array(
        EXTENSION_BITMAP_CHUNKS, Array(EXTENSION_CHUNK_WORDS, Int64ul)
    ),
)


# ============================================================
# Decoding
# ============================================================

def _parse(layout: Struct, data: bytes, discriminator: bytes, account_name: str):
    data = bytes(data)
    if len(data) < DISCRIMINATOR_LENGTH:
        raise AccountDecodeError(f"{account_name}: account data too short ({len(data)} bytes)")
    if data[:DISCRIMINATOR_LENGTH] != discriminator:
        raise AccountDecodeError(
            f"{account_name}: discriminator mismatch "
            f"(got {data[:DISCRIMINATOR_LENGTH].hex()}, expected {discriminator.hex()})"
        )
    try:
        return layout.parse(data[DISCRIMINATOR_LENGTH:])
    except ConstructError as e:
        raise AccountDecodeError(f"{account_name}: {e}")


def parse_pool_state(data: bytes):
    """Full PoolState as a construct Container."""
    return _parse(POOL_STATE, data, POOL_STATE_DISCRIMINATOR, "PoolState")


def parse_tick_array(data: bytes):
    return _parse(TICK_ARRAY_STATE, data, TICK_ARRAY_DISCRIMINATOR, "TickArrayState")


def parse_bitmap_extension(data: bytes):
    return _parse(
        TICK_ARRAY_BITMAP_EXTENSION, data, BITMAP_EXTENSION_DISCRIMINATOR, "TickArrayBitmapExtension"
    )


def decode_pool_state(data: bytes, pool_id: bytes = b"") -> PoolSnapshot:
    """
    Decode PoolState account bytes into a PoolSnapshot.

    Raises:
        AccountDecodeError: wrong discriminator, truncated data, bad tick spacing
    """
    state = parse_pool_state(data)
    if state.tick_spacing == 0:
        raise AccountDecodeError("PoolState: tick_spacing is 0")
    return PoolSnapshot(
        tick_current=state.tick_current,
        sqrt_price_x64=state.sqrt_price_x64,
        tick_spacing=state.tick_spacing,
        decimals_0=state.mint_decimals_0,
        decimals_1=state.mint_decimals_1,
        tick_array_bitmap=tuple(state.tick_array_bitmap),
        liquidity=state.liquidity,
        pool_id=bytes(pool_id),
        amm_config=bytes(state.amm_config),
        token_mint_0=bytes(state.token_mint_0),
        token_mint_1=bytes(state.token_mint_1),
        status=state.status,
    )


def decode_tick_array(data: bytes, tick_spacing: int) -> TickArray:
    """
    Decode TickArrayState account bytes.

    Only initialized slots (liquidity_gross != 0) become records.

    Raises:
        AccountDecodeError: bad bytes, or the stored ticks do not match the array layout
    """
    state = parse_tick_array(data)
    records: Dict[int, TickRecord] = {}
    for slot, tick_state in enumerate(state.ticks):
        if tick_state.liquidity_gross == 0:
            continue
        records[slot] = TickRecord(
            tick=tick_state.tick,
            liquidity_net=tick_state.liquidity_net,
            liquidity_gross=tick_state.liquidity_gross,
        )

    try:
        tick_array = TickArray(
            start_index=state.start_tick_index,
            tick_spacing=tick_spacing,
            records=records,
            pool_id=bytes(state.pool_id),
        )
    except TickScopeError as e:
        raise AccountDecodeError(f"TickArrayState {state.start_tick_index}: {e}")

    if tick_array.initialized_tick_count != state.initialized_tick_count:
        logger.warning(
            f"Tick array {state.start_tick_index}: header says "
            f"{state.initialized_tick_count} initialized ticks, found {tick_array.initialized_tick_count}"
        )
    return tick_array


def decode_bitmap_extension(data: bytes) -> BitmapExtension:
    """Decode TickArrayBitmapExtension account bytes."""
    state = parse_bitmap_extension(data)
    return BitmapExtension(
        pool_id=bytes(state.pool_id),
        positive=tuple(tuple(chunk) for chunk in state.positive_tick_array_bitmap),
        negative=tuple(tuple(chunk) for chunk in state.negative_tick_array_bitmap),
    )
