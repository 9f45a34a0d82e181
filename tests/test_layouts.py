"""
Tests for tickscope.layouts - account decoding.
"""

import hashlib
import logging

import pytest

from tickscope.exceptions import AccountDecodeError
from tickscope.layouts import (
    POOL_STATE,
    TICK_STATE,
    TICK_ARRAY_STATE,
    TICK_ARRAY_BITMAP_EXTENSION,
    POOL_STATE_DISCRIMINATOR,
    TICK_ARRAY_DISCRIMINATOR,
    account_discriminator,
    parse_pool_state,
    decode_pool_state,
    decode_tick_array,
    decode_bitmap_extension,
)

from conftest import (
    POOL_ID,
    MINT_0,
    MINT_1,
    AMM_CONFIG,
    build_pool_state,
    build_tick_array,
    build_bitmap_extension,
    default_bitmap_with,
)


# ===================================================================
# Layout sizes and discriminators
# ===================================================================
class TestLayouts:
    """Sizes must match the on-chain account lengths (minus 8-byte discriminator)."""

    def test_pool_state_size(self):
        assert POOL_STATE.sizeof() == 1544 - 8

    def test_tick_state_size(self):
        assert TICK_STATE.sizeof() == 168

    def test_tick_array_size(self):
        assert TICK_ARRAY_STATE.sizeof() == 10240 - 8

    def test_bitmap_extension_size(self):
        assert TICK_ARRAY_BITMAP_EXTENSION.sizeof() == 1832 - 8

    def test_discriminator(self):
        assert account_discriminator("PoolState") == hashlib.sha256(b"account:PoolState").digest()[:8]
        assert POOL_STATE_DISCRIMINATOR != TICK_ARRAY_DISCRIMINATOR


# ===================================================================
# PoolState
# ===================================================================
class TestDecodePoolState:

    def test_fields(self):
        data = build_pool_state(
            tick_current=-120, tick_spacing=60, sqrt_price_x64=12345 << 64,
            decimals_0=9, decimals_1=6, bitmap=default_bitmap_with(512, 3), liquidity=777,
        )
        snapshot = decode_pool_state(data, pool_id=POOL_ID)
        assert snapshot.tick_current == -120
        assert snapshot.tick_spacing == 60
        assert snapshot.sqrt_price_x64 == 12345 << 64
        assert (snapshot.decimals_0, snapshot.decimals_1) == (9, 6)
        assert snapshot.tick_array_bitmap == tuple(default_bitmap_with(512, 3))
        assert snapshot.liquidity == 777
        assert snapshot.pool_id == POOL_ID
        assert snapshot.token_mint_0 == MINT_0
        assert snapshot.token_mint_1 == MINT_1
        assert snapshot.amm_config == AMM_CONFIG
        assert snapshot.current_array_start == -3600

    def test_raw_container(self):
        state = parse_pool_state(build_pool_state(tick_spacing=10))
        assert state.tick_spacing == 10
        assert len(state.reward_infos) == 3

    def test_wrong_discriminator(self):
        data = bytearray(build_pool_state())
        data[0] ^= 0xFF
        with pytest.raises(AccountDecodeError, match="discriminator"):
            decode_pool_state(bytes(data))

    def test_tick_array_bytes_are_not_a_pool(self):
        with pytest.raises(AccountDecodeError, match="discriminator"):
            decode_pool_state(build_tick_array(0, 1))

    def test_truncated(self):
        with pytest.raises(AccountDecodeError):
            decode_pool_state(build_pool_state()[:200])

    def test_too_short(self):
        with pytest.raises(AccountDecodeError, match="too short"):
            decode_pool_state(b"\x00\x01")

    def test_zero_tick_spacing(self):
        with pytest.raises(AccountDecodeError, match="tick_spacing"):
            decode_pool_state(build_pool_state(tick_spacing=0))


# ===================================================================
# TickArrayState
# ===================================================================
class TestDecodeTickArray:

    def test_records(self):
        data = build_tick_array(-600, 10, {0: (500, 500), 58: (-200, 300)})
        tick_array = decode_tick_array(data, 10)
        assert tick_array.start_index == -600
        assert tick_array.pool_id == POOL_ID
        assert set(tick_array.records) == {0, 58}
        assert tick_array.records[0].tick == -600
        assert tick_array.records[58].tick == -20
        assert tick_array.records[58].liquidity_net == -200
        assert tick_array.records[58].liquidity_gross == 300
        assert tick_array.initialized_tick_count == 2

    def test_large_i128_values(self):
        net = -(2 ** 100)
        gross = 2 ** 127
        tick_array = decode_tick_array(build_tick_array(0, 1, {7: (net, gross)}), 1)
        assert tick_array.records[7].liquidity_net == net
        assert tick_array.records[7].liquidity_gross == gross

    def test_uninitialized_slots_dropped(self):
        tick_array = decode_tick_array(build_tick_array(0, 1, {3: (0, 0)}), 1)
        assert tick_array.records == {}

    def test_tick_mismatch(self):
        data = build_tick_array(0, 10, {1: (5, 5)})
        with pytest.raises(AccountDecodeError, match="expected 20"):
            decode_tick_array(data, 20)

    def test_unaligned_start(self):
        data = build_tick_array(60, 1)
        with pytest.raises(AccountDecodeError):
            decode_tick_array(data, 10)

    def test_header_count_mismatch_warns(self, caplog):
        data = build_tick_array(0, 1, {1: (5, 5)}, initialized_tick_count=4)
        with caplog.at_level(logging.WARNING):
            tick_array = decode_tick_array(data, 1)
        assert tick_array.initialized_tick_count == 1
        assert "header says 4" in caplog.text


# ===================================================================
# TickArrayBitmapExtension
# ===================================================================
class TestDecodeBitmapExtension:

    def test_decode(self):
        positive = [[1, 0, 0, 0, 0, 0, 0, 0]]
        negative = [[0] * 8, [0, 0, 0, 0, 0, 0, 0, 1 << 63]]
        extension = decode_bitmap_extension(build_bitmap_extension(positive, negative))
        assert extension.pool_id == POOL_ID
        assert len(extension.positive) == 14
        assert len(extension.negative) == 14
        assert extension.positive[0][0] == 1
        assert extension.negative[1][7] == 1 << 63
        assert all(word == 0 for chunk in extension.positive[1:] for word in chunk)

    def test_wrong_account(self):
        with pytest.raises(AccountDecodeError):
            decode_bitmap_extension(build_pool_state())
