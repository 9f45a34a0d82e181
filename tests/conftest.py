"""
Shared fixtures for all tests.
"""

import base64

import pytest
from unittest.mock import Mock, MagicMock

from tickscope.layouts import (
    POOL_STATE,
    TICK_ARRAY_STATE,
    TICK_ARRAY_BITMAP_EXTENSION,
    POOL_STATE_DISCRIMINATOR,
    TICK_ARRAY_DISCRIMINATOR,
    BITMAP_EXTENSION_DISCRIMINATOR,
)
from tickscope.pda import (
    derive_bitmap_extension_address,
    derive_tick_array_address,
    encode_pubkey,
)
from tickscope.state import PoolSnapshot


# Test keys
POOL_ID = bytes([7] * 32)
MINT_0 = bytes([1] * 32)
MINT_1 = bytes([2] * 32)
AMM_CONFIG = bytes([3] * 32)
ZERO_KEY = bytes(32)


# ============================================================
# Account builders (construct)
# ============================================================

def _reward_info():
    return {
        "reward_state": 0,
        "open_time": 0,
        "end_time": 0,
        "last_update_time": 0,
        "emissions_per_second_x64": 0,
        "reward_total_emissioned": 0,
        "reward_claimed": 0,
        "token_mint": ZERO_KEY,
        "token_vault": ZERO_KEY,
        "authority": ZERO_KEY,
        "reward_growth_global_x64": 0,
    }


def build_pool_state(tick_current=0, tick_spacing=1, sqrt_price_x64=2 ** 64,
                     decimals_0=9, decimals_1=6, bitmap=None, liquidity=10 ** 12,
                     status=0) -> bytes:
    """PoolState account bytes, discriminator included."""
    fields = {
        "bump": 255,
        "amm_config": AMM_CONFIG,
        "owner": ZERO_KEY,
        "token_mint_0": MINT_0,
        "token_mint_1": MINT_1,
        "token_vault_0": ZERO_KEY,
        "token_vault_1": ZERO_KEY,
        "observation_key": ZERO_KEY,
        "mint_decimals_0": decimals_0,
        "mint_decimals_1": decimals_1,
        "tick_spacing": tick_spacing,
        "liquidity": liquidity,
        "sqrt_price_x64": sqrt_price_x64,
        "tick_current": tick_current,
        "padding3": 0,
        "padding4": 0,
        "fee_growth_global_0_x64": 0,
        "fee_growth_global_1_x64": 0,
        "protocol_fees_token_0": 0,
        "protocol_fees_token_1": 0,
        "swap_in_amount_token_0": 0,
        "swap_out_amount_token_1": 0,
        "swap_in_amount_token_1": 0,
        "swap_out_amount_token_0": 0,
        "status": status,
        "padding": bytes(7),
        "reward_infos": [_reward_info() for _ in range(3)],
        "tick_array_bitmap": list(bitmap) if bitmap is not None else [0] * 16,
        "total_fees_token_0": 0,
        "total_fees_claimed_token_0": 0,
        "total_fees_token_1": 0,
        "total_fees_claimed_token_1": 0,
        "fund_fees_token_0": 0,
        "fund_fees_token_1": 0,
        "open_time": 0,
        "recent_epoch": 0,
        "padding1": [0] * 24,
        "padding2": [0] * 32,
    }
    return POOL_STATE_DISCRIMINATOR + POOL_STATE.build(fields)


def _tick_state(tick=0, liquidity_net=0, liquidity_gross=0):
    return {
        "tick": tick,
        "liquidity_net": liquidity_net,
        "liquidity_gross": liquidity_gross,
        "fee_growth_outside_0_x64": 0,
        "fee_growth_outside_1_x64": 0,
        "reward_growths_outside_x64": [0, 0, 0],
        "padding": [0] * 13,
    }


def build_tick_array(start_index, tick_spacing, ticks=None, pool_id=POOL_ID,
                     initialized_tick_count=None) -> bytes:
    """
    TickArrayState account bytes.

    Args:
        ticks: {slot: (liquidity_net, liquidity_gross)}
    """
    ticks = ticks or {}
    states = []
    for slot in range(60):
        if slot in ticks:
            net, gross = ticks[slot]
            states.append(_tick_state(start_index + slot * tick_spacing, net, gross))
        else:
            states.append(_tick_state())
    if initialized_tick_count is None:
        initialized_tick_count = sum(1 for net, gross in ticks.values() if gross != 0)
    fields = {
        "pool_id": pool_id,
        "start_tick_index": start_index,
        "ticks": states,
        "initialized_tick_count": initialized_tick_count,
        "recent_epoch": 0,
        "padding": bytes(107),
    }
    return TICK_ARRAY_DISCRIMINATOR + TICK_ARRAY_STATE.build(fields)


def build_bitmap_extension(positive=None, negative=None, pool_id=POOL_ID) -> bytes:
    """TickArrayBitmapExtension bytes; missing chunks are zero."""
    def chunks(value):
        value = [list(chunk) for chunk in (value or [])]
        return value + [[0] * 8 for _ in range(14 - len(value))]

    fields = {
        "pool_id": pool_id,
        "positive_tick_array_bitmap": chunks(positive),
        "negative_tick_array_bitmap": chunks(negative),
    }
    return BITMAP_EXTENSION_DISCRIMINATOR + TICK_ARRAY_BITMAP_EXTENSION.build(fields)


def default_bitmap_with(*positions) -> list:
    """16-word default bitmap with the given bit positions (0..1023) set."""
    words = [0] * 16
    for position in positions:
        words[position // 64] |= 1 << (position % 64)
    return words


# ============================================================
# RPC mocks
# ============================================================

def rpc_response(result, status_code=200):
    """Mock requests.Response carrying a JSON-RPC result."""
    resp = Mock()
    resp.status_code = status_code
    resp.text = ""
    resp.json = Mock(return_value={"jsonrpc": "2.0", "id": 1, "result": result})
    return resp


def account_value(data: bytes) -> dict:
    return {
        "data": [base64.b64encode(data).decode("ascii"), "base64"],
        "executable": False,
        "lamports": 1_000_000,
        "owner": "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
        "rentEpoch": 0,
    }


class FakeSolanaAccounts:
    """
    In-memory account store behind a mocked requests.Session.

    Answers getAccountInfo and getMultipleAccounts from self.accounts
    (base58 address -> bytes).
    """

    def __init__(self):
        self.accounts = {}
        self.calls = []
        self.session = MagicMock()
        self.session.headers = {}
        self.session.post = Mock(side_effect=self._post)

    def add(self, address: bytes, data: bytes):
        self.accounts[encode_pubkey(address)] = data

    def _value(self, key):
        data = self.accounts.get(key)
        return account_value(data) if data is not None else None

    def _post(self, url, json=None, timeout=None):
        self.calls.append(json)
        method, params = json["method"], json["params"]
        if method == "getAccountInfo":
            return rpc_response({"context": {"slot": 1}, "value": self._value(params[0])})
        if method == "getMultipleAccounts":
            return rpc_response({"context": {"slot": 1}, "value": [self._value(k) for k in params[0]]})
        raise AssertionError(f"Unexpected RPC method {method}")


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def snapshot():
    """Pool at tick 0, spacing 1 (60 ticks per array), empty bitmap."""
    return PoolSnapshot(
        tick_current=0,
        sqrt_price_x64=2 ** 64,
        tick_spacing=1,
        decimals_0=6,
        decimals_1=6,
        tick_array_bitmap=tuple([0] * 16),
        pool_id=POOL_ID,
    )


@pytest.fixture
def fake_accounts():
    return FakeSolanaAccounts()


# Far array flagged only in the positive extension (its account is missing)
FAR_ARRAY = 512 * 60


@pytest.fixture
def pool_accounts(fake_accounts):
    """
    Pool at tick 0, spacing 1:
        default bitmap: arrays 0 and -60
        extension:      array FAR_ARRAY (account missing)
        array -60: tick -10 +100
        array 0:   tick  10 -100
    """
    fake_accounts.add(POOL_ID, build_pool_state(
        tick_current=0, tick_spacing=1, bitmap=default_bitmap_with(512, 511),
    ))
    fake_accounts.add(
        derive_bitmap_extension_address(POOL_ID).address,
        build_bitmap_extension(positive=[[1, 0, 0, 0, 0, 0, 0, 0]]),
    )
    fake_accounts.add(
        derive_tick_array_address(POOL_ID, -60).address,
        build_tick_array(-60, 1, {50: (100, 100)}),
    )
    fake_accounts.add(
        derive_tick_array_address(POOL_ID, 0).address,
        build_tick_array(0, 1, {10: (-100, 100)}),
    )
    return fake_accounts
