"""
Tests for tickscope.pda - program derived addresses.

The curve predicate is injected, so most tests use fakes to pin down
the bump search; the known-answer tests use the default predicate.
"""

import hashlib

import pytest

from config import RAYDIUM_CLMM, TICK_ARRAY_SEED, TICK_ARRAY_BITMAP_SEED
from tickscope.exceptions import DomainError, NoValidAddressError
from tickscope.pda import (
    DerivedAddress,
    decode_pubkey,
    encode_pubkey,
    is_on_curve,
    hash_seeds,
    find_program_address,
    tick_array_seeds,
    bitmap_extension_seeds,
    derive_tick_array_address,
    derive_bitmap_extension_address,
)

from conftest import POOL_ID


PROGRAM = decode_pubkey(RAYDIUM_CLMM.program_id)


def never_on_curve(candidate):
    return False


def always_on_curve(candidate):
    return True


class OnCurveForFirst:
    """Reports the first `count` candidates as on-curve."""

    def __init__(self, count):
        self.count = count
        self.seen = []

    def __call__(self, candidate):
        self.seen.append(candidate)
        return len(self.seen) <= self.count


# ===================================================================
# Pubkeys
# ===================================================================
class TestPubkeys:

    def test_program_id_round_trip(self):
        assert len(PROGRAM) == 32
        assert encode_pubkey(PROGRAM) == RAYDIUM_CLMM.program_id

    def test_bytes_pass_through(self):
        assert decode_pubkey(POOL_ID) == POOL_ID

    def test_surrounding_whitespace_ignored(self):
        assert decode_pubkey(f"  {RAYDIUM_CLMM.program_id}\n") == PROGRAM

    def test_invalid_base58_raises(self):
        with pytest.raises(DomainError, match="Invalid base58"):
            decode_pubkey("0OIl")

    @pytest.mark.parametrize("value", [b"abc", bytes(33), ""])
    def test_wrong_length_raises(self, value):
        with pytest.raises(DomainError, match="32 bytes"):
            decode_pubkey(value)


# ===================================================================
# Seeds
# ===================================================================
class TestSeeds:

    def test_tick_array_seeds_big_endian(self):
        seeds = tick_array_seeds(POOL_ID, -60)
        assert seeds[0] == TICK_ARRAY_SEED
        assert seeds[1] == POOL_ID
        assert seeds[2] == b"\xff\xff\xff\xc4"

    def test_tick_array_seeds_positive(self):
        assert tick_array_seeds(POOL_ID, 3600)[2] == b"\x00\x00\x0e\x10"

    def test_start_outside_i32_raises(self):
        with pytest.raises(DomainError, match="i32"):
            tick_array_seeds(POOL_ID, 2 ** 31)

    def test_bitmap_extension_seeds(self):
        assert bitmap_extension_seeds(POOL_ID) == [TICK_ARRAY_BITMAP_SEED, POOL_ID]

    def test_hash_seeds_layout(self):
        seeds = [b"abc", b"de"]
        expected = hashlib.sha256(b"abcde" + bytes([254]) + PROGRAM + b"ProgramDerivedAddress").digest()
        assert hash_seeds(seeds, 254, PROGRAM) == expected


# ===================================================================
# find_program_address
# ===================================================================
class TestFindProgramAddress:

    def test_first_off_curve_bump_is_255(self):
        seeds = [b"seed"]
        derived = find_program_address(seeds, PROGRAM, never_on_curve)
        assert derived.bump == 255
        assert derived.address == hash_seeds(seeds, 255, PROGRAM)

    @pytest.mark.parametrize("count", [1, 3, 17])
    def test_skips_on_curve_candidates(self, count):
        predicate = OnCurveForFirst(count)
        derived = find_program_address([b"seed"], PROGRAM, predicate)
        assert derived.bump == 255 - count
        assert derived.address == hash_seeds([b"seed"], 255 - count, PROGRAM)
        assert len(predicate.seen) == count + 1

    def test_every_bump_on_curve_raises(self):
        with pytest.raises(NoValidAddressError):
            find_program_address([b"seed"], PROGRAM, always_on_curve)

    def test_bump_zero_is_tried(self):
        derived = find_program_address([b"seed"], PROGRAM, OnCurveForFirst(255))
        assert derived.bump == 0

    def test_too_many_seeds_raises(self):
        with pytest.raises(DomainError, match="Too many seeds"):
            find_program_address([b"x"] * 16, PROGRAM, never_on_curve)

    def test_seed_too_long_raises(self):
        with pytest.raises(DomainError, match="Seed longer"):
            find_program_address([bytes(33)], PROGRAM, never_on_curve)

    def test_program_id_as_string(self):
        a = find_program_address([b"seed"], RAYDIUM_CLMM.program_id, never_on_curve)
        b = find_program_address([b"seed"], PROGRAM, never_on_curve)
        assert a == b


# ===================================================================
# Real curve check
# ===================================================================
class TestDeriveAddresses:
    """Derivation with the default curve predicate."""

    def test_tick_array_deterministic(self):
        a = derive_tick_array_address(POOL_ID, -3600)
        b = derive_tick_array_address(POOL_ID, -3600)
        assert a == b
        assert isinstance(a, DerivedAddress)
        assert len(a.address) == 32

    def test_result_is_off_curve_and_canonical(self):
        derived = derive_tick_array_address(POOL_ID, 0)
        seeds = tick_array_seeds(POOL_ID, 0)
        assert not is_on_curve(derived.address)
        for bump in range(255, derived.bump, -1):
            assert is_on_curve(hash_seeds(seeds, bump, PROGRAM))

    def test_different_starts_different_addresses(self):
        addresses = {derive_tick_array_address(POOL_ID, s).address for s in (-60, 0, 60)}
        assert len(addresses) == 3

    def test_program_id_changes_address(self):
        other_program = bytes([9] * 32)
        assert (derive_tick_array_address(POOL_ID, 0).address
                != derive_tick_array_address(POOL_ID, 0, other_program).address)

    def test_bitmap_extension(self):
        derived = derive_bitmap_extension_address(POOL_ID)
        assert derived.address == hash_seeds(bitmap_extension_seeds(POOL_ID), derived.bump, PROGRAM)
        assert str(derived) == derived.base58

    def test_predicate_is_passed_through(self):
        derived = derive_bitmap_extension_address(POOL_ID, is_valid_curve_point=never_on_curve)
        assert derived.bump == 255


# ===================================================================
# Known mainnet addresses
# ===================================================================

# Raydium CLMM pool with tick spacing 1
MAINNET_POOL = "3ucNos4NbumPLZNWztqGHNFFgkHeRMBQAVemeeomsUxv"


class TestKnownAddresses:
    """Addresses and bumps as derived by the Solana runtime."""

    @pytest.mark.parametrize(
        "start_index, address, bump",
        [
            (0, "8mmd9S2YL1JUhYpoPBi2FQe1ZUGgEYg7kNRYsYicPZx5", 255),
            (60, "G5ZFL7CzPrfff64qt2v5zkU7Zc62SDB6AkXUYfZAi91T", 255),
            (-60, "BxFA46CcwEDkxUNgfeLWPVHsLt2RA1uw6x1BnDnTmEck", 255),
            (-1500, "HE5gdNr8FcYg9Jen7BiH16CtGTGkco18Q5co7wSFfWZ3", 253),
            (-1800, "BVy79ft2uuGdkbWaFYi5G43LDFPsAWzzLbbvBZ4pFi3Y", 251),
            (-1860, "55s2WH6r6HpLfCjbYwpDo9HvTMbt8tVgWJDNNGKJcDBH", 249),
            (-1980, "4USB2VN7nReKMjhszKWbaMEuFMe7VgFHYwwvQWqYGVyY", 254),
            (-2160, "E7C6F9iXJUayZDkeuf4zpJj9SviU1L8fNknedN8zL4Xa", 254),
        ],
    )
    def test_tick_array(self, start_index, address, bump):
        derived = derive_tick_array_address(MAINNET_POOL, start_index)
        assert derived.base58 == address
        assert derived.bump == bump

    def test_bitmap_extension(self):
        derived = derive_bitmap_extension_address(MAINNET_POOL)
        assert derived.base58 == "4NFvUKqknMpoe6CWTzK758B8ojVLzURL5pC6MtiaJ8TQ"
        assert derived.bump == 255

    def test_small_order_point_is_on_curve(self):
        identity = bytes([1]) + bytes(31)
        assert is_on_curve(identity)
