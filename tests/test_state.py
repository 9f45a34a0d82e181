"""
Tests for tickscope.state - decoded account values.
"""

import dataclasses

import pytest

from tickscope.exceptions import AlignmentError, DomainError
from tickscope.state import TickArray, TickRecord


def make_array(**overrides):
    records = {3: TickRecord(30, 100, 100), 7: TickRecord(70, -100, 100)}
    kwargs = dict(start_index=0, tick_spacing=10, records=records)
    kwargs.update(overrides)
    return TickArray(**kwargs)


# ===================================================================
# TickArray
# ===================================================================
class TestTickArray:

    def test_records_are_read_only(self):
        tick_array = make_array()
        with pytest.raises(TypeError):
            tick_array.records[5] = TickRecord(50, 1, 1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            tick_array.records = {}

    def test_source_dict_is_copied(self):
        records = {3: TickRecord(30, 100, 100)}
        tick_array = make_array(records=records)
        records[4] = TickRecord(40, 1, 1)
        assert set(tick_array.records) == {3}

    def test_hashable(self):
        a, b = make_array(), make_array()
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_records_take_part_in_equality(self):
        assert make_array() != make_array(records={})

    def test_empty_by_default(self):
        tick_array = TickArray(start_index=-600, tick_spacing=10)
        assert tick_array.records == {}
        assert tick_array.initialized_tick_count == 0

    def test_helpers(self):
        tick_array = make_array()
        assert tick_array.end_index == 590
        assert tick_array.record_at(7).liquidity_net == -100
        assert tick_array.record_at(8) is None
        assert [r.tick for r in tick_array.initialized_records()] == [30, 70]

    def test_unaligned_start_raises(self):
        with pytest.raises(AlignmentError):
            make_array(start_index=60, records={})

    def test_record_in_wrong_slot_raises(self):
        with pytest.raises(DomainError, match="expected 30"):
            make_array(records={3: TickRecord(40, 1, 1)})
