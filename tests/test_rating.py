from datetime import datetime

import pytest
from conftest import busy

from mutual_availability.domain.availability.rating import has_clear_buffer, rate
from mutual_availability.domain.availability.schemas import Rating, Slot


def at(hour, minute=0):
    return datetime(2024, 1, 1, hour, minute)


@pytest.mark.parametrize(
    "slot,busy_blocks,expected",
    [
        # long and clear
        (Slot(at(10), at(12)), [], Rating.EXCELLENT),
        # long, busy inside the buffer
        (Slot(at(10), at(12)), [busy(at(9), at(9, 45))], Rating.GOOD),
        # 90 minutes is good even without a buffer
        (Slot(at(10), at(11, 30)), [busy(at(9), at(10))], Rating.GOOD),
        # short and clear
        (Slot(at(10), at(11)), [], Rating.GOOD),
        # short and back-to-back with busy time
        (Slot(at(10), at(11)), [busy(at(9), at(10))], Rating.FAIR),
        (Slot(at(10), at(11)), [busy(at(11), at(12))], Rating.FAIR),
    ],
)
def test_rate(slot, busy_blocks, expected):
    assert rate(slot, busy_blocks) == expected


def test_busy_ending_exactly_at_buffer_edge_counts_as_clear():
    slot = Slot(at(10), at(11))
    assert has_clear_buffer(slot, [busy(at(9), at(9, 30))])
    assert has_clear_buffer(slot, [busy(at(11, 30), at(12))])
    assert not has_clear_buffer(slot, [busy(at(9), at(9, 31))])


def test_custom_buffer_width():
    slot = Slot(at(10), at(11))
    blocks = [busy(at(9), at(9, 50))]
    assert not has_clear_buffer(slot, blocks)
    assert has_clear_buffer(slot, blocks, buffer_minutes=5)
