"""
Tests for the slot grid generator.
"""

from datetime import datetime, timedelta, timezone

import pytest

from salon_booking.errors import ValidationError
from salon_booking.services.slots.grid import (
    align_up,
    generate_slots,
    slot_starts,
)
from salon_booking.services.slots.intervals import Interval, subtract

DAY = datetime(2030, 6, 3, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return DAY + timedelta(minutes=minutes)


class TestAlignUp:
    def test_on_grid_unchanged(self):
        assert align_up(at(600), DAY, timedelta(minutes=30)) == at(600)

    def test_rounds_up(self):
        assert align_up(at(601), DAY, timedelta(minutes=30)) == at(630)
        assert align_up(at(605), DAY, timedelta(minutes=15)) == at(615)


class TestSlotStarts:
    def test_full_working_day(self):
        starts = slot_starts(Interval(at(540), at(1080)), DAY, timedelta(minutes=30), timedelta(minutes=30))
        assert len(starts) == 18
        assert starts[0] == at(540)
        assert starts[-1] == at(1050)

    def test_slot_must_fit_before_end(self):
        starts = slot_starts(Interval(at(540), at(600)), DAY, timedelta(minutes=45), timedelta(minutes=15))
        assert starts == [at(540), at(555)]

    def test_allowed_start_off_grid(self):
        starts = slot_starts(Interval(at(550), at(660)), DAY, timedelta(minutes=30), timedelta(minutes=30))
        assert starts == [at(570), at(600), at(630)]

    def test_earliest_start(self):
        starts = slot_starts(
            Interval(at(540), at(720)),
            DAY,
            timedelta(minutes=30),
            timedelta(minutes=30),
            earliest=at(605),
        )
        assert starts[0] == at(630)

    def test_every_slot_step_aligned_and_fits(self):
        allowed = Interval(at(487), at(1013))
        duration, step = timedelta(minutes=50), timedelta(minutes=20)
        for t in slot_starts(allowed, DAY, duration, step):
            assert (t - DAY) % step == timedelta(0)
            assert t >= allowed.start
            assert t + duration <= allowed.end

    @pytest.mark.parametrize("duration,step", [(0, 30), (-30, 30), (30, 0)])
    def test_non_positive_rejected(self, duration, step):
        with pytest.raises(ValidationError):
            slot_starts(Interval(at(540), at(600)), DAY, timedelta(minutes=duration), timedelta(minutes=step))


class TestGenerateSlots:
    def test_back_to_back_slots_offered(self):
        slots = generate_slots(
            [Interval(at(540), at(600))], DAY, timedelta(minutes=30), timedelta(minutes=30)
        )
        assert slots == [Interval(at(540), at(570)), Interval(at(570), at(600))]
        assert slots[0].end == slots[1].start

    def test_multiple_windows(self):
        slots = generate_slots(
            [Interval(at(540), at(600)), Interval(at(660), at(690))],
            DAY,
            timedelta(minutes=30),
            timedelta(minutes=30),
        )
        assert [s.start for s in slots] == [at(540), at(570), at(660)]


class TestSlotsAroundBusyBlocks:
    def test_slots_touch_but_never_overlap_busy_block(self):
        busy = Interval(at(600), at(660))
        allowed = subtract([Interval(at(540), at(720))], [busy])

        slots = generate_slots(allowed, DAY, timedelta(minutes=30), timedelta(minutes=30))

        assert Interval(at(570), at(600)) in slots
        assert Interval(at(660), at(690)) in slots
        assert not any(slot.overlaps(busy) for slot in slots)
