from __future__ import annotations

from datetime import date

from pydantic import ValidationError
import pytest

from bookingcore.schemas.schedule import BlockedRange, ScheduleRules


def _rules(**overrides: object) -> ScheduleRules:
    data = {
        "operatingDays": ["Friday", "monday"],
        "startTime": "09:00",
        "endTime": "17:00",
        "slotInterval": 90,
    }
    data.update(overrides)
    return ScheduleRules.model_validate(data)


class TestScheduleRulesValidation:
    def test_accepts_camel_case_document(self) -> None:
        rules = _rules(advanceBooking=2, customHoursEnabled=True)
        assert rules.slot_interval == 90
        assert rules.advance_booking == 2
        assert rules.custom_hours_enabled is True

    def test_operating_days_are_normalized_and_ordered(self) -> None:
        assert _rules().operating_days == ["Monday", "Friday"]

    def test_unknown_weekday_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _rules(operatingDays=["Funday"])

    @pytest.mark.parametrize("value", ["9am", "24:00", "12:60", ""])
    def test_malformed_times_rejected(self, value: str) -> None:
        with pytest.raises(ValidationError):
            _rules(startTime=value)

    def test_start_must_precede_end(self) -> None:
        with pytest.raises(ValidationError):
            _rules(startTime="18:00", endTime="09:00")

    @pytest.mark.parametrize("interval", [0, -15])
    def test_slot_interval_must_be_positive(self, interval: int) -> None:
        with pytest.raises(ValidationError):
            _rules(slotInterval=interval)

    def test_negative_advance_booking_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _rules(advanceBooking=-1)

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _rules(timezone="UTC")

    def test_custom_hours_keys_normalized(self) -> None:
        rules = _rules(customHours={"saturday": {"startTime": "10:00", "endTime": "14:00"}})
        assert set(rules.custom_hours) == {"Saturday"}
        assert rules.custom_hours["Saturday"].enabled is True

    def test_dump_round_trips_to_camel_case(self) -> None:
        dumped = _rules(blockedDates=["2025-12-25"]).model_dump(mode="json", by_alias=True)
        assert dumped["slotInterval"] == 90
        assert dumped["blockedDates"][0]["date"] == "2025-12-25"
        assert ScheduleRules.model_validate(dumped) == _rules(blockedDates=["2025-12-25"])


class TestBlockedDates:
    def test_plain_dates_block_the_whole_day(self) -> None:
        rules = _rules(blockedDates=["2025-12-25"])
        (block,) = rules.blocks_for(date(2025, 12, 25))
        assert block.is_full_day
        assert rules.blocks_for(date(2025, 12, 26)) == []

    def test_ranged_block(self) -> None:
        rules = _rules(
            blockedDates=[{"date": "2025-12-24", "startTime": "12:00", "endTime": "15:00"}]
        )
        (block,) = rules.blocks_for(date(2025, 12, 24))
        assert not block.is_full_day

    def test_ranged_block_needs_both_ends(self) -> None:
        with pytest.raises(ValidationError):
            BlockedRange.model_validate({"date": "2025-12-24", "startTime": "12:00"})
