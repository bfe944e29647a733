"""
Tests for the Score Aggregator
==============================
Covers:
- build_history: fixed length, date alignment, duplicates, null fields
- headline scores always equal the last history slot
- detail metrics: unit conversions, rounding, sentinels
- stress histories: seconds → minutes with 0 sentinel
- Oura record models keep only the fields the aggregator reads

Run: pytest tests/test_aggregator.py -v
"""

from __future__ import annotations

from datetime import date

from ourabridge.models.credential import FetchWindow
from ourabridge.models.oura import (
    OuraDailyActivityItem,
    OuraDailyReadinessItem,
    OuraDailySleepItem,
    OuraDailyStressItem,
    OuraSleepPeriod,
)
from ourabridge.models.snapshot import ScoreSnapshot
from ourabridge.services.aggregator import (
    FetchedRecords,
    aggregate,
    build_history,
    round_half_up,
)

_TODAY = date(2024, 1, 3)
_WINDOW = FetchWindow.ending_today(_TODAY)


def _sleep(day: str, score: int | None) -> OuraDailySleepItem:
    return OuraDailySleepItem(day=day, score=score)


# ---------------------------------------------------------------------------
# TestBuildHistory
# ---------------------------------------------------------------------------

class TestBuildHistory:

    def test_records_land_on_their_dates(self):
        records = [_sleep("2024-01-01", 75), _sleep("2024-01-03", 90)]
        history = build_history(records, "score", _TODAY)

        assert history == [-1, -1, -1, -1, 75, -1, 90]
        assert history[6] == 90
        assert history[4] == 75

    def test_no_records_gives_seven_sentinels(self):
        assert build_history([], "score", _TODAY) == [-1] * 7

    def test_custom_sentinel(self):
        assert build_history([], "stress_high", _TODAY, default=0) == [0] * 7

    def test_duplicate_days_last_record_wins(self):
        records = [_sleep("2024-01-03", 60), _sleep("2024-01-03", 81)]
        assert build_history(records, "score", _TODAY)[6] == 81

    def test_records_outside_the_week_are_ignored(self):
        # Window starts seven days back and ends tomorrow; neither end is charted
        records = [_sleep("2023-12-27", 50), _sleep("2024-01-04", 99), _sleep("2023-12-28", 70)]
        history = build_history(records, "score", _TODAY)

        assert len(history) == 7
        assert history == [70, -1, -1, -1, -1, -1, -1]

    def test_null_field_uses_sentinel(self):
        assert build_history([_sleep("2024-01-03", None)], "score", _TODAY)[6] == -1

    def test_zero_is_a_real_value(self):
        assert build_history([_sleep("2024-01-03", 0)], "score", _TODAY)[6] == 0


# ---------------------------------------------------------------------------
# TestAggregate
# ---------------------------------------------------------------------------

class TestAggregate:

    def test_empty_records_give_all_sentinels(self):
        snapshot = aggregate(FetchedRecords(), _WINDOW)

        assert snapshot == ScoreSnapshot()
        assert snapshot.readiness_temp == -100
        assert snapshot.stress_high_history == [0] * 7

    def test_headline_scores_match_last_history_slot(self):
        records = FetchedRecords(
            daily_sleep=[_sleep("2024-01-02", 70), _sleep("2024-01-03", 88)],
            daily_readiness=[OuraDailyReadinessItem(day="2024-01-02", score=64)],
            daily_activity=[OuraDailyActivityItem(day="2024-01-03", score=77)],
        )
        snapshot = aggregate(records, _WINDOW)

        assert snapshot.sleep_score == snapshot.sleep_history[6] == 88
        # Yesterday's readiness is charted but is not today's headline
        assert snapshot.readiness_history[5] == 64
        assert snapshot.readiness_score == -1
        assert snapshot.activity_score == 77

    def test_sleep_period_details(self):
        records = FetchedRecords(
            sleep_periods=[
                OuraSleepPeriod(day="2024-01-02", total_sleep_duration=20000),
                OuraSleepPeriod(
                    day="2024-01-03",
                    total_sleep_duration=25950,  # 432.5 min
                    time_in_bed=28800,
                    efficiency=90,
                    average_heart_rate=57.5,
                    average_hrv=44.4,
                    average_breath=15.75,
                ),
            ]
        )
        snapshot = aggregate(records, _WINDOW)

        assert snapshot.sleep_total == 433
        assert snapshot.sleep_in_bed == 480
        assert snapshot.sleep_efficiency == 90
        assert snapshot.sleep_hr == 58
        assert snapshot.readiness_hr == 58
        assert snapshot.readiness_hrv == 44
        assert snapshot.readiness_resp == 158

    def test_sleep_period_missing_fields_are_sentinels(self):
        snapshot = aggregate(
            FetchedRecords(sleep_periods=[OuraSleepPeriod(day="2024-01-03")]), _WINDOW
        )
        assert snapshot.sleep_total == -1
        assert snapshot.sleep_efficiency == -1
        assert snapshot.readiness_resp == -1

    def test_temperature_deviation_scaled_and_signed(self):
        records = FetchedRecords(
            daily_readiness=[OuraDailyReadinessItem(day="2024-01-03", score=80, temperature_deviation=-0.23)]
        )
        assert aggregate(records, _WINDOW).readiness_temp == -2

    def test_zero_temperature_deviation_is_not_the_sentinel(self):
        records = FetchedRecords(
            daily_readiness=[OuraDailyReadinessItem(day="2024-01-03", score=80, temperature_deviation=0.0)]
        )
        assert aggregate(records, _WINDOW).readiness_temp == 0

    def test_activity_details(self):
        records = FetchedRecords(
            daily_activity=[
                OuraDailyActivityItem(
                    day="2024-01-03",
                    score=65,
                    steps=8432,
                    active_calories=320,
                    target_calories=500,
                    total_calories=2100,
                    high_activity_time=900,
                    medium_activity_time=1800,
                )
            ]
        )
        snapshot = aggregate(records, _WINDOW)

        assert snapshot.activity_steps == 8432
        assert snapshot.activity_cal == 320
        assert snapshot.activity_goal_cal == 500
        assert snapshot.activity_burn == 2100
        assert snapshot.activity_time == 45

    def test_activity_time_zero_when_fields_absent(self):
        records = FetchedRecords(daily_activity=[OuraDailyActivityItem(day="2024-01-03")])
        snapshot = aggregate(records, _WINDOW)

        assert snapshot.activity_time == 0
        assert snapshot.activity_steps == -1

    def test_stress_histories_in_minutes(self):
        records = FetchedRecords(
            daily_stress=[
                OuraDailyStressItem(day="2024-01-02", stress_high=1500, recovery_high=3570),
                OuraDailyStressItem(day="2024-01-03", stress_high=90, recovery_high=None),
            ]
        )
        snapshot = aggregate(records, _WINDOW)

        assert snapshot.stress_high_history == [0, 0, 0, 0, 0, 25, 2]
        assert snapshot.stress_restore_history == [0, 0, 0, 0, 0, 60, 0]


class TestRounding:

    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_negative_half_rounds_toward_zero(self):
        assert round_half_up(-2.5) == -2
        assert round_half_up(-2.3) == -2


class TestOuraRecords:

    def test_raw_payload_keeps_only_aggregated_fields(self):
        item = OuraDailySleepItem.model_validate(
            {
                "id": "abc",
                "day": "2024-01-03",
                "score": 82,
                "contributors": {"deep_sleep": 90},
                "timestamp": "2024-01-03T00:00:00+00:00",
            }
        )

        assert item.model_dump() == {"day": date(2024, 1, 3), "score": 82}

    def test_stress_and_sleep_period_extras_ignored(self):
        stress = OuraDailyStressItem.model_validate(
            {"day": "2024-01-03", "stress_high": 1800, "recovery_high": 600, "day_summary": "normal"}
        )
        period = OuraSleepPeriod.model_validate(
            {"day": "2024-01-03", "type": "long_sleep", "total_sleep_duration": 25200}
        )

        assert set(stress.model_dump()) == {"day", "stress_high", "recovery_high"}
        assert "type" not in period.model_dump()
        assert period.total_sleep_duration == 25200
