import unittest
from datetime import datetime, time
from zoneinfo import ZoneInfo

from smarttopup.errors import InvalidInput
from smarttopup.recurrence import (
    Daily,
    Monthly,
    OneTime,
    Weekly,
    next_occurrence,
    parse_timestamp,
    recurrence_from_payload,
)

LAGOS = ZoneInfo("Africa/Lagos")  # UTC+1 all year


def utc(*args) -> datetime:
    return datetime(*args)


class DailyRecurrenceTests(unittest.TestCase):
    def test_before_time_fires_today(self) -> None:
        # 08:00 local is 07:00 UTC; 09:00 local is 08:00 UTC
        self.assertEqual(next_occurrence(Daily(time(9, 0)), utc(2026, 3, 10, 7, 0), LAGOS), utc(2026, 3, 10, 8, 0))

    def test_after_time_fires_tomorrow(self) -> None:
        self.assertEqual(next_occurrence(Daily(time(9, 0)), utc(2026, 3, 10, 9, 0), LAGOS), utc(2026, 3, 11, 8, 0))

    def test_exactly_at_time_moves_to_tomorrow(self) -> None:
        self.assertEqual(next_occurrence(Daily(time(9, 0)), utc(2026, 3, 10, 8, 0), LAGOS), utc(2026, 3, 11, 8, 0))

    def test_local_day_is_used_across_utc_midnight(self) -> None:
        # 23:00 UTC on the 10th is already 00:00 on the 11th in Lagos
        self.assertEqual(next_occurrence(Daily(time(0, 30)), utc(2026, 3, 10, 23, 0), LAGOS), utc(2026, 3, 10, 23, 30))


class WeeklyRecurrenceTests(unittest.TestCase):
    # 2026-10-18 is a Sunday, 2026-10-19 a Monday
    def test_next_weekday_this_week(self) -> None:
        self.assertEqual(
            next_occurrence(Weekly(0, time(7, 30)), utc(2026, 10, 18, 11, 0), LAGOS),
            utc(2026, 10, 19, 6, 30),
        )

    def test_same_day_still_ahead(self) -> None:
        self.assertEqual(
            next_occurrence(Weekly(0, time(7, 30)), utc(2026, 10, 19, 6, 0), LAGOS),
            utc(2026, 10, 19, 6, 30),
        )

    def test_same_day_already_passed_goes_to_next_week(self) -> None:
        self.assertEqual(
            next_occurrence(Weekly(0, time(7, 30)), utc(2026, 10, 19, 7, 0), LAGOS),
            utc(2026, 10, 26, 6, 30),
        )

    def test_day_of_week_out_of_range(self) -> None:
        with self.assertRaises(InvalidInput):
            Weekly(7, time(9, 0))


class MonthlyRecurrenceTests(unittest.TestCase):
    def test_day_31_clamps_to_thirty_day_month(self) -> None:
        self.assertEqual(
            next_occurrence(Monthly(31, time(9, 0)), utc(2026, 3, 31, 9, 0), LAGOS),
            utc(2026, 4, 30, 8, 0),
        )

    def test_day_31_returns_after_short_month(self) -> None:
        self.assertEqual(
            next_occurrence(Monthly(31, time(9, 0)), utc(2026, 4, 30, 9, 0), LAGOS),
            utc(2026, 5, 31, 8, 0),
        )

    def test_february_clamp(self) -> None:
        self.assertEqual(
            next_occurrence(Monthly(30, time(9, 0)), utc(2026, 1, 30, 9, 0), LAGOS),
            utc(2026, 2, 28, 8, 0),
        )

    def test_later_this_month(self) -> None:
        self.assertEqual(
            next_occurrence(Monthly(15, time(9, 0)), utc(2026, 3, 1, 0, 0), LAGOS),
            utc(2026, 3, 15, 8, 0),
        )

    def test_december_rolls_into_january(self) -> None:
        self.assertEqual(
            next_occurrence(Monthly(31, time(9, 0)), utc(2026, 12, 31, 9, 0), LAGOS),
            utc(2027, 1, 31, 8, 0),
        )

    def test_day_of_month_out_of_range(self) -> None:
        with self.assertRaises(InvalidInput):
            Monthly(0, time(9, 0))


class OneTimeRecurrenceTests(unittest.TestCase):
    def test_future_timestamp_is_returned(self) -> None:
        at = utc(2026, 5, 1, 12, 0)
        self.assertEqual(next_occurrence(OneTime(at), utc(2026, 4, 1), LAGOS), at)

    def test_past_timestamp_has_no_occurrence(self) -> None:
        self.assertIsNone(next_occurrence(OneTime(utc(2026, 3, 1)), utc(2026, 4, 1), LAGOS))


class PayloadTests(unittest.TestCase):
    def test_naive_timestamp_is_local_time(self) -> None:
        self.assertEqual(parse_timestamp("2026-03-10T09:00", LAGOS), utc(2026, 3, 10, 8, 0))

    def test_offset_timestamp_is_respected(self) -> None:
        self.assertEqual(parse_timestamp("2026-03-10T09:00+00:00", LAGOS), utc(2026, 3, 10, 9, 0))

    def test_weekly_requires_day_of_week(self) -> None:
        with self.assertRaises(InvalidInput):
            recurrence_from_payload("weekly", {"recurring_time": "09:00"}, LAGOS)

    def test_monthly_payload(self) -> None:
        recurrence = recurrence_from_payload(
            "monthly", {"recurring_time": "07:15", "recurring_day_of_month": "31"}, LAGOS
        )
        self.assertEqual(recurrence, Monthly(31, time(7, 15)))

    def test_unknown_schedule_type(self) -> None:
        with self.assertRaises(InvalidInput):
            recurrence_from_payload("yearly", {}, LAGOS)


if __name__ == "__main__":
    unittest.main()
