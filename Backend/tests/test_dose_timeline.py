import math
import unittest
from datetime import datetime, timedelta, timezone

from tests._support import T0
from services.dose_timeline import (
    DoseTimeline,
    effective_start,
    has_sufficient_stock,
    required_units,
    total_dose_count,
)
from services.errors import InvalidScheduleParameters


class TestDoseTimeline(unittest.TestCase):
    def test_eight_hourly_for_two_days_yields_six_doses(self):
        timeline = DoseTimeline(T0, frequency_hours=8, duration_days=2)
        hours = [(d.scheduled_at - T0) / timedelta(hours=1) for d in timeline]
        self.assertEqual(hours, [0, 8, 16, 24, 32, 40])
        # The end instant (48:00) is outside the half-open window.
        self.assertEqual(timeline.end, T0 + timedelta(hours=48))

    def test_count_matches_ceil_and_stays_inside_window(self):
        for frequency in (1, 5, 6, 7, 8, 12, 24, 36, 72):
            for days in (1, 2, 3, 7, 10):
                timeline = DoseTimeline(T0, frequency, days)
                doses = list(timeline)
                self.assertEqual(len(doses), math.ceil(days * 24 / frequency))
                self.assertEqual(len(doses), total_dose_count(frequency, days))
                for prev, cur in zip(doses, doses[1:]):
                    self.assertEqual(cur.scheduled_at - prev.scheduled_at, timedelta(hours=frequency))
                self.assertTrue(all(d.scheduled_at <= timeline.end for d in doses))

    def test_iteration_is_restartable(self):
        timeline = DoseTimeline(T0, 12, 1, treatment_medication_id=7)
        self.assertEqual(list(timeline), list(timeline))
        self.assertEqual({d.treatment_medication_id for d in timeline}, {7})

    def test_invalid_parameters_raise(self):
        for frequency, days in ((0, 2), (-8, 2), (8, 0), (8, -1)):
            with self.assertRaises(InvalidScheduleParameters):
                DoseTimeline(T0, frequency, days)
            with self.assertRaises(InvalidScheduleParameters):
                total_dose_count(frequency, days)

    def test_first_at_or_after(self):
        timeline = DoseTimeline(T0, 8, 2)
        self.assertEqual(timeline.first_at_or_after(T0 - timedelta(hours=3)).index, 0)
        self.assertEqual(timeline.first_at_or_after(T0 + timedelta(hours=8)).index, 1)
        self.assertEqual(timeline.first_at_or_after(T0 + timedelta(hours=8, seconds=1)).index, 2)
        self.assertIsNone(timeline.first_at_or_after(T0 + timedelta(hours=40, seconds=1)))

    def test_naive_start_is_treated_as_utc(self):
        naive = datetime(2024, 1, 1, 0, 0)
        self.assertEqual(DoseTimeline(naive, 8, 1).start, T0)

    def test_effective_start_prefers_specific_time(self):
        created = T0
        specific = T0 + timedelta(hours=5)
        self.assertEqual(effective_start(specific, created), specific)
        self.assertEqual(effective_start(None, created), created)
        self.assertEqual(effective_start(None, datetime(2024, 1, 1)).tzinfo, timezone.utc)

    def test_stock_sufficiency_uses_total_dose_count(self):
        # 6 doses of 2 tablets
        self.assertEqual(required_units(2, 8, 2), 12)
        self.assertTrue(has_sufficient_stock(12, 2, 8, 2))
        self.assertFalse(has_sufficient_stock(11, 2, 8, 2))
        self.assertFalse(has_sufficient_stock(None, 1, 8, 2))


if __name__ == '__main__':
    unittest.main()
