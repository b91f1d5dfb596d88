import math
import unittest
from datetime import timedelta

from rhythm.pattern_analyzer import (
    GRACE_PERIOD_MINUTES,
    MIN_OCCURRENCES,
    analyze,
    analyze_all,
    is_highly_predictable,
    score_confidence,
)
from rhythm.schemas import SubPattern, confidence_label

from .event_helpers import BASE_DAY, at, daytime_nap, days_before, feed, night_sleep

NOW = at(BASE_DAY, 21)


class EvidenceFloorTests(unittest.TestCase):
    def test_two_occurrences_are_not_a_pattern(self):
        events = [night_sleep(day) for day in days_before(2)]
        self.assertIsNone(analyze(events, SubPattern.BEDTIME, now=NOW))

    def test_three_occurrences_are_a_pattern(self):
        events = [night_sleep(day) for day in days_before(MIN_OCCURRENCES)]
        stats = analyze(events, SubPattern.BEDTIME, now=NOW)
        self.assertIsNotNone(stats)
        self.assertEqual(stats.occurrence_count, 3)

    def test_malformed_times_do_not_count(self):
        days = days_before(3)
        events = [night_sleep(days[0]), night_sleep(days[1]), night_sleep(days[2], start="around bedtime")]
        self.assertIsNone(analyze(events, SubPattern.BEDTIME, now=NOW))

    def test_open_sleeps_do_not_count_toward_bedtime(self):
        days = days_before(3)
        events = [night_sleep(days[0]), night_sleep(days[1]), night_sleep(days[2], end=None)]
        self.assertIsNone(analyze(events, SubPattern.BEDTIME, now=NOW))

    def test_events_outside_window_are_ignored(self):
        old_days = [BASE_DAY - timedelta(days=offset) for offset in (14, 15, 16, 17)]
        events = [feed(day) for day in old_days]
        self.assertIsNone(analyze(events, SubPattern.FEED, now=NOW))
        events.append(feed(BASE_DAY - timedelta(days=13)))
        self.assertIsNone(analyze(events, SubPattern.FEED, now=NOW))


class StatisticsTests(unittest.TestCase):
    def test_bedtime_median_and_spread(self):
        days = days_before(3)
        events = [
            night_sleep(days[0], "7:00 PM"),
            night_sleep(days[1], "7:30 PM"),
            night_sleep(days[2], "8:00 PM"),
        ]
        stats = analyze(events, SubPattern.BEDTIME, now=NOW)
        self.assertEqual(stats.median_minutes, 1170)
        self.assertAlmostEqual(stats.std_dev_minutes, math.sqrt(600))
        self.assertEqual(stats.grace_period_minutes, 90)
        self.assertAlmostEqual(stats.confidence, score_confidence(math.sqrt(600), 3))

    def test_bedtimes_around_midnight_stay_together(self):
        days = days_before(3)
        events = [
            night_sleep(days[0], "11:30 PM", logged_hour=23),
            night_sleep(days[1], "11:50 PM", logged_hour=23),
            # Started just after midnight, so it belongs to days[2]'s evening.
            night_sleep(BASE_DAY, "12:10 AM", logged_hour=1),
        ]
        stats = analyze(events, SubPattern.BEDTIME, now=NOW)
        self.assertEqual(stats.median_minutes, 1430)
        self.assertLess(stats.std_dev_minutes, 20)

    def test_bedtime_keeps_earliest_sleep_per_day(self):
        days = days_before(3)
        events = [night_sleep(day, "7:30 PM") for day in days]
        events.append(night_sleep(days[0], "11:00 PM", "2:00 AM", logged_hour=23))
        stats = analyze(events, SubPattern.BEDTIME, now=NOW)
        self.assertEqual(stats.times, [1170, 1170, 1170])

    def test_morning_wake_anchors_to_end_day(self):
        events = [night_sleep(day, "7:30 PM", "6:30 AM") for day in days_before(3)]
        stats = analyze(events, SubPattern.MORNING_WAKE, now=NOW)
        self.assertEqual(stats.median_minutes, 390)
        self.assertEqual(stats.occurrence_count, 3)
        self.assertEqual(stats.grace_period_minutes, 60)

    def test_first_daytime_nap_uses_earliest_nap(self):
        events = []
        for day in days_before(4):
            events.append(daytime_nap(day, "9:00 AM", "10:00 AM"))
            events.append(daytime_nap(day, "1:00 PM", "2:30 PM"))
        stats = analyze(events, SubPattern.FIRST_DAYTIME_NAP, now=NOW)
        self.assertEqual(stats.times, [540, 540, 540, 540])
        self.assertEqual(stats.std_dev_minutes, 0)

    def test_feeds_count_every_occurrence(self):
        events = []
        for day in days_before(3):
            events.append(feed(day, "8:00 AM"))
            events.append(feed(day, "12:00 PM"))
        stats = analyze(events, SubPattern.FEED, now=NOW)
        self.assertEqual(stats.occurrence_count, 6)
        self.assertEqual(stats.grace_period_minutes, GRACE_PERIOD_MINUTES[SubPattern.FEED])

    def test_same_input_same_output(self):
        events = [night_sleep(day, f"7:{10 + index * 5} PM") for index, day in enumerate(days_before(6))]
        first = analyze(events, SubPattern.BEDTIME, now=NOW)
        second = analyze(list(reversed(events)), SubPattern.BEDTIME, now=NOW)
        self.assertEqual(first, second)

    def test_analyze_all_covers_every_sub_pattern(self):
        events = [night_sleep(day) for day in days_before(3)]
        results = analyze_all(events, now=NOW)
        self.assertEqual(set(results), set(SubPattern))
        self.assertIsNotNone(results[SubPattern.BEDTIME])
        self.assertIsNone(results[SubPattern.FEED])


class ConfidenceTests(unittest.TestCase):
    def test_more_spread_never_raises_confidence(self):
        scores = [score_confidence(std_dev, 5) for std_dev in (0, 10, 20, 30, 40)]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertGreater(scores[0], scores[-1])

    def test_more_occurrences_never_lower_confidence(self):
        scores = [score_confidence(10, count) for count in range(3, 15)]
        self.assertEqual(scores, sorted(scores))

    def test_spread_beyond_limit_zeroes_confidence(self):
        self.assertEqual(score_confidence(45, 10), 0)
        self.assertEqual(score_confidence(90, 10), 0)

    def test_full_evidence_reaches_recency_boost(self):
        self.assertAlmostEqual(score_confidence(0, 10), 1.2)

    def test_labels(self):
        self.assertEqual(confidence_label(0.8), "high")
        self.assertEqual(confidence_label(0.75), "high")
        self.assertEqual(confidence_label(0.6), "medium")
        self.assertEqual(confidence_label(0.2), "low")

    def test_highly_predictable(self):
        steady = analyze([night_sleep(day) for day in days_before(4)], SubPattern.BEDTIME, now=NOW)
        self.assertTrue(is_highly_predictable(steady))
        self.assertEqual(steady.confidence_label, "low")


if __name__ == "__main__":
    unittest.main()
