import unittest
from datetime import timedelta

from rhythm.schedule_predictor import nap_count_variance, predict, recent_nap_count
from rhythm.config import EngineSettings
from rhythm.schemas import AgeInput

from .event_helpers import BASE_DAY, at, daytime_nap, days_before, naps_for_day, night_sleep

NOW = at(BASE_DAY, 12)


def history(counts):
    """Completed naps for the days just before today, one entry per day."""
    events = []
    for day, count in zip(days_before(len(counts)), counts):
        events.extend(naps_for_day(day, count))
    return events


class SchedulePredictorTests(unittest.TestCase):
    def test_missing_age(self):
        prediction = predict(history([2, 2, 2]), [], None, now=NOW)
        self.assertEqual(prediction.confidence, "low")
        self.assertEqual(prediction.nap_count_today, 0)
        self.assertIn("birthdate", prediction.rationale)

    def test_age_without_baseline(self):
        prediction = predict([], [], AgeInput(weeks=300), now=NOW)
        self.assertEqual(prediction.confidence, "low")
        self.assertEqual(prediction.rationale, "Unable to determine an appropriate schedule for this age.")

    def test_falls_back_to_baseline_without_recent_naps(self):
        prediction = predict([], [], AgeInput(weeks=30), now=NOW)
        self.assertEqual(prediction.nap_count_today, 2)
        self.assertEqual(prediction.confidence, "medium")
        self.assertEqual(
            prediction.rationale,
            "Based on age-appropriate schedule for 6 month old babies (2 naps typical).",
        )

    def test_recent_pattern_close_to_baseline(self):
        today = [daytime_nap(BASE_DAY, "9:00 AM", "10:00 AM")]
        prediction = predict(history([2, 2, 2]), today, AgeInput(weeks=30), now=NOW)
        self.assertEqual(prediction.nap_count_today, 2)
        self.assertEqual(prediction.confidence, "high")
        self.assertFalse(prediction.is_transitioning)
        self.assertEqual(
            prediction.rationale,
            "2 naps per day based on recent 6 month pattern. Wake windows: 3-3.5hrs.",
        )
        self.assertEqual(prediction.naps_logged_today, 1)
        self.assertEqual(prediction.naps_remaining, 1)

    def test_birthdate_resolves_age(self):
        age = AgeInput(birthdate=BASE_DAY - timedelta(weeks=30))
        prediction = predict(history([2, 2, 2]), [], age, now=NOW)
        self.assertEqual(prediction.baseline_nap_count, 2)
        self.assertEqual(prediction.confidence, "high")

    def test_more_naps_than_baseline_keeps_baseline(self):
        prediction = predict(history([3, 3, 3]), [], AgeInput(weeks=40), now=NOW)
        self.assertEqual(prediction.nap_count_today, 1)
        self.assertEqual(prediction.confidence, "medium")
        self.assertIn("overtiredness", prediction.rationale)

    def test_fewer_naps_with_detected_transition(self):
        prediction = predict(history([3, 3, 1, 1, 1]), [], AgeInput(weeks=10), now=NOW)
        self.assertEqual(prediction.nap_count_today, 1)
        self.assertEqual(prediction.confidence, "medium")
        self.assertTrue(prediction.is_transitioning)
        self.assertEqual(prediction.transition_note, "Moving from 3 to 1 naps")
        self.assertIn("Nap pattern is adjusting", prediction.rationale)

    def test_unsupported_transition_note_is_downgraded(self):
        prediction = predict(history([3, 1, 3, 1, 2]), [], AgeInput(weeks=1), now=NOW)
        self.assertEqual(prediction.recent_nap_count, 2)
        self.assertTrue(prediction.is_transitioning)
        self.assertEqual(prediction.transition_note, "Stabilizing between 1–3 naps")

    def test_mentions_reliable_bedtime(self):
        events = history([2, 2, 2]) + [night_sleep(day) for day in days_before(10)]
        prediction = predict(events, [], AgeInput(weeks=30), now=NOW)
        self.assertTrue(prediction.rationale.endswith(" Bedtime usually around 7:30 PM."))
        self.assertEqual(prediction.nap_count_today, 2)

    def test_incomplete_and_today_naps_do_not_count(self):
        settings = EngineSettings()
        events = history([2, 2, 2])
        events.append(daytime_nap(BASE_DAY - timedelta(days=1), "4:00 PM", end=None))
        events.extend(naps_for_day(BASE_DAY, 4))
        self.assertEqual(recent_nap_count(events, today=BASE_DAY, settings=settings), 2)
        self.assertEqual(nap_count_variance(events, today=BASE_DAY, settings=settings), 0)

    def test_half_up_rounding(self):
        settings = EngineSettings()
        events = history([2, 3])
        self.assertEqual(recent_nap_count(events, today=BASE_DAY, settings=settings), 3)

    def test_repeated_calls_agree(self):
        events = history([3, 3, 3, 2, 2, 2])
        today = [daytime_nap(BASE_DAY, "9:00 AM", "10:00 AM")]
        first = predict(events, today, AgeInput(weeks=30), now=NOW)
        second = predict(events, today, AgeInput(weeks=30), now=NOW)
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
