"""Tests for the prefix diff between live and cached feed snapshots."""

import unittest

from feeds import BIG_RUN, REGULAR, TEAM_CONTEST, FeedFormatError, festivals_feed, parse_snapshot, schedules_feed
from schedule_diff import detect_new_events, new_events


def _event(n, **extra):
    event = {
        "startTime": f"2024-07-{n:02d}T00:00:00Z",
        "endTime": f"2024-07-{n:02d}T16:00:00Z",
        "setting": {
            "coopStage": {"name": "Sockeye Station", "image": {"url": "https://img/sockeye.png"}},
            "weapons": [{"name": "Splattershot"}],
        },
        "__splatoon3ink_king_salmonid_guess": "Cohozuna",
    }
    event.update(extra)
    return event


def _schedules(regular=(), big_run=(), team_contest=()):
    return {
        "data": {
            "coopGroupingSchedule": {
                "regularSchedules": {"nodes": list(regular)},
                "bigRunSchedules": {"nodes": list(big_run)},
                "teamContestSchedules": {"nodes": list(team_contest)},
            }
        }
    }


class TestNewEvents(unittest.TestCase):
    def test_identical_lists_yield_nothing(self):
        events = [_event(3), _event(2), _event(1)]
        self.assertEqual(new_events(events, list(events)), [])

    def test_empty_cache_reports_everything(self):
        events = [_event(3), _event(2)]
        self.assertEqual(new_events(events, []), events)

    def test_empty_live_reports_nothing(self):
        self.assertEqual(new_events([], [_event(1)]), [])

    def test_new_events_at_front(self):
        cached = [_event(2), _event(1)]
        live = [_event(4), _event(3), _event(2)]
        self.assertEqual(new_events(live, cached), [_event(4), _event(3)])

    def test_scan_stops_at_first_known_event(self):
        # _event(5) is unknown but sits behind a known event, so it is not new.
        cached = [_event(2)]
        live = [_event(3), _event(2), _event(5)]
        self.assertEqual(new_events(live, cached), [_event(3)])

    def test_match_anywhere_in_cache_stops_scan(self):
        cached = [_event(9), _event(8), _event(3)]
        live = [_event(4), _event(3)]
        self.assertEqual(new_events(live, cached), [_event(4)])

    def test_structural_equality_not_identity(self):
        cached = [{"startTime": "x", "setting": {"weapons": [{"name": "a"}]}}]
        live = [{"startTime": "x", "setting": {"weapons": [{"name": "a"}]}}]
        self.assertEqual(new_events(live, cached), [])

    def test_changed_field_makes_event_new(self):
        cached = [_event(1, king="Cohozuna")]
        live = [_event(1, king="Horrorboros")]
        self.assertEqual(new_events(live, cached), live)


class TestDetectNewEvents(unittest.TestCase):
    def test_categories_are_independent(self):
        feed = schedules_feed()
        cached = parse_snapshot(feed, _schedules(regular=[_event(1)], big_run=[_event(1)]))
        live = parse_snapshot(
            feed,
            _schedules(regular=[_event(1)], big_run=[_event(2), _event(1)], team_contest=[_event(7)]),
        )
        changes = detect_new_events(live, cached)
        self.assertEqual(list(changes), [REGULAR, BIG_RUN, TEAM_CONTEST])
        self.assertEqual(changes[REGULAR], [])
        self.assertEqual(changes[BIG_RUN], [_event(2)])
        self.assertEqual(changes[TEAM_CONTEST], [_event(7)])

    def test_unchanged_snapshot_has_no_changes(self):
        feed = schedules_feed()
        snap = parse_snapshot(feed, _schedules(regular=[_event(2), _event(1)]))
        changes = detect_new_events(snap, snap)
        self.assertTrue(all(not events for events in changes.values()))

    def test_different_feeds_rejected(self):
        sched = parse_snapshot(schedules_feed(), _schedules())
        fest = parse_snapshot(
            festivals_feed(),
            {"US": {"data": {"festRecords": {"nodes": []}}}},
        )
        with self.assertRaises(ValueError):
            detect_new_events(sched, fest)

    def test_parse_rejects_event_without_stage(self):
        event = _event(1)
        del event["setting"]["coopStage"]
        with self.assertRaises(FeedFormatError):
            parse_snapshot(schedules_feed(), _schedules(big_run=[event]))

    def test_parse_rejects_missing_category(self):
        payload = _schedules()
        del payload["data"]["coopGroupingSchedule"]["bigRunSchedules"]
        with self.assertRaises(FeedFormatError):
            parse_snapshot(schedules_feed(), payload)


if __name__ == "__main__":
    unittest.main()
