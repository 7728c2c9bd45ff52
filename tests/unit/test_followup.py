"""Unit tests for weekly follow-up scheduling."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from coachdesk.core.lifecycle.errors import MissingFollowUpDay, NotActivated
from coachdesk.core.lifecycle.followup import (
    clients_due,
    clients_for_day,
    has_entry_on,
    is_due,
    latest_entry,
    latest_status,
    record_follow_up,
    set_follow_up_day,
)
from coachdesk.core.lifecycle.models import FollowUpDay, FollowUpEntry


IST = timezone(timedelta(hours=5, minutes=30))


class TestFollowUpDay:

    def test_ordinals_match_datetime_weekday(self, now):
        """NOW is a Monday; weekday() and the enum must agree."""
        assert now.weekday() == 0
        assert FollowUpDay.MONDAY.ordinal == 0
        assert FollowUpDay.SUNDAY.ordinal == 6
        assert FollowUpDay.from_ordinal(now.weekday()) == FollowUpDay.MONDAY

    def test_from_ordinal_round_trips(self):
        for day in FollowUpDay:
            assert FollowUpDay.from_ordinal(day.ordinal) is day


class TestIsDue:

    def test_due_on_follow_up_day_with_no_entry(self, make_active_client, now):
        client = make_active_client(follow_up_day=FollowUpDay.MONDAY)

        assert is_due(client, now)

    def test_not_due_on_other_days(self, make_active_client, now):
        client = make_active_client(follow_up_day=FollowUpDay.TUESDAY)

        assert not is_due(client, now)
        assert is_due(client, now + timedelta(days=1))

    def test_not_due_once_recorded_today(self, make_active_client, now):
        client = make_active_client(follow_up_day=FollowUpDay.MONDAY)

        recorded = record_follow_up(client, FollowUpDay.MONDAY, False, "", now)

        assert not is_due(recorded, now + timedelta(hours=2))

    def test_last_weeks_entry_does_not_count(self, make_active_client, now):
        client = make_active_client(follow_up_day=FollowUpDay.MONDAY)
        recorded = record_follow_up(client, FollowUpDay.MONDAY, True, "Good week", now)

        assert is_due(recorded, now + timedelta(days=7))

    def test_never_due_for_onboarded_client(self, make_client, now):
        client = replace(make_client(), follow_up_day=FollowUpDay.MONDAY)

        assert not is_due(client, now)

    def test_today_is_the_coachs_calendar_day(self):
        """An entry at 20:00 UTC on Sunday is Monday morning in IST."""
        entry = FollowUpEntry(
            timestamp=datetime(2024, 1, 14, 20, 0, tzinfo=timezone.utc),
            follow_up_day=FollowUpDay.MONDAY,
            done=True,
            notes="Early call",
        )
        monday_ist = datetime(2024, 1, 15, 9, 0, tzinfo=IST)
        monday_utc = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

        assert has_entry_on([entry], monday_ist)
        assert not has_entry_on([entry], monday_utc)


class TestRecordFollowUp:

    def test_appends_entry(self, make_active_client, now):
        client = make_active_client()

        recorded = record_follow_up(client, FollowUpDay.MONDAY, True, " Talked diet ", now)

        assert len(recorded.follow_up_history) == 1
        entry = recorded.follow_up_history[0]
        assert entry.timestamp == now
        assert entry.done
        assert entry.notes == "Talked diet"

    def test_empty_notes_are_stored(self, make_active_client, now):
        """The ledger takes whatever the form allowed through."""
        recorded = record_follow_up(make_active_client(), FollowUpDay.MONDAY, True, "", now)

        assert recorded.follow_up_history[0].notes == ""

    def test_requires_follow_up_day(self, make_client, now):
        with pytest.raises(MissingFollowUpDay):
            record_follow_up(make_client(), FollowUpDay.MONDAY, False, "", now)


class TestSetFollowUpDay:

    def test_changes_day(self, make_active_client):
        client = set_follow_up_day(make_active_client(), FollowUpDay.SATURDAY)

        assert client.follow_up_day == FollowUpDay.SATURDAY

    def test_requires_activation(self, make_client):
        with pytest.raises(NotActivated):
            set_follow_up_day(make_client(), FollowUpDay.SATURDAY)


class TestLatestStatus:

    def test_no_history_is_not_done(self, make_active_client):
        status = latest_status(make_active_client())

        assert not status.is_done
        assert status.latest_entry is None

    def test_reflects_most_recent_entry(self, make_active_client, now):
        client = make_active_client()
        client = record_follow_up(client, FollowUpDay.MONDAY, True, "Done", now)
        client = record_follow_up(client, FollowUpDay.MONDAY, False, "", now + timedelta(days=7))

        status = latest_status(client)

        assert not status.is_done
        assert status.latest_entry.timestamp == now + timedelta(days=7)

    def test_tie_goes_to_later_insert(self, now):
        first = FollowUpEntry(now, FollowUpDay.MONDAY, False, "")
        second = FollowUpEntry(now, FollowUpDay.MONDAY, True, "Called back")

        assert latest_entry([first, second]) is second

    def test_out_of_order_history(self, now):
        newer = FollowUpEntry(now, FollowUpDay.MONDAY, True, "Newer")
        older = FollowUpEntry(now - timedelta(days=7), FollowUpDay.MONDAY, False, "")

        assert latest_entry([newer, older]) is newer


class TestClientQueries:

    def test_clients_due_today(self, make_active_client, make_client, now):
        monday = make_active_client(code=1, follow_up_day=FollowUpDay.MONDAY)
        friday = make_active_client(code=2, follow_up_day=FollowUpDay.FRIDAY)
        done = record_follow_up(
            make_active_client(code=3, follow_up_day=FollowUpDay.MONDAY),
            FollowUpDay.MONDAY, True, "Done", now,
        )

        due = clients_due([monday, friday, done, make_client(code=4)], now)

        assert [c.code for c in due] == [1]

    def test_clients_for_day(self, make_active_client):
        clients = [
            make_active_client(code=1, follow_up_day=FollowUpDay.MONDAY),
            make_active_client(code=2, follow_up_day=FollowUpDay.FRIDAY),
        ]

        assert [c.code for c in clients_for_day(clients, FollowUpDay.FRIDAY)] == [2]
