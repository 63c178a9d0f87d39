"""
Tests for the pre-day notification sweep in services/notification.py
"""

from datetime import date
from unittest.mock import MagicMock

from slack_sdk.errors import SlackApiError

from services.notification import send_anniversary_notifications
from storage.employees import RosterCache
from storage.responses import Approval, EventKind, get_response, load_responses

MARCH_10 = date(2024, 3, 10)


def _action_ids(call):
    blocks = call.kwargs["blocks"]
    actions = next(block for block in blocks if block["type"] == "actions")
    return [element["action_id"] for element in actions["elements"]]


class TestSendAnniversaryNotifications:
    """Tests for send_anniversary_notifications()"""

    def test_birthday_and_milestone_notified(self, mock_app, write_roster, reference_date):
        write_roster(
            {
                "emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"},
                "emp_7": {"name": "Lin", "slack_id": "U007", "hire_date": "2019-03-10"},
                "emp_8": {"name": "Sam", "slack_id": "U008", "hire_date": "2022-03-10"},
                "emp_9": {"name": "Kim", "slack_id": "U009", "birth_date": "1990-03-11"},
            }
        )

        results = send_anniversary_notifications(mock_app, moment=reference_date)

        assert results["sent"] == 2
        assert results["target_date"] == "2024-03-10"
        channels = [c.kwargs["channel"] for c in mock_app.client.chat_postMessage.call_args_list]
        assert channels == ["U042", "U007"]

        birthday = get_response("emp_42", MARCH_10)
        assert birthday.event_kind == EventKind.BIRTHDAY
        assert birthday.approval == Approval.UNSET
        assert get_response("emp_7", MARCH_10).event_kind == EventKind.ANNIVERSARY
        assert get_response("emp_8", MARCH_10) is None

    def test_dm_carries_approve_and_decline_tokens(self, mock_app, write_roster, reference_date):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})

        send_anniversary_notifications(mock_app, moment=reference_date)

        call = mock_app.client.chat_postMessage.call_args
        assert _action_ids(call) == ["approve_emp_42_2024-03-10", "decline_emp_42_2024-03-10"]
        assert call.kwargs["text"]

    def test_retired_and_unreachable_skipped(self, mock_app, write_roster, reference_date):
        write_roster(
            {
                "emp_1": {
                    "name": "Old",
                    "slack_id": "U001",
                    "birth_date": "1950-03-10",
                    "retired_on": "2020-01-01",
                },
                "emp_2": {"name": "NoSlack", "birth_date": "1990-03-10"},
            }
        )

        results = send_anniversary_notifications(mock_app, moment=reference_date)

        assert results["sent"] == 0
        assert results["skipped"] == 1
        mock_app.client.chat_postMessage.assert_not_called()
        assert load_responses() == []

    def test_rerun_does_not_notify_twice(self, mock_app, write_roster, reference_date):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})

        send_anniversary_notifications(mock_app, moment=reference_date)
        results = send_anniversary_notifications(mock_app, moment=reference_date)

        assert results == {"sent": 0, "skipped": 1, "failed": 0, "target_date": "2024-03-10"}
        assert mock_app.client.chat_postMessage.call_count == 1

    def test_failed_dm_creates_no_record_and_continues(
        self, mock_app, write_roster, reference_date
    ):
        write_roster(
            {
                "emp_1": {"name": "Ada", "slack_id": "U001", "birth_date": "1990-03-10"},
                "emp_2": {"name": "Lin", "slack_id": "U002", "birth_date": "1991-03-10"},
            }
        )
        mock_app.client.chat_postMessage.side_effect = [
            SlackApiError("channel_not_found", {"ok": False, "error": "channel_not_found"}),
            {"ok": True, "ts": "1"},
        ]

        results = send_anniversary_notifications(mock_app, moment=reference_date)

        assert results["failed"] == 1
        assert results["sent"] == 1
        assert get_response("emp_1", MARCH_10) is None
        assert get_response("emp_2", MARCH_10) is not None

    def test_roster_failure_reported_not_raised(self, mock_app, reference_date):
        roster = RosterCache(loader=MagicMock(side_effect=OSError("disk gone")))

        results = send_anniversary_notifications(mock_app, moment=reference_date, roster=roster)

        assert results["sent"] == 0
        mock_app.client.chat_postMessage.assert_not_called()
