"""
Tests for the day-of celebration sweep in services/celebration.py

- Only approved, unannounced records for today are posted
- Each record is announced exactly once across runs
- Failed posts stay pending for the next run
"""

from datetime import date, datetime, timezone
from unittest.mock import patch

from filelock import Timeout

from services.celebration import announce_approved_celebrations
from storage.responses import (
    Approval,
    EventKind,
    ResponseRecord,
    get_response,
    insert_response,
    set_approval,
    set_gift,
)

MARCH_10 = date(2024, 3, 10)
CELEBRATION_MORNING = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


def _seed(employee_id, kind=EventKind.BIRTHDAY, approval=Approval.APPROVED, gift_id=None):
    insert_response(ResponseRecord(employee_id, MARCH_10, kind))
    set_approval(employee_id, MARCH_10, approval)
    if gift_id:
        set_gift(employee_id, MARCH_10, gift_id)


def _posted_blocks(mock_app):
    return mock_app.client.chat_postMessage.call_args.kwargs["blocks"]


class TestAnnounceApprovedCelebrations:
    """Tests for announce_approved_celebrations()"""

    def test_announced_exactly_once_across_runs(self, mock_app, write_roster, write_gifts):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})
        write_gifts([{"gift_id": "G1", "name": "Coffee mug"}])
        _seed("emp_42", gift_id="G1")

        first = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)
        second = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert first["announced"] == 1
        assert second["announced"] == 0
        assert mock_app.client.chat_postMessage.call_count == 1
        assert mock_app.client.chat_postMessage.call_args.kwargs["channel"] == "C_CELEBRATE"
        assert get_response("emp_42", MARCH_10).announced is True

    def test_post_includes_avatar_and_gift(self, mock_app, write_roster, write_gifts):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})
        write_gifts([{"gift_id": "G1", "name": "Coffee mug", "url": "https://shop.example/g1"}])
        _seed("emp_42", gift_id="G1")

        announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        blocks = _posted_blocks(mock_app)
        assert blocks[1]["accessory"]["image_url"] == "https://avatars.example/emp.png"
        assert "<@U042>" in blocks[1]["text"]["text"]
        assert "Coffee mug" in blocks[2]["elements"][0]["text"]

    def test_anniversary_shows_years(self, mock_app, write_roster):
        write_roster({"emp_7": {"name": "Lin", "slack_id": "U007", "hire_date": "2019-03-10"}})
        _seed("emp_7", kind=EventKind.ANNIVERSARY)

        announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert "5-Year" in mock_app.client.chat_postMessage.call_args.kwargs["text"]

    def test_avatar_failure_uses_placeholder(self, mock_app, write_roster, monkeypatch):
        monkeypatch.setattr("slack_io.client.DEFAULT_AVATAR_URL", "https://placeholder.example/a.png")
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})
        mock_app.client.users_profile_get.side_effect = RuntimeError("timeout")
        _seed("emp_42")

        results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert results["announced"] == 1
        image = _posted_blocks(mock_app)[1]["accessory"]["image_url"]
        assert image == "https://placeholder.example/a.png"

    def test_declined_and_unanswered_not_posted(self, mock_app, write_roster):
        write_roster(
            {
                "emp_1": {"name": "Ada", "slack_id": "U001"},
                "emp_2": {"name": "Lin", "slack_id": "U002"},
            }
        )
        _seed("emp_1", approval=Approval.DECLINED)
        insert_response(ResponseRecord("emp_2", MARCH_10, EventKind.BIRTHDAY))

        results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert results["announced"] == 0
        mock_app.client.chat_postMessage.assert_not_called()

    def test_failed_post_stays_pending(self, mock_app, write_roster):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042"}})
        _seed("emp_42")
        mock_app.client.chat_postMessage.return_value = {"ok": False, "error": "not_in_channel"}

        results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)
        assert results["failed"] == 1
        assert get_response("emp_42", MARCH_10).announced is False

        mock_app.client.chat_postMessage.return_value = {"ok": True, "ts": "2"}
        results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)
        assert results["announced"] == 1
        assert get_response("emp_42", MARCH_10).announced is True

    def test_employee_missing_from_roster_skipped(self, mock_app, write_roster):
        write_roster({})
        _seed("emp_gone")

        results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert results["skipped"] == 1
        assert get_response("emp_gone", MARCH_10).announced is False

    def test_missing_channel_aborts(self, mock_app, write_roster, monkeypatch):
        monkeypatch.setattr("services.celebration.CELEBRATION_CHANNEL", None)
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042"}})
        _seed("emp_42")

        results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert results["announced"] == 0
        mock_app.client.chat_postMessage.assert_not_called()
        assert get_response("emp_42", MARCH_10).announced is False

    def test_lock_timeout_after_post_warns_of_duplicate(self, mock_app, write_roster):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042"}})
        _seed("emp_42")

        with patch(
            "services.celebration.mark_announced", side_effect=Timeout("responses.json.lock")
        ), patch("services.celebration.logger") as logger:
            results = announce_approved_celebrations(mock_app, moment=CELEBRATION_MORNING)

        assert results["failed"] == 1
        assert mock_app.client.chat_postMessage.call_count == 1
        warnings = [call.args[0] for call in logger.warning.call_args_list]
        assert any("may post it again" in message for message in warnings)
        assert get_response("emp_42", MARCH_10).announced is False
