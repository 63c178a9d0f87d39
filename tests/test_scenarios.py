"""
End-to-end flows: pre-day DM -> employee clicks -> day-of celebration.

Each step feeds the next with the action tokens the bot actually rendered.
"""

from datetime import date, datetime, timezone

from services.celebration import announce_approved_celebrations
from services.interaction import process_interaction
from services.notification import send_anniversary_notifications
from storage.responses import Approval, get_response

MARCH_10 = date(2024, 3, 10)
DAY_BEFORE = datetime(2024, 3, 9, 15, 0, tzinfo=timezone.utc)
DAY_OF = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


def _click(action_id, trigger_id, selected=None):
    action = {"action_id": action_id, "action_ts": "1710000000.1"}
    if selected is not None:
        action["selected_option"] = {"value": selected}
    return process_interaction(
        {
            "type": "block_actions",
            "user": {"id": "U042"},
            "response_url": "https://hooks.slack.com/actions/T1/2/abc",
            "trigger_id": trigger_id,
            "actions": [action],
        }
    )


def _buttons(blocks):
    actions = next(block for block in blocks if block["type"] == "actions")
    return [element["action_id"] for element in actions["elements"]]


class TestBirthdayScenario:
    """Notify, approve, pick a gift, confirm, celebrate once"""

    def test_full_birthday_flow(self, mock_app, write_roster, write_gifts, response_updates):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})
        write_gifts(
            [
                {"gift_id": "G1", "name": "Coffee mug"},
                {"gift_id": "G2", "name": "Book voucher"},
            ]
        )

        send_anniversary_notifications(mock_app, moment=DAY_BEFORE)
        approve_token, _ = _buttons(mock_app.client.chat_postMessage.call_args.kwargs["blocks"])

        assert _click(approve_token, "t1")
        picker = response_updates.call_args[0][2][1]["accessory"]

        assert _click(picker["action_id"], "t2", selected="G1")
        confirm_token, _ = _buttons(response_updates.call_args[0][2])

        assert _click(confirm_token, "t3")
        record = get_response("emp_42", MARCH_10)
        assert record.approval == Approval.APPROVED
        assert record.gift_id == "G1"

        mock_app.client.chat_postMessage.reset_mock()
        first = announce_approved_celebrations(mock_app, moment=DAY_OF)
        second = announce_approved_celebrations(mock_app, moment=DAY_OF)

        assert first["announced"] == 1
        assert second["announced"] == 0
        post = mock_app.client.chat_postMessage.call_args.kwargs
        assert post["channel"] == "C_CELEBRATE"
        assert "Coffee mug" in post["blocks"][2]["elements"][0]["text"]
        assert get_response("emp_42", MARCH_10).announced is True

    def test_choose_again_then_confirm_other_gift(
        self, mock_app, write_roster, write_gifts, response_updates
    ):
        write_roster({"emp_42": {"name": "Ada", "slack_id": "U042", "birth_date": "1990-03-10"}})
        write_gifts([{"gift_id": "G1", "name": "Coffee mug"}, {"gift_id": "G2", "name": "Book"}])

        send_anniversary_notifications(mock_app, moment=DAY_BEFORE)
        approve_token, _ = _buttons(mock_app.client.chat_postMessage.call_args.kwargs["blocks"])
        _click(approve_token, "t1")
        select_token = response_updates.call_args[0][2][1]["accessory"]["action_id"]

        _click(select_token, "t2", selected="G1")
        _, retry_token = _buttons(response_updates.call_args[0][2])
        assert _click(retry_token, "t3")

        _click(select_token, "t4", selected="G2")
        confirm_token, _ = _buttons(response_updates.call_args[0][2])
        _click(confirm_token, "t5")

        assert get_response("emp_42", MARCH_10).gift_id == "G2"


class TestDeclineScenario:
    """Notify, decline, nothing is posted"""

    def test_decline_flow(self, mock_app, write_roster, response_updates):
        write_roster({"emp_7": {"name": "Lin", "slack_id": "U007", "hire_date": "2021-03-10"}})

        results = send_anniversary_notifications(mock_app, moment=DAY_BEFORE)
        assert results["sent"] == 1
        _, decline_token = _buttons(mock_app.client.chat_postMessage.call_args.kwargs["blocks"])

        assert _click(decline_token, "t1")
        assert get_response("emp_7", MARCH_10).approval == Approval.DECLINED

        mock_app.client.chat_postMessage.reset_mock()
        results = announce_approved_celebrations(mock_app, moment=DAY_OF)

        assert results["announced"] == 0
        mock_app.client.chat_postMessage.assert_not_called()
        assert get_response("emp_7", MARCH_10).announced is False
