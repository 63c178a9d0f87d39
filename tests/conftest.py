"""
Shared pytest fixtures for MilestoneBot tests.
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest


@pytest.fixture
def reference_date():
    """Fixed reference instant for deterministic testing: March 9, 2024 (noon UTC)"""
    return datetime(2024, 3, 9, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Point every JSON store at a fresh temp directory and disable pacing delays"""
    monkeypatch.setattr("storage.responses.RESPONSES_JSON_FILE", str(tmp_path / "responses.json"))
    monkeypatch.setattr("storage.employees.EMPLOYEES_JSON_FILE", str(tmp_path / "employees.json"))
    monkeypatch.setattr("storage.gifts.GIFTS_JSON_FILE", str(tmp_path / "gifts.json"))
    monkeypatch.setattr(
        "storage.idempotency.INTERACTION_KEYS_FILE", str(tmp_path / "interaction_keys.json")
    )
    monkeypatch.setattr("integrations.hr.HR_SYNC_STATE_FILE", str(tmp_path / "hr_sync_state.json"))

    monkeypatch.setattr("services.notification.API_CALL_DELAY_SECONDS", 0)
    monkeypatch.setattr("services.celebration.API_CALL_DELAY_SECONDS", 0)
    monkeypatch.setattr("integrations.hr.API_CALL_DELAY_SECONDS", 0)
    monkeypatch.setattr("utils.date.TIMEZONE", "UTC")
    monkeypatch.setattr("slack_io.messaging.ADMIN_CHANNEL", None)
    monkeypatch.setattr("services.celebration.CELEBRATION_CHANNEL", "C_CELEBRATE")
    return tmp_path


@pytest.fixture
def mock_app():
    """Slack app whose Web API calls succeed"""
    app = MagicMock()
    app.client.chat_postMessage.return_value = {"ok": True, "ts": "1700000000.000100"}
    app.client.users_profile_get.return_value = {
        "ok": True,
        "profile": {"image_192": "https://avatars.example/emp.png"},
    }
    return app


@pytest.fixture
def write_roster(isolated_storage):
    """Write employees.json from a {employee_id: fields} mapping"""

    def _write(employees):
        path = isolated_storage / "employees.json"
        path.write_text(json.dumps(employees))
        return path

    return _write


@pytest.fixture
def write_gifts(isolated_storage):
    """Write gifts.json from a list of catalog entries"""

    def _write(gifts):
        path = isolated_storage / "gifts.json"
        path.write_text(json.dumps(gifts))
        return path

    return _write


@pytest.fixture
def response_updates(monkeypatch):
    """Capture follow-up UI updates instead of posting to response_url"""
    sender = MagicMock(return_value=True)
    monkeypatch.setattr("services.interaction.send_response_update", sender)
    return sender
