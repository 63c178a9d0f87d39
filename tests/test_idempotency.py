"""
Tests for the interaction deduplication cache in storage/idempotency.py
"""

from filelock import FileLock

from storage import idempotency
from storage.idempotency import build_interaction_key, try_claim_interaction


class TestBuildInteractionKey:
    """Tests for build_interaction_key()"""

    def test_trigger_id_preferred(self):
        key = build_interaction_key("123.456.abc", "U1", "approve_emp_2024-03-10", "1.2")
        assert key == "interaction:123.456.abc"

    def test_fallback_to_user_action_timestamp(self):
        key = build_interaction_key(None, "U1", "approve_emp_2024-03-10", "1.2")
        assert key == "interaction:U1:approve_emp_2024-03-10:1.2"

    def test_nothing_to_key_on(self):
        assert build_interaction_key(None, "U1", None, None) is None


class TestTryClaimInteraction:
    """Tests for try_claim_interaction()"""

    def test_first_claim_wins_duplicate_loses(self):
        assert try_claim_interaction("interaction:t1", now=1000) is True
        assert try_claim_interaction("interaction:t1", now=1010) is False

    def test_distinct_keys_independent(self):
        assert try_claim_interaction("interaction:t1", now=1000) is True
        assert try_claim_interaction("interaction:t2", now=1000) is True

    def test_claim_expires_after_ttl(self):
        assert try_claim_interaction("interaction:t1", ttl_seconds=60, now=1000) is True
        assert try_claim_interaction("interaction:t1", ttl_seconds=60, now=1061) is True

    def test_lock_timeout_drops_callback(self):
        """A held lock is not waited on beyond the bounded timeout"""
        with FileLock(idempotency.INTERACTION_KEYS_FILE + ".lock"):
            assert try_claim_interaction("interaction:t1", lock_timeout=0.05) is False

        assert try_claim_interaction("interaction:t1") is True
