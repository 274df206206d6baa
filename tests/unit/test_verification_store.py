"""Tests for the pending verification store."""

import threading

import pytest

from wa2fa.services.verification import (
    MatchStatus,
    VerificationStatus,
    VerificationStore,
    get_verification_store,
    normalize_identity,
    reset_verification_store,
)

TOKEN = "ACME-AB3F7G2K9"
PHONE = "+15550001234"


@pytest.fixture
def store():
    return VerificationStore(max_size=100, cleanup_interval_seconds=60)


class TestCreatePending:
    """Tests for challenge issuance."""

    def test_create_then_get_by_token_is_pending(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        entry = store.get_by_token(TOKEN)
        assert entry is not None
        assert entry.status is VerificationStatus.PENDING
        assert entry.expected_identity == PHONE
        assert entry.created_at == clock.now

    def test_expected_identity_is_normalized(self, store, clock):
        entry = store.create_pending(TOKEN, "15550001234", 300, "sess-1")
        assert entry.expected_identity == PHONE

    def test_new_challenge_replaces_owner_previous(self, store, clock):
        store.create_pending("ACME-AAAAAAAAA", PHONE, 300, "sess-1")
        store.create_pending("ACME-BBBBBBBBB", PHONE, 300, "sess-1")
        assert store.get_by_token("ACME-AAAAAAAAA") is None
        assert store.get_status("sess-1").token == "ACME-BBBBBBBBB"
        assert store.size() == 1

    def test_colliding_token_replaces_other_owner(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.create_pending(TOKEN, "+15550005678", 300, "sess-2")
        assert store.get_status("sess-1") is None
        assert store.get_status("sess-2").expected_identity == "+15550005678"

    def test_capacity_evicts_oldest(self, clock):
        store = VerificationStore(max_size=3, cleanup_interval_seconds=3600)
        for i in range(4):
            store.create_pending(f"ACME-TOKEN{i}XX", PHONE, 300, f"sess-{i}")
            clock.advance(1)
        assert store.size() == 3
        assert store.get_by_token("ACME-TOKEN0XX") is None
        assert store.get_status("sess-0") is None
        for i in range(1, 4):
            assert store.get_by_token(f"ACME-TOKEN{i}XX") is not None

    def test_size_never_exceeds_cap(self, clock):
        store = VerificationStore(max_size=10, cleanup_interval_seconds=3600)
        for i in range(50):
            store.create_pending(f"ACME-{i:09d}", PHONE, 300, f"sess-{i}")
            assert store.size() <= 10

    def test_admission_cleans_expired_entries_first(self, clock):
        store = VerificationStore(max_size=4, cleanup_interval_seconds=3600)
        store.create_pending("ACME-OLDAAAAAA", PHONE, 10, "sess-old")
        store.create_pending("ACME-KEEPAAAAA", PHONE, 300, "sess-keep")
        store.create_pending("ACME-KEEPBBBBB", PHONE, 300, "sess-keep2")
        clock.advance(11)
        # More than half full triggers a sweep; the expired entry goes, not the oldest live one
        store.create_pending("ACME-NEWAAAAAA", PHONE, 300, "sess-new")
        assert store.size() == 3
        assert store.get_status("sess-keep") is not None


class TestHandleIncomingMessage:
    """Tests for inbound message matching."""

    def test_matching_sender_verifies(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        result = store.handle_incoming_message(PHONE, "acme-ab3f7g2k9", False)
        assert result.status is MatchStatus.MATCHED
        entry = store.get_by_token(TOKEN)
        assert entry.status is VerificationStatus.VERIFIED
        assert entry.confirmed_identity == PHONE

    def test_sender_without_plus_matches(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        result = store.handle_incoming_message("15550001234", f"  {TOKEN}\n", False)
        assert result.matched

    def test_duplicate_delivery_is_no_match(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.handle_incoming_message(PHONE, TOKEN, False)
        result = store.handle_incoming_message(PHONE, TOKEN, False)
        assert result.status is MatchStatus.NO_MATCH
        assert store.get_by_token(TOKEN).is_verified

    def test_identity_mismatch_keeps_entry_pending(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        result = store.handle_incoming_message("+19998887777", TOKEN, False)
        assert result.status is MatchStatus.IDENTITY_MISMATCH
        assert result.expected_identity_last4 == "1234"
        assert store.get_by_token(TOKEN).status is VerificationStatus.PENDING
        # The rightful owner can still complete it
        assert store.handle_incoming_message(PHONE, TOKEN, False).matched

    def test_expired_entry_is_removed(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        clock.advance(301)
        result = store.handle_incoming_message(PHONE, TOKEN, False)
        assert result.status is MatchStatus.EXPIRED
        assert result.expected_identity_last4 == "1234"
        assert store.size() == 0
        assert store.get_status("sess-1") is None

    @pytest.mark.parametrize("text", [None, "", "   ", "hello there"])
    def test_empty_or_unknown_text_is_no_match(self, store, clock, text):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        assert store.handle_incoming_message(PHONE, text, False).status is MatchStatus.NO_MATCH

    def test_mixed_case_token_found_by_scan(self, store, clock):
        store.create_pending("Acme-Ab3F7g2K9", PHONE, 300, "sess-1")
        assert store.handle_incoming_message(PHONE, "ACME-AB3F7G2K9", False).matched

    def test_pseudonymous_sender_matches_without_verifying(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        result = store.handle_incoming_message("US.13491208655302741918", TOKEN, True)
        assert result.status is MatchStatus.MATCHED
        assert result.token == TOKEN
        assert store.get_by_token(TOKEN).status is VerificationStatus.PENDING

    def test_pseudonymous_duplicate_while_awaiting_confirm(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.handle_incoming_message("US.1349", TOKEN, True)
        assert store.mark_pending_identity_confirm(TOKEN) is True
        result = store.handle_incoming_message("US.1349", TOKEN, True)
        assert result.status is MatchStatus.NO_MATCH


class TestIdentityConfirmation:
    """Tests for the pending-identity-confirm transition."""

    def test_mark_only_from_pending(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        assert store.mark_pending_identity_confirm(TOKEN) is True
        assert store.mark_pending_identity_confirm(TOKEN) is False
        assert store.mark_pending_identity_confirm("ACME-UNKNOWNXX") is False

    def test_confirm_identity_verifies(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.mark_pending_identity_confirm(TOKEN)
        assert store.confirm_identity(TOKEN, "15550001234") is True
        entry = store.get_by_token(TOKEN)
        assert entry.is_verified
        assert entry.confirmed_identity == PHONE

    def test_confirm_identity_is_forward_only(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.confirm_identity(TOKEN, PHONE)
        assert store.confirm_identity(TOKEN, PHONE) is False

    def test_confirm_after_expiry_drops_entry(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.mark_pending_identity_confirm(TOKEN)
        clock.advance(301)
        assert store.confirm_identity(TOKEN, PHONE) is False
        assert store.size() == 0


class TestReadsAndCleanup:
    """Tests for lookups, eviction-on-read and sweeps."""

    def test_expired_pending_evicted_on_read(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        clock.advance(301)
        assert store.get_status("sess-1") is None
        assert store.size() == 0

    def test_expired_pending_confirm_survives_read(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.mark_pending_identity_confirm(TOKEN)
        clock.advance(301)
        assert store.get_by_token(TOKEN) is not None

    def test_verified_survives_ttl_on_read(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.handle_incoming_message(PHONE, TOKEN, False)
        clock.advance(400)
        assert store.get_status("sess-1").is_verified

    def test_get_by_token_none(self, store):
        assert store.get_by_token(None) is None
        assert store.get_by_token("") is None

    def test_remove(self, store, clock):
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        store.remove("sess-1")
        assert store.get_by_token(TOKEN) is None
        store.remove("sess-1")

    def test_cleanup_expired(self, store, clock):
        store.create_pending("ACME-EXPIREDXX", PHONE, 100, "sess-1")
        store.create_pending("ACME-VERIFIEDX", PHONE, 100, "sess-2")
        store.create_pending("ACME-LIVEAAAAA", PHONE, 1000, "sess-3")
        store.handle_incoming_message(PHONE, "ACME-VERIFIEDX", False)

        clock.advance(150)
        assert store.cleanup_expired() == 1
        assert store.get_by_token("ACME-VERIFIEDX") is not None

        clock.advance(51)
        assert store.cleanup_expired() == 1
        assert store.get_by_token("ACME-VERIFIEDX") is None
        assert store.get_status("sess-3") is not None

    def test_health_check(self, clock):
        store = VerificationStore(max_size=1)
        assert store.health_check()["status"] == "healthy"
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        health = store.health_check()
        assert health["status"] == "at_capacity"
        assert health["size"] == 1
        assert health["max_size"] == 1


class TestConcurrency:
    """Tests for concurrent access."""

    def test_concurrent_creates_respect_cap(self):
        store = VerificationStore(max_size=50, cleanup_interval_seconds=3600)

        def issue(worker: int) -> None:
            for i in range(100):
                store.create_pending(f"ACME-W{worker}N{i:05d}", PHONE, 300, f"w{worker}-{i}")

        threads = [threading.Thread(target=issue, args=(w,)) for w in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.size() <= 50

    def test_only_one_concurrent_match_wins(self):
        store = VerificationStore()
        store.create_pending(TOKEN, PHONE, 300, "sess-1")
        results = []

        def deliver() -> None:
            results.append(store.handle_incoming_message(PHONE, TOKEN, False))

        threads = [threading.Thread(target=deliver) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sum(1 for r in results if r.matched) == 1


class TestHelpers:
    """Tests for module-level helpers."""

    def test_normalize_identity(self):
        assert normalize_identity("15550001234") == PHONE
        assert normalize_identity(" +15550001234 ") == PHONE

    def test_singleton(self):
        first = get_verification_store()
        assert get_verification_store() is first
        reset_verification_store()
        assert get_verification_store() is not first
