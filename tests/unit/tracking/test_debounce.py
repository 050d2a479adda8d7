"""Unit tests for the debounce policy and debouncer."""

from datetime import UTC, datetime, timedelta

import pytest
from doc_change_tracker.models import ChangeType, ConfigurationError, DocumentState
from doc_change_tracker.tracking.change_detector import detect
from doc_change_tracker.tracking.debounce import DebouncePolicy, Debouncer
from doc_change_tracker.tracking.store import TrackingStore

T0 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)
TOKEN = "L7v9abcdef123"
WINDOW = timedelta(seconds=60)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


class TestDebouncePolicy:
    """Test cases for the pure debounce rule."""

    @pytest.fixture
    def policy(self):
        return DebouncePolicy(window=WINDOW)

    def test_same_editor_inside_window_suppressed(self, policy):
        """Test suppression within the window."""
        assert policy.allows(ChangeType.SAME_EDITOR_EDIT, T0, at(59)) is False

    def test_same_editor_at_window_boundary_allowed(self, policy):
        """Test that the window is half-open."""
        assert policy.allows(ChangeType.SAME_EDITOR_EDIT, T0, at(60)) is True

    def test_different_editor_always_allowed(self, policy):
        """Test that edits by different people bypass the window."""
        assert policy.allows(ChangeType.DIFFERENT_EDITOR_EDIT, T0, at(1)) is True

    def test_no_anchor_allowed(self, policy):
        """Test that a document never notified nor seeded is allowed."""
        assert policy.allows(ChangeType.SAME_EDITOR_EDIT, None, T0) is True

    def test_rename_not_debounced_by_default(self, policy):
        """Test default debounced set."""
        assert policy.allows(ChangeType.RENAME, T0, at(1)) is True

    def test_configurable_debounced_types(self):
        """Test extending the debounced set."""
        policy = DebouncePolicy.from_settings(60, [ChangeType.SAME_EDITOR_EDIT, ChangeType.METADATA_ONLY])

        assert policy.allows(ChangeType.METADATA_ONLY, T0, at(1)) is False

    def test_different_editor_cannot_be_debounced(self):
        """Test policy validation."""
        with pytest.raises(ConfigurationError):
            DebouncePolicy(window=WINDOW, debounced_types=frozenset({ChangeType.DIFFERENT_EDITOR_EDIT}))

    def test_negative_window_rejected(self):
        """Test window validation."""
        with pytest.raises(ConfigurationError):
            DebouncePolicy(window=timedelta(seconds=-1))


class TestDebouncer:
    """Test cases for Debouncer against the tracking store."""

    @pytest.fixture
    def store(self):
        store = TrackingStore(clock=lambda: T0)
        store.register(TOKEN, "docx", "oc_1")
        store.observe(TOKEN, DocumentState(edited_at=T0, editor_id="u1"), now=T0)
        return store

    @pytest.fixture
    def debouncer(self, store):
        return Debouncer(store, DebouncePolicy(window=WINDOW))

    def change(self, previous_seconds: float, seconds: float, editor: str = "u1"):
        return detect(
            DocumentState(edited_at=at(previous_seconds), editor_id="u1"),
            DocumentState(edited_at=at(seconds), editor_id=editor),
            token=TOKEN,
        )

    def test_same_editor_burst_notifies_at_most_once_per_window(self, debouncer):
        """Test that rapid same-editor edits produce at most one notification."""
        decisions = [debouncer.should_notify(TOKEN, self.change(0, s), at(s + 60)) for s in (1, 2, 3)]

        assert decisions == [True, False, False]

    def test_edit_right_after_baseline_suppressed(self, debouncer, store):
        """Test that the baseline anchors the first window."""
        assert debouncer.should_notify(TOKEN, self.change(0, 5), at(5)) is False
        assert store.get(TOKEN).suppressed_changes == 1

    def test_different_editors_both_notified(self, debouncer):
        """Test that two different editors both surface inside one window."""
        assert debouncer.should_notify(TOKEN, self.change(0, 61, editor="u2"), at(61)) is True
        assert debouncer.should_notify(TOKEN, self.change(61, 62, editor="u3"), at(62)) is True

    def test_claim_reports_coalesced_count(self, debouncer):
        """Test that the next allowed claim carries the suppressed count."""
        debouncer.claim(TOKEN, self.change(0, 5), at(5))
        debouncer.claim(TOKEN, self.change(5, 10), at(10))

        claim = debouncer.claim(TOKEN, self.change(10, 70), at(70))

        assert claim.allowed is True
        assert claim.suppressed_count == 2
        assert claim.channel_ids == ["oc_1"]

    def test_claim_for_untracked_document(self, debouncer, store):
        """Test that a claim after unwatch is None."""
        store.unregister(TOKEN, "oc_1")

        assert debouncer.claim(TOKEN, self.change(0, 5), at(5)) is None
        assert debouncer.should_notify(TOKEN, self.change(0, 5), at(5)) is False
