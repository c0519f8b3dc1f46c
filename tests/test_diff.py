"""Tests for diff.py sequence comparison helpers."""

from datetime import datetime, timezone

from chatbranch.diff import (
    detect_conflicts,
    diff_messages,
    find_common_ancestor_length,
    similarity_score,
)
from chatbranch.models import BranchPoint, Message

from conftest import ids, make_message, make_messages


# --- find_common_ancestor_length() Tests ---


class TestFindCommonAncestorLength:
    """Tests for positional identity comparison."""

    def test_strict_prefix(self):
        """[1,2,3] vs [1,2,3,4,5] shares 3 messages."""
        a = make_messages(1, 2, 3)
        b = make_messages(1, 2, 3, 4, 5)
        assert find_common_ancestor_length(a, b) == 3
        assert find_common_ancestor_length(b, a) == 3

    def test_immediate_divergence(self):
        """[1,2] vs [9,2] diverges at index 0 even though index 1 matches."""
        assert find_common_ancestor_length(make_messages(1, 2), make_messages(9, 2)) == 0

    def test_identical_sequences(self):
        """Identical sequences share their full length."""
        a = make_messages(1, 2, 3)
        assert find_common_ancestor_length(a, list(a)) == 3

    def test_empty_sequences(self):
        """Empty input shares nothing."""
        assert find_common_ancestor_length([], []) == 0
        assert find_common_ancestor_length([], make_messages(1)) == 0

    def test_compares_ids_not_content(self):
        """Same id with edited content still counts as shared."""
        a = [make_message("m1", "original")]
        b = [make_message("m1", "edited")]
        assert find_common_ancestor_length(a, b) == 1

    def test_same_content_different_ids_diverge(self):
        """Identical content under different ids is a divergence."""
        a = [make_message("m1", "same")]
        b = [make_message("m2", "same")]
        assert find_common_ancestor_length(a, b) == 0


# --- similarity_score() Tests ---


class TestSimilarityScore:
    """Tests for the prefix-based similarity score."""

    def test_both_empty_is_one(self):
        """Two empty sequences are identical."""
        assert similarity_score([], []) == 1.0

    def test_identical_is_one(self):
        """A sequence is fully similar to itself."""
        a = make_messages(1, 2, 3)
        assert similarity_score(a, a) == 1.0

    def test_prefix_ratio(self):
        """2 shared messages out of a longest length of 3."""
        assert similarity_score(make_messages(1, 2), make_messages(1, 2, 3)) == 2 / 3

    def test_disjoint_is_zero(self):
        """Sequences that diverge immediately score 0."""
        assert similarity_score(make_messages(1), make_messages(2, 3)) == 0.0

    def test_one_empty_is_zero(self):
        """Empty vs non-empty scores 0."""
        assert similarity_score([], make_messages(1)) == 0.0

    def test_always_in_unit_interval(self):
        """Score stays within [0, 1] across a range of shapes."""
        shapes = [
            ([], []),
            ([1], []),
            ([1, 2], [1, 3]),
            ([1, 2, 3], [1, 2, 3, 4, 5, 6]),
            ([5, 6, 7], [1, 2]),
        ]
        for a, b in shapes:
            score = similarity_score(make_messages(*a), make_messages(*b))
            assert 0.0 <= score <= 1.0


# --- detect_conflicts() Tests ---


class TestDetectConflicts:
    """Tests for two-sided divergence detection."""

    def test_two_sided_divergence_conflicts(self):
        """[1,2,T] vs [1,2,S] is a conflict."""
        conflicts = detect_conflicts(make_messages(1, 2, "S"), make_messages(1, 2, "T"))
        assert len(conflicts) == 1
        assert "divergent" in conflicts[0]

    def test_one_sided_extension_has_no_conflict(self):
        """[1,2,3] only extends [1,2]."""
        assert detect_conflicts(make_messages(1, 2, 3), make_messages(1, 2)) == []
        assert detect_conflicts(make_messages(1, 2), make_messages(1, 2, 3)) == []

    def test_identical_has_no_conflict(self):
        """No divergence, no conflict."""
        a = make_messages(1, 2)
        assert detect_conflicts(a, list(a)) == []


# --- diff_messages() Tests ---


class TestDiffMessages:
    """Tests for the structural diff."""

    def _branch_point(self) -> BranchPoint:
        return BranchPoint(
            message_id="2",
            message_index=1,
            timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
            reason="test",
        )

    def test_added_and_removed_suffixes(self):
        """added is the source suffix, removed is the target suffix."""
        diff = diff_messages(
            make_messages(1, 2, "S1", "S2"),
            make_messages(1, 2, "T1"),
            self._branch_point(),
        )
        assert ids(diff.added) == ["S1", "S2"]
        assert ids(diff.removed) == ["T1"]
        assert diff.modified == []
        assert diff.branch_point.message_id == "2"

    def test_keeps_message_references(self):
        """Diff entries are the same Message objects as the input."""
        source = make_messages(1, "S")
        diff = diff_messages(source, make_messages(1), self._branch_point())
        assert diff.added[0] is source[1]
        assert isinstance(diff.added[0], Message)
