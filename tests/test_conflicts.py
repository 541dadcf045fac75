"""Unit tests for conflict detection and lock sets."""

from glossary_merge.glossary.conflicts import compute_lock_set, find_conflicts, keys_intersect
from glossary_merge.glossary.models import GlossaryDictionary, NewEntryProposal


class TestFindConflicts:
    """Test find_conflicts."""

    def test_no_shared_key(self, sample_dictionary):
        proposal = NewEntryProposal(keys=["剣"], value="[item] Sword (剣)")
        assert find_conflicts(sample_dictionary, proposal) == []

    def test_any_shared_key_conflicts(self, sample_dictionary):
        proposal = NewEntryProposal(keys=["新しい", "しののめ"], value="x")
        conflicts = find_conflicts(sample_dictionary, proposal)
        assert [e.id for e in conflicts] == [1]

    def test_multiple_entries_in_dictionary_order(self, sample_dictionary):
        proposal = NewEntryProposal(keys=["氷姫", "東雲"], value="x")
        conflicts = find_conflicts(sample_dictionary, proposal)
        assert [e.id for e in conflicts] == [1, 4]

    def test_exact_match_only(self):
        dictionary = GlossaryDictionary.model_validate(
            {"entries": [{"id": 1, "keys": ["Dr. Strange"], "value": "v"}]}
        )
        for key in ["dr. strange", "Dr. Strange ", "Dr Strange"]:
            assert find_conflicts(dictionary, NewEntryProposal(keys=[key], value="v")) == []

    def test_empty_dictionary(self):
        assert find_conflicts(GlossaryDictionary(), NewEntryProposal(keys=["a"], value="v")) == []


class TestLockSet:
    """Test compute_lock_set and keys_intersect."""

    def test_lock_set_is_union_of_proposal_and_conflict_keys(self, sample_dictionary):
        proposal = NewEntryProposal(keys=["東雲", "Shino"], value="x")
        conflicts = find_conflicts(sample_dictionary, proposal)

        lock_set = compute_lock_set(proposal, conflicts)

        assert lock_set == frozenset({"東雲", "しののめ", "Shino"})

    def test_lock_set_without_conflicts(self):
        proposal = NewEntryProposal(keys=["a", "b"], value="x")
        assert compute_lock_set(proposal, []) == frozenset({"a", "b"})

    def test_keys_intersect(self):
        assert keys_intersect(frozenset({"a", "b"}), {"b", "c"})
        assert not keys_intersect(frozenset({"a"}), {"b"})
        assert not keys_intersect(frozenset({"a"}), set())
