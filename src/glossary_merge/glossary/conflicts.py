"""Conflict detection and lock-set computation for glossary proposals."""

from collections.abc import Iterable

from glossary_merge.glossary.models import GlossaryDictionary, GlossaryEntry, NewEntryProposal


def find_conflicts(
    dictionary: GlossaryDictionary, proposal: NewEntryProposal
) -> list[GlossaryEntry]:
    """Find existing entries sharing at least one key with the proposal.

    Exact string match only. Dictionary order is preserved so prompts
    list conflicts the way the glossary stores them.

    Args:
        dictionary: Current working dictionary
        proposal: Proposal to check

    Returns:
        Conflicting entries (empty if the proposal can merge directly)
    """
    proposal_keys = set(proposal.keys)
    return [
        entry
        for entry in dictionary.entries
        if any(key in proposal_keys for key in entry.keys)
    ]


def compute_lock_set(
    proposal: NewEntryProposal, conflicts: Iterable[GlossaryEntry]
) -> frozenset[str]:
    """Keys that must be held exclusively while arbitrating the proposal."""
    keys = set(proposal.keys)
    for entry in conflicts:
        keys.update(entry.keys)
    return frozenset(keys)


def keys_intersect(lock_set: Iterable[str], locked_keys: set[str]) -> bool:
    return any(key in locked_keys for key in lock_set)
