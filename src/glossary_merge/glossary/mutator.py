"""Apply validated arbitration actions to a working glossary dictionary.

Actions reaching this module have already been validated against the
conflict set they were generated for. A target that disappeared earlier
in the same batch (e.g. ``delete`` followed by ``update`` on the same id)
is logged and skipped rather than failing the batch.
"""

from collections.abc import Callable, Iterable
from typing import Optional

import structlog

from glossary_merge.glossary.actions import (
    AddEntryAction,
    AddKeyAction,
    ArbitrationAction,
    DeleteAction,
    DelKeyAction,
    NoneAction,
    UpdateAction,
)
from glossary_merge.glossary.models import GlossaryDictionary, GlossaryEntry, NewEntryProposal

logger = structlog.get_logger()

IdAllocator = Callable[[], int]


def add_entry(
    dictionary: GlossaryDictionary, proposal: NewEntryProposal, entry_id: int
) -> GlossaryEntry:
    """Append a proposal as a new entry.

    Args:
        dictionary: Working dictionary (mutated)
        proposal: Proposal to copy keys and value from
        entry_id: Fresh id for the entry

    Returns:
        The appended entry
    """
    entry = GlossaryEntry(id=entry_id, keys=list(proposal.keys), value=proposal.value)
    dictionary.entries.append(entry)
    return entry


def _target(dictionary: GlossaryDictionary, action: ArbitrationAction) -> Optional[GlossaryEntry]:
    entry = dictionary.get(action.id)
    if entry is None:
        logger.warning("action_target_missing", action=action.action, id=action.id)
    return entry


def apply_action(
    dictionary: GlossaryDictionary,
    action: ArbitrationAction,
    proposal: NewEntryProposal,
    next_id: IdAllocator,
) -> None:
    """Apply one validated action.

    Args:
        dictionary: Working dictionary (mutated)
        action: Validated action
        proposal: Proposal whose arbitration produced the action
        next_id: Allocator for fresh ids, used by ``add_entry``
    """
    if isinstance(action, NoneAction):
        return

    if isinstance(action, AddEntryAction):
        add_entry(dictionary, proposal, next_id())
        return

    if isinstance(action, DeleteAction):
        before = len(dictionary.entries)
        dictionary.entries = [e for e in dictionary.entries if e.id != action.id]
        if len(dictionary.entries) == before:
            logger.warning("delete_target_missing", id=action.id)
        return

    entry = _target(dictionary, action)
    if entry is None:
        return

    if isinstance(action, UpdateAction):
        entry.value = action.data
    elif isinstance(action, AddKeyAction):
        # dict.fromkeys keeps first-seen order while dropping duplicates
        entry.keys = list(dict.fromkeys([*entry.keys, *action.data]))
    elif isinstance(action, DelKeyAction):
        removed = set(action.data)
        entry.keys = [k for k in entry.keys if k not in removed]


def apply_actions(
    dictionary: GlossaryDictionary,
    actions: Iterable[ArbitrationAction],
    proposal: NewEntryProposal,
    next_id: IdAllocator,
) -> int:
    """Apply a validated batch in order.

    Returns:
        Number of actions applied
    """
    count = 0
    for action in actions:
        apply_action(dictionary, action, proposal, next_id)
        count += 1
    return count
