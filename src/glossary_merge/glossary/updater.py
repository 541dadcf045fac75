"""Merge scheduler: fold new glossary proposals into an existing dictionary.

Proposals sharing no key with the dictionary merge immediately. Colliding
proposals are sent to an arbiter (an LLM) together with the entries they
collide with, and the arbiter's actions are validated and applied.

Scheduling works on key locks. Admitting a proposal locks its keys plus
every key of its conflicting entries; a proposal whose lock set touches a
locked key waits for a later pass. Arbitrations with disjoint lock sets
run concurrently, overlapping ones run one after another. Every read and
write of the working dictionary happens under one ``asyncio.Lock``, and
results are applied one completion at a time.
"""

import asyncio
import itertools
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

import structlog

from glossary_merge.events import (
    ARBITRATION_APPLIED,
    ARBITRATION_DISPATCHED,
    ARBITRATION_REJECTED,
    ENTRY_ADDED,
    MERGE_COMPLETED,
    EventBus,
    MergeEvent,
    MergeStats,
)
from glossary_merge.glossary.actions import validate_actions
from glossary_merge.glossary.conflicts import compute_lock_set, find_conflicts, keys_intersect
from glossary_merge.glossary.decoder import parse_json_from_llm
from glossary_merge.glossary.errors import (
    ArbitrationError,
    SchedulerStalledError,
    StructuralError,
    TransportError,
)
from glossary_merge.glossary.models import GlossaryDictionary, GlossaryEntry, NewEntryProposal
from glossary_merge.glossary.mutator import add_entry, apply_actions
from glossary_merge.log import merge_log_context

logger = structlog.get_logger()

DictionaryInput = Union[GlossaryDictionary, dict[str, Any]]
ProposalInput = Union[NewEntryProposal, dict[str, Any]]


class ArbitrationClient(Protocol):
    """Sends one arbitration prompt and returns the raw completion text."""

    async def request(self, prompt: Any) -> str: ...


class PromptBuilder(Protocol):
    """Turns conflicting entries + proposal into an opaque prompt."""

    def build(self, existing: dict[str, Any], new_updates: dict[str, Any]) -> Any: ...


ResponseDecoder = Callable[[str], Any]


@dataclass
class ArbitrationOutcome:
    """Result of one arbitration call: a response or the error it raised."""

    response: Optional[str] = None
    error: Optional[BaseException] = None


@dataclass
class InFlightArbitration:
    """An admitted proposal waiting for its arbitration result."""

    seq: int
    proposal: NewEntryProposal
    conflicts: list[GlossaryEntry]
    lock_set: frozenset[str]


class MergeSession:
    """State of one ``GlossaryUpdater.update`` call.

    Owns the working dictionary, the locked-key set, the id counter and the
    in-flight arbitrations, so concurrent sessions never share state.
    """

    def __init__(
        self,
        updater: "GlossaryUpdater",
        dictionary: GlossaryDictionary,
        proposals: Sequence[NewEntryProposal],
    ):
        self.session_id = uuid.uuid4().hex[:8]
        self._updater = updater
        # Isolated copy: the caller's dictionary is never touched
        self.dictionary = dictionary.model_copy(deep=True)
        self.pending: list[NewEntryProposal] = list(proposals)
        self.locked_keys: set[str] = set()
        self.in_flight: dict[asyncio.Task, InFlightArbitration] = {}
        self.stats = MergeStats(proposals=len(self.pending))
        self._lock = asyncio.Lock()
        self._ids = itertools.count(self.dictionary.max_id() + 1)
        self._seq = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def _emit(self, event_type: str, **data: Any) -> None:
        if self._updater.event_bus is not None:
            self._updater.event_bus.emit(
                MergeEvent(type=event_type, data=data, session_id=self.session_id)
            )

    async def run(self) -> GlossaryDictionary:
        """Process every proposal and return the merged dictionary."""
        with merge_log_context(self.session_id):
            logger.info(
                "merge_started",
                entries=len(self.dictionary),
                proposals=len(self.pending),
            )
            try:
                await self._loop()
            except BaseException:
                self._cancel_in_flight()
                raise

            logger.info("merge_completed", entries=len(self.dictionary), **self.stats.to_dict())
            self._emit(MERGE_COMPLETED, **self.stats.to_dict())
            return self.dictionary

    async def _loop(self) -> None:
        while True:
            await self._admit()

            if not self.in_flight:
                if self.pending:
                    raise SchedulerStalledError(
                        f"{len(self.pending)} proposals pending with nothing in flight"
                    )
                return

            done, _ = await asyncio.wait(
                set(self.in_flight), return_when=asyncio.FIRST_COMPLETED
            )
            # One completion per round; the others are picked up next wait
            task = min(done, key=lambda t: self.in_flight[t].seq)
            await self._complete(task)

    async def _admit(self) -> None:
        """Admission pass: merge conflict-free proposals, dispatch free ones."""
        async with self._lock:
            still_pending: list[NewEntryProposal] = []
            for proposal in self.pending:
                # Recomputed every pass: earlier results may have changed the dictionary
                conflicts = find_conflicts(self.dictionary, proposal)

                if not conflicts:
                    entry = add_entry(self.dictionary, proposal, self.next_id())
                    self.stats.added_directly += 1
                    logger.debug("entry_added", id=entry.id, keys=entry.keys)
                    self._emit(ENTRY_ADDED, id=entry.id, keys=list(entry.keys))
                    continue

                lock_set = compute_lock_set(proposal, conflicts)
                if keys_intersect(lock_set, self.locked_keys):
                    still_pending.append(proposal)
                    continue

                self._dispatch(proposal, conflicts, lock_set)

            self.pending = still_pending

    def _dispatch(
        self,
        proposal: NewEntryProposal,
        conflicts: list[GlossaryEntry],
        lock_set: frozenset[str],
    ) -> None:
        # Snapshot what the arbiter sees; validation checks ids against it
        snapshot = [entry.model_copy(deep=True) for entry in conflicts]
        prompt = self._updater.prompt_builder.build(
            {"entries": [entry.model_dump() for entry in snapshot]},
            {"entries": [proposal.model_dump()]},
        )

        self.locked_keys.update(lock_set)
        flight = InFlightArbitration(
            seq=next(self._seq),
            proposal=proposal,
            conflicts=snapshot,
            lock_set=lock_set,
        )
        task = asyncio.create_task(self._arbitrate(prompt))
        self.in_flight[task] = flight
        self.stats.arbitrated += 1

        conflict_ids = [entry.id for entry in snapshot]
        logger.debug(
            "arbitration_dispatched",
            seq=flight.seq,
            keys=proposal.keys,
            conflicts=conflict_ids,
            locked=len(self.locked_keys),
        )
        self._emit(
            ARBITRATION_DISPATCHED,
            seq=flight.seq,
            keys=list(proposal.keys),
            conflicts=conflict_ids,
        )

    async def _arbitrate(self, prompt: Any) -> ArbitrationOutcome:
        """Run one arbitration call outside the session lock."""
        try:
            response = await self._updater.client.request(prompt)
        except Exception as e:
            return ArbitrationOutcome(error=e)
        return ArbitrationOutcome(response=response)

    async def _complete(self, task: asyncio.Task) -> None:
        """Apply a finished arbitration and release its keys."""
        async with self._lock:
            flight = self.in_flight.pop(task)
            try:
                self._apply(flight, task.result())
            finally:
                self.locked_keys.difference_update(flight.lock_set)

    def _decode(self, flight: InFlightArbitration, outcome: ArbitrationOutcome) -> list:
        if outcome.error is not None:
            raise TransportError(str(outcome.error)) from outcome.error
        try:
            parsed = self._updater.decoder(outcome.response or "")
        except ArbitrationError:
            raise
        except Exception as e:
            raise StructuralError(f"Could not decode arbitration response: {e}") from e
        return validate_actions(parsed, flight.conflicts)

    def _apply(self, flight: InFlightArbitration, outcome: ArbitrationOutcome) -> None:
        try:
            actions = self._decode(flight, outcome)
        except ArbitrationError as e:
            # Whole batch discarded; proposal treated as "none"
            self.stats.rejected += 1
            logger.warning(
                "arbitration_rejected",
                seq=flight.seq,
                keys=flight.proposal.keys,
                reason=type(e).__name__,
                error=str(e),
            )
            self._emit(ARBITRATION_REJECTED, seq=flight.seq, reason=type(e).__name__, error=str(e))
            return

        applied = apply_actions(self.dictionary, actions, flight.proposal, self.next_id)
        self.stats.applied += 1
        self.stats.actions_applied += applied
        summary = [action.action for action in actions]
        logger.debug("arbitration_applied", seq=flight.seq, actions=summary)
        self._emit(ARBITRATION_APPLIED, seq=flight.seq, actions=summary)

    def _cancel_in_flight(self) -> None:
        for task in self.in_flight:
            task.cancel()
        self.in_flight.clear()
        self.locked_keys.clear()


class GlossaryUpdater:
    """Merge proposals into glossary dictionaries with LLM arbitration."""

    def __init__(
        self,
        client: ArbitrationClient,
        prompt_builder: PromptBuilder,
        decoder: ResponseDecoder = parse_json_from_llm,
        event_bus: Optional[EventBus] = None,
    ):
        """Initialize the updater.

        Args:
            client: Arbitration transport (e.g. LLMClient)
            prompt_builder: Builds the arbitration prompt for a conflict
            decoder: Turns the raw response into JSON before validation
            event_bus: Optional bus receiving progress events
        """
        self.client = client
        self.prompt_builder = prompt_builder
        self.decoder = decoder
        self.event_bus = event_bus

    async def update(
        self,
        existing: DictionaryInput,
        proposals: Iterable[ProposalInput],
    ) -> GlossaryDictionary:
        """Merge proposals into a copy of ``existing``.

        Args:
            existing: Current dictionary (model or ``{"entries": [...]}``)
            proposals: New entries (models or ``{"keys": [...], "value": ...}``)

        Returns:
            The merged dictionary; ``existing`` is left untouched
        """
        session = MergeSession(
            self,
            GlossaryDictionary.model_validate(existing),
            [NewEntryProposal.model_validate(p) for p in proposals],
        )
        return await session.run()


async def merge_glossary(
    existing: DictionaryInput,
    proposals: Sequence[ProposalInput],
    client: Optional[ArbitrationClient] = None,
    prompt_builder: Optional[PromptBuilder] = None,
    event_bus: Optional[EventBus] = None,
    language_pair: Optional[str] = None,
) -> GlossaryDictionary:
    """Merge proposals using the configured arbitration LLM.

    Args:
        existing: Current dictionary
        proposals: Proposed entries
        client: Arbitration client (LLMClient for the glossary_update task if None)
        prompt_builder: Prompt builder (built for the language pair if None)
        event_bus: Optional progress event bus
        language_pair: ``src_tgt`` pair, defaults to the merge config

    Returns:
        Merged dictionary
    """
    if not proposals:
        return GlossaryDictionary.model_validate(existing).model_copy(deep=True)

    from glossary_merge.config import get_config
    from glossary_merge.glossary.prompts import get_prompt_builder

    merge_config = get_config().merge
    if client is None:
        from glossary_merge.llm import LLMClient

        client = LLMClient(task="glossary_update")
    if prompt_builder is None:
        prompt_builder = get_prompt_builder(language_pair or merge_config.language_pair)

    updater = GlossaryUpdater(client, prompt_builder, event_bus=event_bus)
    return await updater.update(existing, proposals)
