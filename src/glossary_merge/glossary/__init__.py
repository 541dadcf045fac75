"""Glossary merging: conflict detection, arbitration and dictionary updates."""

from glossary_merge.glossary.actions import ArbitrationAction, validate_actions
from glossary_merge.glossary.conflicts import compute_lock_set, find_conflicts
from glossary_merge.glossary.decoder import parse_json_from_llm
from glossary_merge.glossary.errors import (
    ActionReferenceError,
    ActionTypeError,
    ArbitrationError,
    GlossaryMergeError,
    SchedulerStalledError,
    StructuralError,
    TransportError,
)
from glossary_merge.glossary.models import GlossaryDictionary, GlossaryEntry, NewEntryProposal
from glossary_merge.glossary.prompts import ArbitrationPrompt, GlossaryUpdatePromptBuilder, get_prompt_builder
from glossary_merge.glossary.updater import GlossaryUpdater, MergeSession, merge_glossary

__all__ = [
    "ActionReferenceError",
    "ActionTypeError",
    "ArbitrationAction",
    "ArbitrationError",
    "ArbitrationPrompt",
    "GlossaryDictionary",
    "GlossaryEntry",
    "GlossaryMergeError",
    "GlossaryUpdatePromptBuilder",
    "GlossaryUpdater",
    "MergeSession",
    "NewEntryProposal",
    "SchedulerStalledError",
    "StructuralError",
    "TransportError",
    "compute_lock_set",
    "find_conflicts",
    "get_prompt_builder",
    "merge_glossary",
    "parse_json_from_llm",
    "validate_actions",
]
