"""Prompt construction for glossary conflict arbitration."""

import json
from functools import lru_cache
from typing import Any

from pydantic import BaseModel

LANGUAGE_NAMES = {
    "ja": "Japanese",
    "zh": "Chinese",
    "ko": "Korean",
    "en": "English",
    "vi": "Vietnamese",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "pt": "Portuguese",
    "ru": "Russian",
}


class ArbitrationPrompt(BaseModel):
    """System + user message pair sent to the arbiter."""

    system: str
    user: str


GLOSSARY_UPDATE_SYSTEM_PROMPT = """You are in charge of merging and updating the glossary for a translation system.

Goal
- Keep term translation consistent across chapters by merging proposed glossary entries into a subset of the existing glossary.
- Prefer existing translations. Only change them when it improves translation quality without breaking consistency.
- Output only JSON actions; the caller executes them. No explanation or text outside the JSON.

Inputs
- <existing_dictionary> {{ "entries": [ {{ "id": number, "keys": string[], "value": string }}, ... ] }} </existing_dictionary>
- <new_updates> {{ "entries": [ {{ "keys": string[], "value": string }} ] }} </new_updates>
- existing_dictionary lists the only entries you may modify.
- new_updates were proposed from new text without seeing the glossary; they often duplicate existing content.
- Only "value" is shown to the translation model. Keep it concise and useful for translation.
- The pipeline translates **{source_lang}** into **{target_lang}**.

Output format (strict)
- Respond with ONLY one of:
  - a single JSON object: {{ "action": "none" }}
  - a JSON array of action objects: [ {{ "action": "...", ... }}, ... ]
- Allowed actions:
  - {{ "action": "none" }}
  - {{ "action": "add_entry" }}
  - {{ "action": "delete", "id": number }}
  - {{ "action": "update", "id": number, "data": string }}      replaces the whole value of the entry
  - {{ "action": "add_key", "id": number, "data": string[] }}   adds keys to the entry
  - {{ "action": "del_key", "id": number, "data": string[] }}   removes keys from the entry
- Constraints:
  - Use only ids from <existing_dictionary>. Never invent ids.
  - add_entry has no id or data; the caller appends the entry from <new_updates> and assigns its id.
  - No code fences, comments, or extra keys.

Keys
- Keys are raw {source_lang} strings that can appear in source text. Never add {target_lang} translations as keys.
- Keep previously seen variants (abbreviations, alternate spellings or scripts). Remove a key only when it is clearly wrong.

Values
- Write both languages as: {target_lang} term ({source_lang} term).
- Keep a leading category tag if present, e.g. [character], [term], [location].
- Recommended layout: [category] Name: {target_lang} ({source_lang}) | Gender: ... | Title: ... | Nickname: ... | Note: ...
- Keep Note short and only when it affects translation.

Consistency
- If the glossary already translates a {source_lang} term one way, keep it. Do not switch to a synonym.
- Prefer no-op when the proposal differs only by synonym choice or formatting.

Decision procedure
1. When several existing entries describe one concept, pick the most complete one as canonical: update it, add_key the variants, delete the duplicates.
2. Proposal matches an existing entry: none, or add_key for useful new variants.
3. Proposal describes a different concept from every listed entry: {{ "action": "add_entry" }}.
4. Use the smallest set of actions. When uncertain, return {{ "action": "none" }}.

Examples

Existing: id 42, keys ["Doctor Strange"], value "[character] Name: Doctor Extraño (Doctor Strange)"
New: keys ["Dr. Strange"], same value
Output: [{{ "action": "add_key", "id": 42, "data": ["Dr. Strange"] }}]

Existing: id 3, keys ["東雲", "しののめ"], value "[character] Name: Shinonome (東雲) | Gender: Female"
Existing: id 5, keys ["氷姫"], value "[character] Name: Ice Princess (氷姫) | Note: A nickname for Shinonome."
New: keys ["東雲"], value "[character] Name: Shinonome (東雲) | Gender: Female"
Output:
[
  {{ "action": "update", "id": 3, "data": "[character] Name: Shinonome (東雲) | Gender: Female | Nickname: Ice Princess (氷姫)" }},
  {{ "action": "add_key", "id": 3, "data": ["氷姫"] }},
  {{ "action": "delete", "id": 5 }}
]

Existing: id 17, keys ["Madrid"], value "[location] Name: Madri (Madrid)"
New: keys ["Barcelona"], value "[location] Name: Barcelona (Barcelona)"
Output: [{{ "action": "add_entry" }}]

Return only valid JSON. When in doubt, return {{ "action": "none" }}."""


GLOSSARY_UPDATE_USER_PROMPT = """<existing_dictionary>
{existing}
</existing_dictionary>

<new_updates>
{new_updates}
</new_updates>"""


class GlossaryUpdatePromptBuilder:
    """Build arbitration prompts for one language pair."""

    def __init__(self, source_lang: str = "Japanese", target_lang: str = "English"):
        """Initialize the builder.

        Args:
            source_lang: Display name of the glossary key language
            target_lang: Display name of the translation language
        """
        self.source_lang = source_lang
        self.target_lang = target_lang
        self._system = GLOSSARY_UPDATE_SYSTEM_PROMPT.format(
            source_lang=source_lang, target_lang=target_lang
        )

    def build(self, existing: dict[str, Any], new_updates: dict[str, Any]) -> ArbitrationPrompt:
        """Build the prompt for one conflicting proposal.

        Args:
            existing: ``{"entries": [...]}`` holding the conflicting entries
            new_updates: ``{"entries": [proposal]}``

        Returns:
            ArbitrationPrompt ready for the arbitration client
        """
        user = GLOSSARY_UPDATE_USER_PROMPT.format(
            existing=json.dumps(existing, ensure_ascii=False, indent=2),
            new_updates=json.dumps(new_updates, ensure_ascii=False, indent=2),
        )
        return ArbitrationPrompt(system=self._system, user=user)


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


@lru_cache(maxsize=None)
def get_prompt_builder(language_pair: str) -> GlossaryUpdatePromptBuilder:
    """Get the (cached) prompt builder for a ``src_tgt`` pair such as ``ja_en``.

    Raises:
        ValueError: If the pair is not two underscore-separated codes
    """
    parts = language_pair.split("_")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid language pair: {language_pair!r}")
    source, target = parts
    return GlossaryUpdatePromptBuilder(language_name(source), language_name(target))
