"""Glossary data model: multi-key entries, dictionaries and proposals."""

import json
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()


class GlossaryEntry(BaseModel):
    """A single glossary entry.

    ``keys`` are source-language strings that may appear in text; any of
    them selects the entry. ``value`` is what the translation model sees.
    """

    id: int = Field(description="Unique id, immutable once assigned")
    keys: list[str] = Field(default_factory=list, description="Source strings matching this entry")
    value: str = Field(description="Translation guidance shown to the translator")


class NewEntryProposal(BaseModel):
    """A candidate entry that has not been merged yet (no id)."""

    keys: list[str] = Field(default_factory=list, description="Proposed source strings")
    value: str = Field(description="Proposed translation guidance")


class GlossaryDictionary(BaseModel):
    """Ordered collection of glossary entries with unique ids."""

    entries: list[GlossaryEntry] = Field(default_factory=list)

    def get(self, entry_id: int) -> Optional[GlossaryEntry]:
        """Look up an entry by id.

        Args:
            entry_id: Id to look up

        Returns:
            GlossaryEntry if found, None otherwise
        """
        return next((e for e in self.entries if e.id == entry_id), None)

    def ids(self) -> set[int]:
        return {e.id for e in self.entries}

    def max_id(self) -> int:
        """Highest assigned id, or 0 for an empty dictionary."""
        return max((e.id for e in self.entries), default=0)

    def to_dict(self) -> dict[str, Any]:
        """Plain ``{"entries": [...]}`` form used by prompts and JSON files."""
        return self.model_dump()

    def save(self, path: Path) -> None:
        """Write the dictionary as JSON.

        Args:
            path: Destination file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(self.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.debug("glossary_saved", entries=len(self), path=str(path))

    @classmethod
    def load(cls, path: Path) -> "GlossaryDictionary":
        """Read a dictionary from a JSON file.

        Args:
            path: JSON file holding ``{"entries": [...]}``

        Returns:
            New GlossaryDictionary instance
        """
        path = Path(path)
        dictionary = cls.model_validate_json(path.read_text(encoding="utf-8"))
        logger.info("glossary_loaded", entries=len(dictionary), path=str(path))
        return dictionary

    @classmethod
    def load_or_create(cls, path: Path) -> "GlossaryDictionary":
        """Load an existing dictionary file or start an empty one."""
        path = Path(path)
        return cls.load(path) if path.exists() else cls()

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, entry_id: int) -> bool:
        return self.get(entry_id) is not None


def load_proposals(path: Path) -> list[NewEntryProposal]:
    """Read proposals from JSON.

    Accepts either a bare list or the ``{"entries": [...]}`` shape the
    arbitration prompt uses for new updates.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("entries", [])
    return [NewEntryProposal.model_validate(item) for item in data]
