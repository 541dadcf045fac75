"""Multi-key glossary merging with LLM arbitration of conflicting entries."""

__version__ = "0.1.0"
