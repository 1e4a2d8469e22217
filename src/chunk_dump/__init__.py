"""Package a source tree into size-bounded, LLM-friendly text chunks."""

__version__ = "0.1.0"
