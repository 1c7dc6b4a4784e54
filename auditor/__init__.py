"""Industrial Safety Auditor: vision-model compliance checks with procedural audio alerts."""

__version__ = "0.1.0"
