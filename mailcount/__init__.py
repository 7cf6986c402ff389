"""Count Gmail messages per sender behind an encrypted local OAuth token store."""

__version__ = "0.1.0"
