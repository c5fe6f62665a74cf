"""
FliDeck error taxonomy.

Every failure raised by the manifest engine is one of the four kinds below so
that callers (the web layer, the CLI, tests) can pattern-match on the class
instead of parsing messages. Each error carries the full list of violations
found, not only the first one.
"""

from typing import List, Optional


class ManifestError(Exception):
    """Base class for manifest engine failures."""

    kind = "error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors: List[str] = list(errors) if errors else [message]
        if errors and len(errors) > 1:
            message = f"{message}: " + "; ".join(errors)
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "success": False,
            "kind": self.kind,
            "error": self.message,
            "errors": self.errors,
        }


class ValidationError(ManifestError):
    """Malformed input: bad id format, missing required field, bad enum value."""
    kind = "validation"


class NotFoundError(ManifestError):
    """Referenced presentation, tab, group, slide or template does not exist."""
    kind = "not_found"


class ConflictError(ManifestError):
    """Duplicate id or file."""
    kind = "conflict"


class CycleDetectedError(ManifestError):
    """A group parent chain loops back on itself."""
    kind = "cycle"
