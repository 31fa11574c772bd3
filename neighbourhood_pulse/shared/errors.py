"""
Neighbourhood Pulse - Exception Classes

Only missing inputs abort a run. Everything else (bad coordinates, malformed
rows, empty distributions) is recovered locally and counted.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for fatal pipeline errors."""


class MissingInputError(PipelineError):
    """Raised when a required input file or column is absent."""

    def __init__(self, message: str, path: str | None = None, column: str | None = None):
        self.path = path
        self.column = column
        super().__init__(message)

    @classmethod
    def for_file(cls, path: str, description: str = "input file") -> MissingInputError:
        """Build the error for a missing file."""
        return cls(f"Required {description} not found: {path}", path=str(path))

    @classmethod
    def for_columns(
        cls, columns: list[str] | set[str], source: str
    ) -> MissingInputError:
        """Build the error for one or more missing columns."""
        names = sorted(columns)
        return cls(
            f"Required column(s) {names} missing from {source}",
            path=source,
            column=names[0] if names else None,
        )
