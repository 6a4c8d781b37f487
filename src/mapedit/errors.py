"""Recoverable editor conditions.

None of these end an editing session.  Subsystems raise them; the tool
mode controller turns them into notices for the user.
"""

from __future__ import annotations


class EditorError(Exception):
    """Base class for conditions surfaced to the user as a notice."""

    title = "Error"
    variant = "destructive"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoTargetLayer(EditorError):
    """A feature was added with no (drawable) target layer selected."""

    title = "No Layer Selected"


class IncompleteGeometry(EditorError):
    """Commit attempted below the minimum vertex count."""

    title = "Incomplete"

    def __init__(self, kind: str, count: int, required: int) -> None:
        super().__init__(f"Need more points to create a {kind} ({count}/{required}).")
        self.kind = kind
        self.count = count
        self.required = required


class EmptyQueryResult(EditorError):
    """A box query matched no visible feature."""

    title = "No Results"
    variant = "default"


class ExportFailure(EditorError):
    """Capturing or composing the print document failed."""

    title = "Export Failed"


class InvalidAttributes(EditorError):
    """Attribute entry is missing required values.

    Attributes:
        errors: Field name -> message for every failing field.
    """

    title = "Invalid Attributes"

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(errors.values()))
        self.errors = errors


class ExportInProgress(EditorError):
    """A state-changing command arrived while a print export was running."""

    title = "Export Running"
    variant = "default"

    def __init__(self, message: str = "Wait for the PDF export to finish.") -> None:
        super().__init__(message)
