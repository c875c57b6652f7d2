"""Exceptions raised by the generator.

Unresolved dependencies are not errors; they are reported as diagnostics.
"""

from pathlib import Path


class ImlGenError(Exception):
    """Base class for fatal generation errors."""


class MissingInputError(ImlGenError):
    """A configured input file does not exist."""

    def __init__(self, path: Path, what: str = "input file"):
        self.path = path
        super().__init__(f"No {what} found at {path}")


class BuildFileError(ImlGenError):
    """The build file is not valid JSON or has the wrong shape."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Invalid build file {path}: {reason}")


class DescriptorParseError(ImlGenError):
    """An existing module descriptor on disk could not be parsed."""

    def __init__(self, path: Path, error: Exception):
        self.path = path
        self.error = error
        super().__init__(f"Could not parse module descriptor {path}: {error}")
