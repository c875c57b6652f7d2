"""Path variable substitution for descriptor URLs.

Absolute paths are rewritten relative to the most specific registered
variable directory (``$MODULE_DIR$/src/main/java``) so that descriptors
stay portable. Pure string transformations, no file I/O.
"""

import os
from pathlib import Path
from typing import Optional

MODULE_DIR = "MODULE_DIR"

# File suffixes rendered as ``jar://...!/`` archive URLs.
ARCHIVE_SUFFIXES = {".jar", ".zip", ".war", ".ear", ".aar"}


def normalize(path) -> Path:
    """Make a path absolute and collapse ``..`` segments without touching the disk."""
    return Path(os.path.normpath(os.path.abspath(str(path))))


def token(name: str) -> str:
    """Format a variable name as a descriptor token (``$NAME$``)."""
    return f"${name}$"


class PathVariables:
    """Maps variable names to directories and renders paths against them.

    Args:
        variables: Variable name → directory. Names may be given with or
            without the surrounding ``$``.
        module_dir: Directory the descriptor is written to; registered as
            ``$MODULE_DIR$`` when given.
    """

    def __init__(self, variables: Optional[dict] = None, module_dir: Optional[Path] = None):
        self._variables = {}
        for name, directory in (variables or {}).items():
            self._variables[name.strip("$")] = normalize(directory)
        if module_dir is not None:
            self._variables[MODULE_DIR] = normalize(module_dir)

    @property
    def variables(self) -> dict:
        return dict(self._variables)

    def render(self, path) -> str:
        """Render ``path`` as ``$VAR$/relative/suffix`` using the longest matching ancestor.

        A path equal to a variable's directory renders as the bare token.
        Paths outside every variable are returned absolute, with ``/``
        separators.
        """
        target = normalize(path)
        best_name = None
        best_dir = None
        for name, directory in self._variables.items():
            if target != directory and directory not in target.parents:
                continue
            # Most specific (deepest) directory wins; ties keep registration order.
            if best_dir is None or len(directory.parts) > len(best_dir.parts):
                best_name, best_dir = name, directory
        if best_dir is None:
            return target.as_posix()
        if target == best_dir:
            return token(best_name)
        return f"{token(best_name)}/{target.relative_to(best_dir).as_posix()}"

    def file_url(self, path) -> str:
        """``file://`` URL for a directory."""
        return "file://" + self.render(path)

    def library_url(self, path) -> str:
        """Classpath URL: ``jar://<path>!/`` for archives, ``file://`` otherwise."""
        if Path(path).suffix.lower() in ARCHIVE_SUFFIXES:
            return "jar://" + self.render(path) + "!/"
        return self.file_url(path)
