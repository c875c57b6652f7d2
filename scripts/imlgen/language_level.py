"""Java language level handling.

Converts source compatibility values into IDEA language level names and
decides whether a module needs its own ``LANGUAGE_LEVEL`` attribute or
inherits the project-wide one.
"""

import re
from typing import Optional


def java_version(value) -> Optional[int]:
    """Extract the major Java version from a compatibility value.

    Accepts ``1.6``, ``"1.6"``, ``"6"``, ``11``, ``"JDK_1_6"`` and ``"JDK_11"``.
    Normalizes legacy ``1.x`` format to just ``x`` (e.g. ``1.8`` → ``8``).

    Returns:
        The major version, or ``None`` if ``value`` is empty or unrecognized.
    """
    if value is None:
        return None
    text = str(value).strip().upper()
    if text.startswith("JDK_"):
        text = text[4:].replace("_", ".")
    elif text.startswith("VERSION_"):
        text = text[8:].replace("_", ".")
    match = re.match(r"^(\d+)(?:\.(\d+))?", text)
    if not match:
        return None
    major = int(match.group(1))
    if major == 1 and match.group(2):
        return int(match.group(2))
    return major


def to_language_level(value) -> Optional[str]:
    """Format a compatibility value as an IDEA language level.

    The name format changed starting with JDK 10: ``JDK_1_9`` but ``JDK_10``.
    """
    version = java_version(value)
    if version is None:
        return None
    if version >= 10:
        return f"JDK_{version}"
    return f"JDK_1_{version}"


def project_language_level(module_levels: list, explicit=None) -> Optional[str]:
    """Compute the effective project-wide language level.

    An explicitly configured level wins. Otherwise the highest source
    compatibility among the build's java modules is used.

    Args:
        module_levels: Source compatibility values of every java module.
        explicit: Explicit ``idea.project.languageLevel``, if configured.

    Returns:
        The project level name, or ``None`` if nothing is known.
    """
    if explicit is not None:
        return to_language_level(explicit)
    versions = [v for v in (java_version(level) for level in module_levels) if v is not None]
    if not versions:
        return None
    return to_language_level(max(versions))


def module_language_level(module_level, project_level, has_project_baseline: bool) -> Optional[str]:
    """Decide the per-module ``LANGUAGE_LEVEL`` attribute.

    Args:
        module_level: The module's own source compatibility.
        project_level: The effective project-wide level.
        has_project_baseline: Whether an enclosing root project configures
            the IDE plugin (and therefore provides a shared baseline).

    Returns:
        ``None`` when the module inherits the project level, otherwise the
        explicit level to write.
    """
    own = to_language_level(module_level)
    if own is None:
        return None
    if has_project_baseline and own == to_language_level(project_level):
        return None
    return own
