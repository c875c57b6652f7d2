"""Library entry construction.

Turns classified identity sets into ordered, deduplicated library entries
per scope, and collects the ``Could not resolve`` diagnostics.
"""

from typing import Optional

from .iml_models import (
    LibraryEntry, ModuleDependency, ModuleLibrary, ProjectDependency,
    ResolvedArtifact, UnresolvedDependency, UnresolvedLibrary,
)
from .path_variables import PathVariables


def declaration_order(configuration) -> list:
    """Return a configuration's entries in first-declared order.

    Entries are ranked by the position of their declaring notation in
    ``configuration.declared``; files of a multi-file declaration keep the
    order they were listed in. Entries whose notation was never declared
    (transitive artifacts) follow in the order the resolver supplied them.
    """
    rank = {}
    for index, notation in enumerate(configuration.declared):
        rank.setdefault(notation, index)
    undeclared = len(rank)
    entries = configuration.entries()
    # sorted() is stable, so ties keep supply order.
    return sorted(entries, key=lambda entry: rank.get(entry.declared_by, undeclared))


def _to_library(entry, scope: str, paths: PathVariables,
                download_sources: bool, download_javadoc: bool):
    if isinstance(entry, ResolvedArtifact):
        return ModuleLibrary(
            scope=scope,
            classes=[paths.library_url(entry.file)],
            javadoc=[paths.library_url(entry.javadoc)] if download_javadoc and entry.javadoc else [],
            sources=[paths.library_url(entry.sources)] if download_sources and entry.sources else [],
        )
    if isinstance(entry, UnresolvedDependency):
        return UnresolvedLibrary(scope=scope, group=entry.group, name=entry.name, version=entry.version)
    if isinstance(entry, ProjectDependency):
        return ModuleDependency(scope=scope, module_name=entry.module_name)
    raise TypeError(f"Unsupported dependency entry: {entry!r}")


def build_library_entries(
    classified: dict,
    configurations: dict,
    paths: PathVariables,
    download_sources: bool = True,
    download_javadoc: bool = False,
) -> dict:
    """Build one LibraryEntry per scope.

    Walks each scope's source configurations in order and keeps the
    entries whose identity the classifier assigned to that scope. The
    first occurrence of an identity fixes its position; later duplicates
    are dropped.

    Args:
        classified: Scope name → ClassifiedScope, in priority order.
        configurations: Name → flattened Configuration.
        paths: Path variables used to render library URLs.
        download_sources: Whether to attach ``-sources`` files.
        download_javadoc: Whether to attach ``-javadoc`` files.

    Returns:
        Ordered dict of scope name → LibraryEntry (empty scopes omitted).
    """
    result = {}
    for scope_name, scope in classified.items():
        seen = set()
        entries = []
        for conf_name in scope.sources:
            conf = configurations.get(conf_name)
            if conf is None:
                continue
            for entry in declaration_order(conf):
                identity = entry.identity
                if identity not in scope.identities or identity in seen:
                    continue
                seen.add(identity)
                entries.append(_to_library(entry, scope_name, paths, download_sources, download_javadoc))
        if entries:
            result[scope_name] = LibraryEntry(scope=scope_name, entries=entries)
    return result


def unresolved_diagnostics(scopes: dict, configurations: Optional[dict] = None) -> list:
    """One ``Could not resolve: g:n:v`` line per unresolved coordinate in ``scopes``.

    Lines follow the order the configurations were declared in, each
    configuration contributing its own unresolved dependencies in supplied
    order. Coordinates no configuration lists follow in scope order.
    Dependencies filtered out of every scope are not reported.
    """
    in_scopes = [library.coordinate for library in _unresolved_libraries(scopes)]
    wanted = set(in_scopes)
    ordered = [dep.coordinate for conf in (configurations or {}).values() for dep in conf.unresolved]

    lines = []
    seen = set()
    for coordinate in ordered + in_scopes:
        if coordinate in wanted and coordinate not in seen:
            seen.add(coordinate)
            lines.append(f"Could not resolve: {coordinate}")
    return lines


def _unresolved_libraries(scopes: dict) -> list:
    return [
        library
        for entry in scopes.values()
        for library in entry.entries
        if isinstance(library, UnresolvedLibrary)
    ]


def add_libraries(scopes: dict, libraries: list) -> None:
    """Append extra libraries (e.g. generated output dirs) to their scopes, skipping duplicates."""
    for library in libraries:
        entry = scopes.setdefault(library.scope, LibraryEntry(scope=library.scope))
        if library not in entry.entries:
            entry.entries.append(library)
