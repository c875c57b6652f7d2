"""Build file loading.

Reads the JSON build description (modules, source layout, configurations
with their resolution results, and ``idea`` customizations) into a
BuildModel. Relative paths are resolved against the build file's directory
(or the module's project dir for module-level paths).
"""

import json
from pathlib import Path
from typing import Optional

from .errors import BuildFileError, MissingInputError
from .iml_models import (
    BuildModel, Configuration, ModuleSettings, ProjectDependency, ProjectSettings,
    ResolvedArtifact, ScopeRules, SourceSet, UnresolvedDependency,
)
from .path_variables import normalize


def parse_notation(notation: str) -> tuple:
    """Split a ``group:name:version[:classifier]`` notation.

    Missing parts come back as ``None``; ``:hibernate-core:`` yields
    ``(None, "hibernate-core", None, None)``.
    """
    parts = (notation.split(":") + [None] * 4)[:4]
    return tuple(p or None for p in parts)


def _path(base: Path, value) -> Optional[Path]:
    if value is None:
        return None
    path = Path(value)
    return normalize(path if path.is_absolute() else base / path)


def _paths(base: Path, values) -> list:
    return [_path(base, v) for v in values or []]


def _files_notation(files: list) -> str:
    return "files(" + ", ".join(files) + ")"


def _parse_dependency(dep: dict, base: Path, conf: Configuration) -> None:
    """Add one declared dependency (and its resolution result) to ``conf``."""
    if "project" in dep:
        conf.declared.append(dep["project"])
        conf.projects.append(ProjectDependency(path=dep["project"]))
        return

    files = dep.get("files") or []
    notation = dep.get("notation") or _files_notation(files)
    conf.declared.append(notation)
    group, name, version, classifier = parse_notation(dep["notation"]) if dep.get("notation") else (None,) * 4

    if "unresolved" in dep:
        conf.unresolved.append(UnresolvedDependency(
            group=group or "", name=name or "", version=version,
            reason=dep.get("unresolved") or "", declared_by=notation,
        ))
        return

    for file in files:
        conf.artifacts.append(ResolvedArtifact(
            file=_path(base, file),
            group=group,
            name=name,
            version=version,
            classifier=dep.get("classifier", classifier),
            sources=_path(base, dep.get("sources")),
            javadoc=_path(base, dep.get("javadoc")),
            declared_by=notation,
        ))


def _parse_configuration(name: str, data: dict, base: Path) -> Configuration:
    """Parse a ``configurations.<name>`` block.

    ``dependencies`` are in declaration order. ``artifacts`` optionally
    lists further resolved files (e.g. transitive ones) as the resolution
    engine returned them; each may name its ``declaredBy`` notation.
    """
    conf = Configuration(name=name, extends_from=list(data.get("extendsFrom", [])))
    for dep in data.get("dependencies", []):
        _parse_dependency(dep, base, conf)
    for art in data.get("artifacts", []):
        group, art_name, version, classifier = parse_notation(art.get("notation", ""))
        conf.artifacts.append(ResolvedArtifact(
            file=_path(base, art["file"]),
            group=group,
            name=art_name,
            version=version,
            classifier=art.get("classifier", classifier),
            sources=_path(base, art.get("sources")),
            javadoc=_path(base, art.get("javadoc")),
            declared_by=art.get("declaredBy"),
        ))
    return conf


def _parse_source_set(name: str, data: dict, base: Path) -> SourceSet:
    output_dirs = []
    for out in data.get("outputDirs", []):
        if isinstance(out, str):
            output_dirs.append((_path(base, out), None))
        else:
            output_dirs.append((_path(base, out["dir"]), out.get("builtBy")))
    return SourceSet(name=name, src_dirs=_paths(base, data.get("srcDirs")), output_dirs=output_dirs)


def _parse_module(data: dict, root_dir: Path) -> ModuleSettings:
    """Parse one ``modules[]`` entry into ModuleSettings.

    Raises:
        MissingInputError: If the module's project directory doesn't exist.
    """
    project_dir = _path(root_dir, data.get("projectDir", "."))
    if not project_dir.is_dir():
        raise MissingInputError(project_dir, "project directory")
    idea = data.get("idea", {})
    name = idea.get("name") or data.get("name") or project_dir.name

    scopes = {}
    for scope_name, rules in idea.get("scopes", {}).items():
        scopes[scope_name] = ScopeRules(scope_name, list(rules.get("plus", [])), list(rules.get("minus", [])))

    return ModuleSettings(
        name=name,
        project_dir=project_dir,
        java_plugin=data.get("javaPlugin", True),
        build_dir=_path(project_dir, data.get("buildDir")),
        metadata_dir=_path(project_dir, data.get("metadataDir")),
        source_compatibility=(
            str(data["sourceCompatibility"]) if data.get("sourceCompatibility") is not None else None
        ),
        source_sets=[_parse_source_set(n, s, project_dir) for n, s in data.get("sourceSets", {}).items()],
        configurations={
            n: _parse_configuration(n, c, project_dir) for n, c in data.get("configurations", {}).items()
        },
        content_root=_path(project_dir, idea.get("contentRoot")),
        source_dirs=_paths(project_dir, idea.get("sourceDirs")),
        test_source_dirs=_paths(project_dir, idea.get("testSourceDirs")),
        exclude_dirs=_paths(project_dir, idea.get("excludeDirs")),
        inherit_output_dirs=idea.get("inheritOutputDirs"),
        output_dir=_path(project_dir, idea.get("outputDir")),
        test_output_dir=_path(project_dir, idea.get("testOutputDir")),
        jdk_name=idea.get("jdkName"),
        scopes=scopes,
        download_sources=idea.get("downloadSources", True),
        download_javadoc=idea.get("downloadJavadoc", False),
        generate_to=_path(project_dir, idea.get("generateTo")),
        path_variables={k: _path(project_dir, v) for k, v in idea.get("pathVariables", {}).items()},
    )


def parse_build(data: dict, root_dir: Path, source: Optional[Path] = None) -> BuildModel:
    """Build a BuildModel from already-decoded build file data.

    Raises:
        BuildFileError: If the data has the wrong shape.
        MissingInputError: If a module's project directory doesn't exist.
    """
    source = source or root_dir / "build.json"
    if not isinstance(data, dict) or not isinstance(data.get("modules", []), list):
        raise BuildFileError(source, "expected an object with a 'modules' list")
    root_dir = normalize(root_dir)
    project = None
    try:
        if data.get("project") is not None:
            level = data["project"].get("languageLevel")
            project = ProjectSettings(language_level=str(level) if level is not None else None)
    except AttributeError as e:
        raise BuildFileError(source, f"malformed project entry ({e})") from e
    try:
        modules = [_parse_module(m, root_dir) for m in data.get("modules", [])]
    except (KeyError, TypeError, AttributeError) as e:
        raise BuildFileError(source, f"malformed module entry ({e})") from e
    return BuildModel(
        root_dir=root_dir,
        modules=modules,
        project=project,
        path_variables={k: _path(root_dir, v) for k, v in data.get("pathVariables", {}).items()},
    )


def load_build(build_path: Path) -> BuildModel:
    """Load a JSON build file.

    Raises:
        MissingInputError: If ``build_path`` doesn't exist.
        BuildFileError: If it isn't valid JSON or has the wrong shape.
    """
    if not build_path.exists():
        raise MissingInputError(build_path, "build file")
    try:
        data = json.loads(build_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise BuildFileError(build_path, str(e)) from e
    return parse_build(data, build_path.parent, build_path)
