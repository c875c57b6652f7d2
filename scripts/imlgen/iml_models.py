"""IDEA module data model classes.

Pure data structures for the build-side input (configurations, resolved
artifacts, module settings) and the descriptor-side output (content roots,
library entries, module descriptors). No behavior beyond identity helpers.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional


# Built-in scopes in fixed priority order (earlier claims an artifact first).
SCOPE_PRIORITY = ("PROVIDED", "COMPILE", "RUNTIME", "TEST")

# Pseudo-scope that fans out additively into RUNTIME and TEST.
RUNTIME_TEST = "RUNTIME_TEST"
FAN_OUT_TARGETS = ("RUNTIME", "TEST")


def format_coordinate(group: str, name: str, version: Optional[str] = None) -> str:
    """``group:name:version``, or ``group:name`` when there is no version."""
    return ":".join([group, name] + ([version] if version else []))


@dataclass
class ResolvedArtifact:
    """A file produced by the dependency-resolution collaborator.

    Attributes:
        file: Resolved artifact file (jar or directory).
        group: Coordinate group, or ``None`` for local file dependencies.
        name: Coordinate name.
        version: Coordinate version.
        classifier: Optional classifier (e.g. ``jdk15``).
        sources: Resolved ``-sources`` attachment, if any.
        javadoc: Resolved ``-javadoc`` attachment, if any.
        declared_by: Notation of the dependency that declared this file.
            Used to restore declaration order.
    """
    file: Path
    group: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    classifier: Optional[str] = None
    sources: Optional[Path] = None
    javadoc: Optional[Path] = None
    declared_by: Optional[str] = None

    @property
    def identity(self) -> str:
        return str(self.file)


@dataclass
class UnresolvedDependency:
    """A declared dependency the resolution collaborator could not resolve.

    Attributes:
        group: Coordinate group.
        name: Coordinate name.
        version: Coordinate version, or ``None`` when the notation has none.
        reason: Why resolution failed.
        declared_by: Notation of the declaring dependency. Defaults to the coordinate.
    """
    group: str
    name: str
    version: Optional[str] = None
    reason: str = ""
    declared_by: Optional[str] = None

    def __post_init__(self):
        if self.declared_by is None:
            self.declared_by = self.coordinate

    @property
    def coordinate(self) -> str:
        return format_coordinate(self.group, self.name, self.version)

    @property
    def identity(self) -> str:
        return self.coordinate


@dataclass
class ProjectDependency:
    """A reference to another project of the same build (``:someApiProject``)."""
    path: str

    @property
    def module_name(self) -> str:
        return self.path.rstrip(":").split(":")[-1]

    @property
    def identity(self) -> str:
        return f"project {self.path}"

    @property
    def declared_by(self) -> str:
        return self.path


@dataclass
class Configuration:
    """A named bucket of declared dependencies and its resolution result.

    Attributes:
        name: Configuration name (e.g. ``compile``, ``testRuntime``).
        extends_from: Names of configurations this one inherits from.
        declared: Dependency notations in declaration order.
        artifacts: Resolved artifacts, in the order the engine returned them.
        unresolved: Dependencies that failed to resolve.
        projects: Inter-project references.
    """
    name: str
    extends_from: list = field(default_factory=list)
    declared: list = field(default_factory=list)
    artifacts: list = field(default_factory=list)
    unresolved: list = field(default_factory=list)
    projects: list = field(default_factory=list)

    def entries(self) -> list:
        return list(self.artifacts) + list(self.unresolved) + list(self.projects)


@dataclass
class ScopeRules:
    """``plus``/``minus`` configuration references for one output scope."""
    name: str
    plus: list = field(default_factory=list)
    minus: list = field(default_factory=list)


@dataclass
class SourceSet:
    """Source layout of one source set as reported by the build.

    Attributes:
        name: ``main``, ``test`` or a custom source set name.
        src_dirs: Declared source directories (java + resources).
        output_dirs: Extra output directories registered on the source set,
            as ``(dir, built_by)`` tuples where ``built_by`` names the task
            generating the directory (or ``None``).
    """
    name: str
    src_dirs: list = field(default_factory=list)
    output_dirs: list = field(default_factory=list)

    @property
    def is_test(self) -> bool:
        return self.name == "test"


@dataclass
class ModuleSettings:
    """Everything known about one module before generation.

    Combines the source-layout collaborator's output with the user's
    ``idea.module`` customizations.
    """
    name: str
    project_dir: Path
    java_plugin: bool = True
    build_dir: Optional[Path] = None
    metadata_dir: Optional[Path] = None
    source_compatibility: Optional[str] = None
    source_sets: list = field(default_factory=list)
    configurations: dict = field(default_factory=dict)
    content_root: Optional[Path] = None
    source_dirs: list = field(default_factory=list)
    test_source_dirs: list = field(default_factory=list)
    exclude_dirs: list = field(default_factory=list)
    inherit_output_dirs: Optional[bool] = None
    output_dir: Optional[Path] = None
    test_output_dir: Optional[Path] = None
    jdk_name: Optional[str] = None
    scopes: dict = field(default_factory=dict)
    download_sources: bool = True
    download_javadoc: bool = False
    generate_to: Optional[Path] = None
    path_variables: dict = field(default_factory=dict)

    @property
    def iml_path(self) -> Path:
        return (self.generate_to or self.project_dir) / f"{self.name}.iml"


@dataclass
class ProjectSettings:
    """Root-project ``idea.project`` block. Its presence is the shared baseline."""
    language_level: Optional[str] = None


@dataclass
class BuildModel:
    """A whole multi-module build as read from the build file."""
    root_dir: Path
    modules: list = field(default_factory=list)
    project: Optional[ProjectSettings] = None
    path_variables: dict = field(default_factory=dict)


# ── Descriptor side ──────────────────────────────────────────────────────────


@dataclass
class SourceFolder:
    url: str
    is_test: bool = False


@dataclass
class ContentRoot:
    """A ``<content>`` element: root URL, source folders, exclude folders.

    ``source_folders`` and ``exclude_folders`` are ordered; callers keep
    them free of duplicates.
    """
    url: str
    source_folders: list = field(default_factory=list)
    exclude_folders: list = field(default_factory=list)


@dataclass
class ModuleLibrary:
    """A module-level library order entry."""
    scope: str
    classes: list = field(default_factory=list)
    javadoc: list = field(default_factory=list)
    sources: list = field(default_factory=list)


@dataclass
class UnresolvedLibrary:
    """Placeholder library for a dependency that failed to resolve."""
    scope: str
    group: str
    name: str
    version: Optional[str] = None

    @property
    def coordinate(self) -> str:
        return format_coordinate(self.group, self.name, self.version)

    @property
    def display_name(self) -> str:
        parts = [self.group, self.name] + ([self.version] if self.version else [])
        return "unresolved dependency - " + " ".join(parts)


@dataclass
class ModuleDependency:
    """An order entry pointing at another module."""
    scope: str
    module_name: str


@dataclass
class LibraryEntry:
    """Ordered, deduplicated library descriptors for one scope."""
    scope: str
    entries: list = field(default_factory=list)


@dataclass
class ModuleDescriptor:
    """Generated or persisted state of one ``.iml`` file.

    The generated model and the persisted model share this shape. A
    persisted descriptor additionally carries the parsed XML tree in
    ``xml`` so that elements the tool does not model survive the merge.

    Attributes:
        name: Module name.
        content_root: The single managed content root, or ``None``.
        output_url: ``<output>`` URL when output dirs are not inherited.
        test_output_url: ``<output-test>`` URL when output dirs are not inherited.
        inherit_output_dirs: Whether the module inherits the project's compiler output.
        jdk_name: Module SDK name, or ``None`` to inherit the project SDK.
        language_level: ``JDK_1_x`` level, or ``None`` to inherit.
        scopes: Scope name → LibraryEntry, in scope priority order.
        xml: Root element of the parsed file (persisted descriptors only).
    """
    name: str
    content_root: Optional[ContentRoot] = None
    output_url: Optional[str] = None
    test_output_url: Optional[str] = None
    inherit_output_dirs: bool = True
    jdk_name: Optional[str] = None
    language_level: Optional[str] = None
    scopes: dict = field(default_factory=dict)
    xml: Optional[ET.Element] = None

    @property
    def exclude_folders(self) -> list:
        """Exclude folder URLs of the content root (mutable in place)."""
        if self.content_root is None:
            self.content_root = ContentRoot(url="file://$MODULE_DIR$/")
        return self.content_root.exclude_folders

    @property
    def libraries(self) -> list:
        return [entry for scope in self.scopes.values() for entry in scope.entries]

    @property
    def order_entries(self) -> list:
        """All order entries in write order: SDK, source folder marker, libraries."""
        jdk = ("jdk", self.jdk_name) if self.jdk_name else ("inheritedJdk", None)
        return [jdk, ("sourceFolder", None)] + self.libraries


@dataclass
class MergeHooks:
    """Callbacks invoked once each, in registration order, during one run.

    Attributes:
        before_merged: Called with the persisted descriptor before merging.
        when_merged: Called with the merged descriptor.
        with_raw_extension: Called with the serialized root element.
    """
    before_merged: List[Callable[[ModuleDescriptor], None]] = field(default_factory=list)
    when_merged: List[Callable[[ModuleDescriptor], None]] = field(default_factory=list)
    with_raw_extension: List[Callable[[ET.Element], None]] = field(default_factory=list)

    def on_before_merged(self, callback: Callable[[ModuleDescriptor], None]):
        self.before_merged.append(callback)
        return callback

    def on_when_merged(self, callback: Callable[[ModuleDescriptor], None]):
        self.when_merged.append(callback)
        return callback

    def on_raw_extension(self, callback: Callable[[ET.Element], None]):
        self.with_raw_extension.append(callback)
        return callback


@dataclass
class GenerationResult:
    """Outcome of generating one module descriptor."""
    path: Path
    descriptor: ModuleDescriptor
    content: str
    diagnostics: list = field(default_factory=list)
    executed_tasks: list = field(default_factory=list)
