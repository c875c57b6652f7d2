"""Module layout: content root, source/exclude folders and output dirs."""

from dataclasses import dataclass, field
from typing import Optional

from .iml_models import ContentRoot, ModuleLibrary, ModuleSettings, SourceFolder
from .path_variables import PathVariables, normalize

DEFAULT_METADATA_DIR = ".gradle"
DEFAULT_BUILD_DIR = "build"


@dataclass
class ModuleLayout:
    """Computed layout of one module, with every path already rendered as a URL.

    Attributes:
        content_root: The module's content root.
        inherit_output_dirs: Whether compiler output is inherited.
        output_url: ``<output>`` URL (explicit output dirs only).
        test_output_url: ``<output-test>`` URL (explicit output dirs only).
        generated_libraries: Build-generated output dirs exposed as
            RUNTIME/TEST libraries instead of source folders.
        built_by: Tasks that produce ``generated_libraries``, in order.
    """
    content_root: ContentRoot
    inherit_output_dirs: bool = True
    output_url: Optional[str] = None
    test_output_url: Optional[str] = None
    generated_libraries: list = field(default_factory=list)
    built_by: list = field(default_factory=list)


def _append_unique(items: list, item) -> None:
    if item not in items:
        items.append(item)


def generated_output_dirs(settings: ModuleSettings) -> list:
    """``(dir, source_set, built_by)`` for every extra output dir of main/test."""
    result = []
    for source_set in settings.source_sets:
        if source_set.name not in ("main", "test"):
            continue
        for directory, built_by in source_set.output_dirs:
            result.append((normalize(directory), source_set, built_by))
    return result


def compute_layout(settings: ModuleSettings, paths: PathVariables) -> ModuleLayout:
    """Compute the content root, source folders, excludes and output dirs.

    Source folders are the source sets' declared dirs plus the user's extra
    ``source_dirs``/``test_source_dirs``. Directories the build generates as
    source set output never become source folders; they are returned as
    ``generated_libraries`` scoped RUNTIME (main) or TEST (test).

    Exclude folders are always the build dir and the build tool's metadata
    dir, plus the user's ``exclude_dirs``.

    Args:
        settings: Module settings and source layout.
        paths: Path variables used to render URLs.

    Returns:
        A populated ModuleLayout.
    """
    project_dir = normalize(settings.project_dir)
    root = ContentRoot(url=paths.file_url(settings.content_root or project_dir))

    generated = generated_output_dirs(settings)
    generated_dirs = {directory for directory, _, _ in generated}

    # ── Source folders ──
    candidates = []
    for source_set in settings.source_sets:
        for directory in source_set.src_dirs:
            candidates.append((directory, source_set.is_test))
    candidates += [(d, False) for d in settings.source_dirs]
    candidates += [(d, True) for d in settings.test_source_dirs]
    for directory, is_test in candidates:
        if normalize(directory) in generated_dirs:
            continue
        _append_unique(root.source_folders, SourceFolder(url=paths.file_url(directory), is_test=is_test))

    # ── Exclude folders ──
    build_dir = settings.build_dir or project_dir / DEFAULT_BUILD_DIR
    metadata_dir = settings.metadata_dir or project_dir / DEFAULT_METADATA_DIR
    for directory in [metadata_dir, build_dir] + list(settings.exclude_dirs):
        _append_unique(root.exclude_folders, paths.file_url(directory))

    layout = ModuleLayout(content_root=root)

    # ── Output dirs ──
    if settings.inherit_output_dirs is False:
        layout.inherit_output_dirs = False
        output_dir = settings.output_dir or project_dir / "out" / "production" / settings.name
        test_output_dir = settings.test_output_dir or project_dir / "out" / "test" / settings.name
        layout.output_url = paths.file_url(output_dir)
        layout.test_output_url = paths.file_url(test_output_dir)

    # ── Generated output dirs ──
    for directory, source_set, built_by in generated:
        scope = "TEST" if source_set.is_test else "RUNTIME"
        _append_unique(layout.generated_libraries, ModuleLibrary(scope=scope, classes=[paths.file_url(directory)]))
        if built_by:
            _append_unique(layout.built_by, built_by)
    return layout
