"""Descriptor generation and merge pipeline.

One run per module goes through these phases, in order:

    GENERATE → LOAD_EXISTING → BEFORE_MERGED → MERGE → WHEN_MERGED
    → RAW_EXTENSION → SERIALIZE

The generated model is built fresh from the build's dependency and source
layout information, merged into whatever descriptor already exists on disk,
and written back atomically. Hooks registered on MergeHooks run once each,
in registration order, at their phase; exceptions they raise propagate and
abort the write.
"""

import sys
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from .errors import DescriptorParseError
from .iml_models import (
    BuildModel, ContentRoot, GenerationResult, MergeHooks, ModuleDescriptor, ModuleSettings,
)
from .iml_parser import load_existing
from .iml_writer import apply_to_xml, generate_modules_xml, serialize, write_atomic
from .language_level import module_language_level, project_language_level
from .library_builder import add_libraries, build_library_entries, unresolved_diagnostics
from .module_layout import ModuleLayout, compute_layout
from .path_variables import PathVariables
from .scope_classifier import classify, default_scopes, flatten_configurations, scope_order


def module_paths(settings: ModuleSettings, shared_variables: Optional[dict] = None) -> PathVariables:
    """Path variables for one module: shared, then module-specific, then ``$MODULE_DIR$``."""
    variables = dict(shared_variables or {})
    variables.update(settings.path_variables)
    return PathVariables(variables, module_dir=settings.iml_path.parent)


def build_descriptor(
    settings: ModuleSettings,
    paths: PathVariables,
    project_level: Optional[str] = None,
    has_project_baseline: bool = False,
    layout: Optional[ModuleLayout] = None,
) -> tuple:
    """Build the generated model for one module.

    Modules without the java plugin get a layout but no scopes, libraries
    or language level. ``layout`` is computed when not given.

    Returns:
        ``(descriptor, diagnostics)`` where ``diagnostics`` lists one
        ``Could not resolve`` line per unresolved coordinate.
    """
    layout = layout or compute_layout(settings, paths)
    descriptor = ModuleDescriptor(
        name=settings.name,
        content_root=layout.content_root,
        output_url=layout.output_url,
        test_output_url=layout.test_output_url,
        inherit_output_dirs=layout.inherit_output_dirs,
        jdk_name=settings.jdk_name,
    )
    if not settings.java_plugin:
        return descriptor, []

    scopes = default_scopes(settings.scopes)
    configurations = flatten_configurations(settings.configurations)
    classified = classify(scopes, configurations)
    libraries = build_library_entries(
        classified, configurations, paths,
        download_sources=settings.download_sources,
        download_javadoc=settings.download_javadoc,
    )
    add_libraries(libraries, layout.generated_libraries)
    order = scope_order(scopes)
    descriptor.scopes = {name: libraries[name] for name in order if name in libraries}
    descriptor.language_level = module_language_level(
        settings.source_compatibility, project_level, has_project_baseline,
    )
    return descriptor, unresolved_diagnostics(descriptor.scopes, settings.configurations)


def merge(persisted: ModuleDescriptor, generated: ModuleDescriptor) -> ModuleDescriptor:
    """Merge the generated model into the persisted one, in place.

    Content root URL, source folders, output dirs, SDK, language level and
    library scopes are replaced by the generated values. Exclude folders
    are the union of both sides, persisted first. The persisted XML tree is
    kept so unmanaged content survives.

    Returns:
        The persisted descriptor, now holding the merged state.
    """
    kept_excludes = list(persisted.content_root.exclude_folders) if persisted.content_root else []
    generated_root = generated.content_root or ContentRoot(url="file://$MODULE_DIR$")
    excludes = kept_excludes + [url for url in generated_root.exclude_folders if url not in kept_excludes]

    persisted.name = generated.name
    persisted.content_root = ContentRoot(
        url=generated_root.url,
        source_folders=list(generated_root.source_folders),
        exclude_folders=excludes,
    )
    persisted.inherit_output_dirs = generated.inherit_output_dirs
    persisted.output_url = generated.output_url
    persisted.test_output_url = generated.test_output_url
    persisted.jdk_name = generated.jdk_name
    persisted.language_level = generated.language_level
    persisted.scopes = dict(generated.scopes)
    return persisted


def generate_module(
    settings: ModuleSettings,
    hooks: Optional[MergeHooks] = None,
    project_level: Optional[str] = None,
    has_project_baseline: bool = False,
    shared_variables: Optional[dict] = None,
    task_runner: Optional[Callable[[str], None]] = None,
    dry_run: bool = False,
) -> GenerationResult:
    """Generate, merge and write one module descriptor.

    Args:
        settings: The module's settings and build information.
        hooks: Merge hooks to invoke; ``None`` means no hooks.
        project_level: Effective project-wide language level.
        has_project_baseline: Whether the root project configures the IDE plugin.
        shared_variables: Build-wide path variables.
        task_runner: Called with the name of every task that generates a
            source set output dir, before generation.
        dry_run: If ``True``, the result is computed but nothing is written.

    Returns:
        A GenerationResult holding the merged descriptor and its serialized content.

    Raises:
        DescriptorParseError: If the existing descriptor is malformed.
    """
    hooks = hooks or MergeHooks()
    iml_path = settings.iml_path
    paths = module_paths(settings, shared_variables)

    layout = compute_layout(settings, paths)
    executed = []
    if task_runner is not None:
        for task in layout.built_by:
            task_runner(task)
            executed.append(task)

    # ── GENERATE ──
    generated, diagnostics = build_descriptor(
        settings, paths, project_level, has_project_baseline, layout=layout,
    )
    for line in diagnostics:
        print(line, file=sys.stderr)

    # ── LOAD_EXISTING ──
    persisted = load_existing(iml_path, settings.name)

    # ── BEFORE_MERGED ──
    for callback in hooks.before_merged:
        callback(persisted)

    # ── MERGE ──
    merged = merge(persisted, generated)

    # ── WHEN_MERGED ──
    for callback in hooks.when_merged:
        callback(merged)

    # ── RAW_EXTENSION ──
    root = apply_to_xml(merged)
    for callback in hooks.with_raw_extension:
        callback(root)

    # ── SERIALIZE ──
    content = serialize(root)
    if not dry_run:
        write_atomic(iml_path, content)

    return GenerationResult(
        path=iml_path,
        descriptor=merged,
        content=content,
        diagnostics=diagnostics,
        executed_tasks=executed,
    )


def effective_project_level(build: BuildModel) -> Optional[str]:
    """Project-wide language level, or ``None`` when the root doesn't configure the plugin."""
    if build.project is None:
        return None
    levels = [m.source_compatibility for m in build.modules if m.java_plugin]
    return project_language_level(levels, build.project.language_level)


def modules_xml_path(build: BuildModel):
    return build.root_dir / ".idea" / "modules.xml"


def workspace_modules_xml(build: BuildModel, results: list) -> str:
    """Serialize the workspace ``modules.xml`` for the given generation results."""
    project_paths = PathVariables({"PROJECT_DIR": build.root_dir})
    entries = []
    for result in results:
        filepath = project_paths.render(result.path)
        entries.append(("file://" + filepath, filepath))
    target = modules_xml_path(build)
    existing = target.read_text(encoding="utf-8") if target.exists() else None
    try:
        return generate_modules_xml(entries, existing)
    except ET.ParseError as e:
        raise DescriptorParseError(target, e) from e


def generate_project(
    build: BuildModel,
    hooks: Optional[dict] = None,
    only: Optional[list] = None,
    task_runner: Optional[Callable[[str], None]] = None,
    dry_run: bool = False,
    workers: int = 1,
) -> list:
    """Generate every module of a build, then flush the workspace ``modules.xml``.

    Each module owns its descriptor file, so modules may be generated on
    a thread pool. The aggregate file is written once, after all modules.

    Args:
        build: The parsed build model.
        hooks: Module name → MergeHooks.
        only: Restrict generation to these module names.
        task_runner: See ``generate_module``.
        dry_run: If ``True``, nothing is written.
        workers: Number of modules generated concurrently.

    Returns:
        GenerationResult per module, in build order.
    """
    hooks = hooks or {}
    project_level = effective_project_level(build)
    has_baseline = build.project is not None
    modules = [m for m in build.modules if not only or m.name in only]

    def _run(settings):
        return generate_module(
            settings,
            hooks=hooks.get(settings.name),
            project_level=project_level,
            has_project_baseline=has_baseline,
            shared_variables=build.path_variables,
            task_runner=task_runner,
            dry_run=dry_run,
        )

    if workers and workers > 1 and len(modules) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_run, modules))
    else:
        results = [_run(m) for m in modules]

    if not dry_run and not only:
        write_atomic(modules_xml_path(build), workspace_modules_xml(build, results))
    return results
