"""Module descriptor (``.iml``) parsing.

Reads an existing descriptor into a ModuleDescriptor, keeping the parsed
XML tree so that components and elements the generator does not manage
survive the merge.
"""

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from .errors import DescriptorParseError
from .iml_models import (
    ContentRoot, LibraryEntry, ModuleDependency, ModuleDescriptor, ModuleLibrary,
    SourceFolder, UnresolvedLibrary, SCOPE_PRIORITY,
)

ROOT_MANAGER = "NewModuleRootManager"
UNRESOLVED_PREFIX = "unresolved dependency - "

# Persisted state used when no descriptor exists on disk yet.
DEFAULT_MODULE_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<module relativePaths="true" type="JAVA_MODULE" version="4">
  <component name="NewModuleRootManager" inherit-compiler-output="true">
    <exclude-output/>
    <orderEntry type="inheritedJdk"/>
    <content url="file://$MODULE_DIR$/"/>
    <orderEntry type="sourceFolder" forTests="false"/>
  </component>
  <component name="ModuleRootManager"/>
</module>
"""


def find_component(root, name: str = ROOT_MANAGER):
    """Find a ``<component name=...>`` child of the module element, or ``None``."""
    for component in root.findall("component"):
        if component.get("name") == name:
            return component
    return None


def _urls(el, tag: str) -> list:
    """Collect ``<root url=...>`` values below a CLASSES/JAVADOC/SOURCES child."""
    child = el.find(tag)
    if child is None:
        return []
    return [r.get("url") for r in child.findall("root") if r.get("url")]


def _parse_unresolved(name: str, scope: str) -> UnresolvedLibrary:
    parts = name[len(UNRESOLVED_PREFIX):].split(" ")
    group = parts[0] if parts else ""
    artifact = parts[1] if len(parts) > 1 else ""
    version = parts[2] if len(parts) > 2 else None
    return UnresolvedLibrary(scope=scope, group=group, name=artifact, version=version)


def _parse_order_entry(entry_el):
    """Parse a library or module ``<orderEntry>``.

    Returns:
        A ModuleLibrary, UnresolvedLibrary or ModuleDependency, or ``None``
        for SDK and source-folder markers.
    """
    scope = entry_el.get("scope") or "COMPILE"
    entry_type = entry_el.get("type")
    if entry_type == "module":
        return ModuleDependency(scope=scope, module_name=entry_el.get("module-name", ""))
    if entry_type != "module-library":
        return None
    library_el = entry_el.find("library")
    if library_el is None:
        return ModuleLibrary(scope=scope)
    name = library_el.get("name") or ""
    if name.startswith(UNRESOLVED_PREFIX):
        return _parse_unresolved(name, scope)
    return ModuleLibrary(
        scope=scope,
        classes=_urls(library_el, "CLASSES"),
        javadoc=_urls(library_el, "JAVADOC"),
        sources=_urls(library_el, "SOURCES"),
    )


def _parse_content(content_el) -> ContentRoot:
    root = ContentRoot(url=content_el.get("url", ""))
    for folder in content_el.findall("sourceFolder"):
        source = SourceFolder(url=folder.get("url", ""), is_test=folder.get("isTestSource") == "true")
        if source not in root.source_folders:
            root.source_folders.append(source)
    for folder in content_el.findall("excludeFolder"):
        url = folder.get("url", "")
        if url not in root.exclude_folders:
            root.exclude_folders.append(url)
    return root


def descriptor_from_xml(root, name: str) -> ModuleDescriptor:
    """Build a ModuleDescriptor from a parsed ``<module>`` element.

    Args:
        root: The ``<module>`` root element.
        name: Module name (taken from the file name by callers).

    Returns:
        A ModuleDescriptor whose ``xml`` attribute is ``root``.
    """
    descriptor = ModuleDescriptor(name=name, xml=root)
    component = find_component(root)
    if component is None:
        return descriptor

    descriptor.inherit_output_dirs = component.get("inherit-compiler-output", "true") != "false"
    descriptor.language_level = component.get("LANGUAGE_LEVEL")
    output_el = component.find("output")
    if output_el is not None:
        descriptor.output_url = output_el.get("url")
    test_output_el = component.find("output-test")
    if test_output_el is not None:
        descriptor.test_output_url = test_output_el.get("url")

    content_el = component.find("content")
    if content_el is not None:
        descriptor.content_root = _parse_content(content_el)

    scopes = {}
    for entry_el in component.findall("orderEntry"):
        if entry_el.get("type") == "jdk":
            descriptor.jdk_name = entry_el.get("jdkName")
            continue
        library = _parse_order_entry(entry_el)
        if library is None:
            continue
        scopes.setdefault(library.scope, LibraryEntry(scope=library.scope)).entries.append(library)
    order = list(SCOPE_PRIORITY) + [s for s in scopes if s not in SCOPE_PRIORITY]
    descriptor.scopes = {s: scopes[s] for s in order if s in scopes}
    return descriptor


def parse_iml_string(text: str, name: str, path: Optional[Path] = None) -> ModuleDescriptor:
    """Parse descriptor XML text, preserving comments.

    Raises:
        DescriptorParseError: If the text is not well-formed or the root
            element is not ``<module>``.
    """
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        parser.feed(text.encode("utf-8"))
        root = parser.close()
    except ET.ParseError as e:
        raise DescriptorParseError(path or Path(f"{name}.iml"), e) from e
    if root.tag != "module":
        raise DescriptorParseError(
            path or Path(f"{name}.iml"),
            ValueError(f"expected <module> root element, found <{root.tag}>"),
        )
    return descriptor_from_xml(root, name)


def parse_iml(iml_path: Path) -> ModuleDescriptor:
    """Parse a ``.iml`` file. The module name is the file's stem."""
    try:
        text = iml_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise DescriptorParseError(iml_path, e) from e
    return parse_iml_string(text, iml_path.stem, iml_path)


def empty_descriptor(name: str) -> ModuleDescriptor:
    """Persisted state for a module that has no descriptor on disk yet."""
    return parse_iml_string(DEFAULT_MODULE_XML, name)


def load_existing(iml_path: Path, name: Optional[str] = None) -> ModuleDescriptor:
    """Load the descriptor at ``iml_path``, or the empty template if it doesn't exist."""
    if iml_path.exists():
        return parse_iml(iml_path)
    return empty_descriptor(name or iml_path.stem)
