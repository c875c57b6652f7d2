"""Module descriptor serialization.

Writes the managed parts of a ModuleDescriptor back into its XML tree,
renders the tree as text, and replaces files on disk atomically. Also
produces the workspace-level ``modules.xml`` aggregate.
"""

import os
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from .iml_models import ModuleDependency, ModuleDescriptor, ModuleLibrary, UnresolvedLibrary
from .iml_parser import DEFAULT_MODULE_XML, ROOT_MANAGER, find_component

# Children of NewModuleRootManager owned by the generator; everything else is kept.
MANAGED_TAGS = {"output", "output-test", "exclude-output", "content", "orderEntry"}

# Children of <content> owned by the generator.
CONTENT_TAGS = {"sourceFolder", "excludeFolder"}

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

DEFAULT_MODULES_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<project version="4">
  <component name="ProjectModuleManager">
    <modules/>
  </component>
</project>
"""


def _library_element(library) -> ET.Element:
    """Build the ``<orderEntry>`` element for one library entry."""
    entry = ET.Element("orderEntry")
    if isinstance(library, ModuleDependency):
        entry.set("type", "module")
        entry.set("module-name", library.module_name)
    else:
        entry.set("type", "module-library")
    if library.scope and library.scope != "COMPILE":
        entry.set("scope", library.scope)
    if isinstance(library, ModuleDependency):
        return entry

    lib_el = ET.SubElement(entry, "library")
    if isinstance(library, UnresolvedLibrary):
        lib_el.set("name", library.display_name)
        classes, javadoc, sources = [], [], []
    else:
        classes, javadoc, sources = library.classes, library.javadoc, library.sources
    for tag, urls in (("CLASSES", classes), ("JAVADOC", javadoc), ("SOURCES", sources)):
        group = ET.SubElement(lib_el, tag)
        for url in urls:
            ET.SubElement(group, "root", {"url": url})
    return entry


def _set_or_remove(el, name: str, value: Optional[str]) -> None:
    if value is None:
        el.attrib.pop(name, None)
    else:
        el.set(name, value)


def _content_element(existing: Optional[ET.Element], content_root) -> ET.Element:
    """Bring ``existing`` (or a new ``<content>``) in line with ``content_root``.

    Source and exclude folders are rewritten; other children such as
    ``<excludePattern>`` follow them unchanged.
    """
    content = existing if existing is not None else ET.Element("content")
    kept = [child for child in content if child.tag not in CONTENT_TAGS]
    for child in list(content):
        content.remove(child)
    content.text = None
    content.set("url", content_root.url)
    for folder in content_root.source_folders:
        ET.SubElement(content, "sourceFolder", {
            "url": folder.url,
            "isTestSource": "true" if folder.is_test else "false",
        })
    for url in content_root.exclude_folders:
        ET.SubElement(content, "excludeFolder", {"url": url})
    content.extend(kept)
    return content


def apply_to_xml(descriptor: ModuleDescriptor) -> ET.Element:
    """Write the managed state of ``descriptor`` into its XML tree.

    Managed children of the ``NewModuleRootManager`` component are removed
    and re-created in a fixed order; unmanaged attributes, children and
    components are left untouched. The first ``<content>`` element is
    updated in place, so its unmanaged children survive.

    Returns:
        The ``<module>`` root element (also stored on ``descriptor.xml``).
    """
    if descriptor.xml is None:
        descriptor.xml = ET.fromstring(DEFAULT_MODULE_XML.encode("utf-8"))
    root = descriptor.xml
    component = find_component(root)
    if component is None:
        component = ET.Element("component", {"name": ROOT_MANAGER})
        root.insert(0, component)

    existing_content = component.find("content")
    for child in [c for c in component if c.tag in MANAGED_TAGS]:
        component.remove(child)

    component.set("inherit-compiler-output", "true" if descriptor.inherit_output_dirs else "false")
    _set_or_remove(component, "LANGUAGE_LEVEL", descriptor.language_level)

    # ── Output dirs ──
    if not descriptor.inherit_output_dirs:
        if descriptor.output_url:
            ET.SubElement(component, "output", {"url": descriptor.output_url})
        if descriptor.test_output_url:
            ET.SubElement(component, "output-test", {"url": descriptor.test_output_url})
    ET.SubElement(component, "exclude-output")

    # ── Content root ──
    if descriptor.content_root is not None:
        component.append(_content_element(existing_content, descriptor.content_root))

    # ── Order entries ──
    if descriptor.jdk_name:
        ET.SubElement(component, "orderEntry", {
            "type": "jdk", "jdkName": descriptor.jdk_name, "jdkType": "JavaSDK",
        })
    else:
        ET.SubElement(component, "orderEntry", {"type": "inheritedJdk"})
    ET.SubElement(component, "orderEntry", {"type": "sourceFolder", "forTests": "false"})
    for library in descriptor.libraries:
        component.append(_library_element(library))
    return root


def serialize(root: ET.Element) -> str:
    """Render an element tree as an indented UTF-8 XML document."""
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


def write_atomic(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` via a temp file in the same directory.

    A crash mid-write leaves either the old file or the new one, never a
    truncated descriptor. Parent directories are created as needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def generate_modules_xml(module_urls: list, existing: Optional[str] = None) -> str:
    """Build the workspace ``modules.xml`` listing every module descriptor.

    Args:
        module_urls: ``(fileurl, filepath)`` pairs, one per module.
        existing: Current file content, if any. Its other components are kept.

    Returns:
        The serialized aggregate document.
    """
    root = ET.fromstring((existing or DEFAULT_MODULES_XML).encode("utf-8"))
    component = find_component(root, "ProjectModuleManager")
    if component is None:
        component = ET.SubElement(root, "component", {"name": "ProjectModuleManager"})
    modules = component.find("modules")
    if modules is None:
        modules = ET.SubElement(component, "modules")
    for child in list(modules):
        modules.remove(child)
    for fileurl, filepath in module_urls:
        ET.SubElement(modules, "module", {"fileurl": fileurl, "filepath": filepath})
    return serialize(root)
