"""Tests for iml_writer.py — descriptor serialization and atomic writes."""

import xml.etree.ElementTree as ET

import pytest

from imlgen.iml_models import (
    ContentRoot, LibraryEntry, ModuleDependency, ModuleDescriptor, ModuleLibrary,
    SourceFolder, UnresolvedLibrary,
)
from imlgen.iml_parser import empty_descriptor, find_component, parse_iml_string
from imlgen.iml_writer import apply_to_xml, generate_modules_xml, serialize, write_atomic


def _component(descriptor):
    return find_component(apply_to_xml(descriptor))


def _order_entries(component):
    return [(e.get("type"), e.get("scope")) for e in component.findall("orderEntry")]


class TestApplyToXml:
    def test_template_descriptor(self):
        component = _component(empty_descriptor("root"))
        assert component.get("inherit-compiler-output") == "true"
        assert component.get("LANGUAGE_LEVEL") is None
        assert [c.tag for c in component] == ["exclude-output", "content", "orderEntry", "orderEntry"]
        assert _order_entries(component) == [("inheritedJdk", None), ("sourceFolder", None)]

    def test_content_root_folders(self):
        descriptor = empty_descriptor("root")
        descriptor.content_root = ContentRoot(
            url="file://$MODULE_DIR$",
            source_folders=[
                SourceFolder("file://$MODULE_DIR$/src/main/java"),
                SourceFolder("file://$MODULE_DIR$/src/test/java", is_test=True),
            ],
            exclude_folders=["file://$MODULE_DIR$/build"],
        )
        content = _component(descriptor).find("content")
        assert content.get("url") == "file://$MODULE_DIR$"
        assert [(f.get("url"), f.get("isTestSource")) for f in content.findall("sourceFolder")] == [
            ("file://$MODULE_DIR$/src/main/java", "false"),
            ("file://$MODULE_DIR$/src/test/java", "true"),
        ]
        assert [f.get("url") for f in content.findall("excludeFolder")] == ["file://$MODULE_DIR$/build"]

    def test_explicit_outputs_and_language_level(self):
        descriptor = empty_descriptor("root")
        descriptor.inherit_output_dirs = False
        descriptor.output_url = "file://$MODULE_DIR$/out"
        descriptor.test_output_url = "file://$MODULE_DIR$/out-test"
        descriptor.language_level = "JDK_1_5"
        component = _component(descriptor)
        assert component.get("inherit-compiler-output") == "false"
        assert component.get("LANGUAGE_LEVEL") == "JDK_1_5"
        assert component.find("output").get("url") == "file://$MODULE_DIR$/out"
        assert component.find("output-test").get("url") == "file://$MODULE_DIR$/out-test"

    def test_language_level_removed_when_inherited(self):
        descriptor = parse_iml_string(
            '<module version="4"><component name="NewModuleRootManager" LANGUAGE_LEVEL="JDK_1_5"/></module>',
            "root",
        )
        descriptor.language_level = None
        assert _component(descriptor).get("LANGUAGE_LEVEL") is None

    def test_jdk_entry(self):
        descriptor = empty_descriptor("root")
        descriptor.jdk_name = "1.6"
        jdk = _component(descriptor).find("orderEntry")
        assert jdk.attrib == {"type": "jdk", "jdkName": "1.6", "jdkType": "JavaSDK"}

    def test_library_entries(self):
        descriptor = empty_descriptor("root")
        descriptor.scopes = {
            "COMPILE": LibraryEntry("COMPILE", [
                ModuleLibrary("COMPILE", classes=["jar://$MODULE_DIR$/a.jar!/"], sources=["jar://s.jar!/"]),
                ModuleDependency("COMPILE", "api"),
            ]),
            "RUNTIME": LibraryEntry("RUNTIME", [UnresolvedLibrary("RUNTIME", "g", "missing", "1.0")]),
        }
        component = _component(descriptor)
        assert _order_entries(component)[2:] == [
            ("module-library", None),
            ("module", None),
            ("module-library", "RUNTIME"),
        ]
        libraries = component.findall("orderEntry")
        assert libraries[2].find("library/CLASSES/root").get("url") == "jar://$MODULE_DIR$/a.jar!/"
        assert libraries[2].find("library/SOURCES/root").get("url") == "jar://s.jar!/"
        assert libraries[3].get("module-name") == "api"
        unresolved = libraries[4].find("library")
        assert unresolved.get("name") == "unresolved dependency - g missing 1.0"
        assert list(unresolved.find("CLASSES")) == []

    def test_unmanaged_content_kept(self):
        descriptor = parse_iml_string(
            '<module version="4" custom="x">'
            '<component name="NewModuleRootManager" foo="bar"><someChild/><orderEntry type="inheritedJdk"/></component>'
            '<component name="FacetManager"/>'
            '</module>',
            "root",
        )
        root = apply_to_xml(descriptor)
        component = find_component(root)
        assert root.get("custom") == "x"
        assert component.get("foo") == "bar"
        assert component.find("someChild") is not None
        assert find_component(root, "FacetManager") is not None

    def test_content_updated_in_place(self):
        descriptor = parse_iml_string(
            '<module version="4"><component name="NewModuleRootManager">'
            '<content url="file://$MODULE_DIR$/old" custom="y">'
            '<excludeFolder url="file://$MODULE_DIR$/old/tmp"/><excludePattern pattern="*.log"/>'
            '</content></component></module>',
            "root",
        )
        descriptor.content_root = ContentRoot(
            "file://$MODULE_DIR$",
            source_folders=[SourceFolder("file://$MODULE_DIR$/src")],
            exclude_folders=["file://$MODULE_DIR$/build"],
        )
        content = _component(descriptor).find("content")
        assert content.get("url") == "file://$MODULE_DIR$"
        assert content.get("custom") == "y"
        assert [c.tag for c in content] == ["sourceFolder", "excludeFolder", "excludePattern"]
        assert content.find("excludeFolder").get("url") == "file://$MODULE_DIR$/build"

    def test_root_manager_created_when_missing(self):
        descriptor = ModuleDescriptor(name="root", xml=ET.fromstring('<module version="4"/>'))
        assert _component(descriptor) is not None

    def test_reapplying_is_stable(self):
        descriptor = empty_descriptor("root")
        descriptor.jdk_name = "1.6"
        first = serialize(apply_to_xml(descriptor))
        second = serialize(apply_to_xml(descriptor))
        assert first == second


class TestSerialize:
    def test_declaration_and_trailing_newline(self):
        text = serialize(ET.fromstring("<module><component/></module>"))
        assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<module>')
        assert text.endswith("</module>\n")
        assert "\n  <component />" in text


class TestWriteAtomic:
    def test_replaces_file(self, tmp_path):
        target = tmp_path / "root.iml"
        target.write_text("old", encoding="utf-8")
        write_atomic(target, "new")
        assert target.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["root.iml"]

    def test_creates_parent_dirs(self, tmp_path):
        target = tmp_path / "customImlFolder" / "foo.iml"
        write_atomic(target, "content")
        assert target.read_text(encoding="utf-8") == "content"

    def test_failed_write_keeps_old_file(self, tmp_path, monkeypatch):
        target = tmp_path / "root.iml"
        target.write_text("old", encoding="utf-8")

        def fail(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("imlgen.iml_writer.os.replace", fail)
        with pytest.raises(OSError, match="disk full"):
            write_atomic(target, "new")
        assert target.read_text(encoding="utf-8") == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["root.iml"]


class TestGenerateModulesXml:
    def test_lists_modules(self):
        text = generate_modules_xml([
            ("file://$PROJECT_DIR$/root.iml", "$PROJECT_DIR$/root.iml"),
            ("file://$PROJECT_DIR$/api/api.iml", "$PROJECT_DIR$/api/api.iml"),
        ])
        modules = ET.fromstring(text.split("\n", 1)[1]).findall("component/modules/module")
        assert [m.get("filepath") for m in modules] == ["$PROJECT_DIR$/root.iml", "$PROJECT_DIR$/api/api.iml"]
        assert modules[0].get("fileurl") == "file://$PROJECT_DIR$/root.iml"

    def test_replaces_module_list_and_keeps_other_components(self):
        existing = (
            '<project version="4">'
            '<component name="ProjectModuleManager"><modules><module filepath="stale.iml"/></modules></component>'
            '<component name="Other"/>'
            '</project>'
        )
        text = generate_modules_xml([("file://a.iml", "a.iml")], existing)
        root = ET.fromstring(text.split("\n", 1)[1])
        assert [m.get("filepath") for m in root.iter("module")] == ["a.iml"]
        assert find_component(root, "Other") is not None
