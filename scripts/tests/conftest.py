"""Shared test fixtures for the IDEA module generation test suite."""

import json
import textwrap
from pathlib import Path

import pytest

from imlgen.build_loader import parse_notation
from imlgen.iml_models import (
    Configuration, ModuleSettings, ProjectDependency, ResolvedArtifact, SourceSet,
    UnresolvedDependency,
)
from imlgen.path_variables import PathVariables


@pytest.fixture
def project_dir(tmp_path):
    """A module project directory named ``root``."""
    d = tmp_path / "root"
    d.mkdir()
    return d


@pytest.fixture
def paths(project_dir):
    """Path variables with ``$MODULE_DIR$`` at the project dir."""
    return PathVariables(module_dir=project_dir)


@pytest.fixture
def make_configuration(project_dir):
    """Factory fixture building a resolved Configuration.

    Each positional notation is either ``group:name:version`` (resolved to
    ``repo/<name>-<version>.jar``) or a plain file name relative to the
    project dir (a local file dependency).
    """
    def _make(name, *notations, extends_from=(), unresolved=(), projects=()):
        conf = Configuration(name=name, extends_from=list(extends_from))
        for notation in notations:
            conf.declared.append(notation)
            if ":" in notation:
                group, artifact, version, _ = parse_notation(notation)
                conf.artifacts.append(ResolvedArtifact(
                    file=project_dir / "repo" / f"{artifact}-{version}.jar",
                    group=group, name=artifact, version=version, declared_by=notation,
                ))
            else:
                conf.artifacts.append(ResolvedArtifact(file=project_dir / notation, declared_by=notation))
        for coordinate in unresolved:
            group, artifact, version, _ = parse_notation(coordinate)
            conf.declared.append(coordinate)
            conf.unresolved.append(UnresolvedDependency(
                group, artifact, version, reason="not found", declared_by=coordinate,
            ))
        for path in projects:
            conf.declared.append(path)
            conf.projects.append(ProjectDependency(path))
        return conf
    return _make


@pytest.fixture
def java_configurations(make_configuration):
    """Factory for the java plugin's configuration hierarchy.

    Keyword arguments give the notations declared directly on each
    configuration; extra configurations can be passed via ``extra``.
    """
    def _make(compile=(), runtime=(), test_compile=(), test_runtime=(), extra=()):
        confs = {
            "compile": make_configuration("compile", *compile),
            "runtime": make_configuration("runtime", *runtime, extends_from=["compile"]),
            "testCompile": make_configuration("testCompile", *test_compile, extends_from=["compile"]),
            "testRuntime": make_configuration(
                "testRuntime", *test_runtime, extends_from=["runtime", "testCompile"],
            ),
        }
        for conf in extra:
            confs[conf.name] = conf
        return confs
    return _make


@pytest.fixture
def make_settings(project_dir):
    """Factory for ModuleSettings of a java module with conventional source sets."""
    def _make(**overrides) -> ModuleSettings:
        values = dict(
            name="root",
            project_dir=project_dir,
            source_compatibility="1.6",
            source_sets=[
                SourceSet("main", src_dirs=[project_dir / "src" / "main" / "java"]),
                SourceSet("test", src_dirs=[project_dir / "src" / "test" / "java"]),
            ],
        )
        values.update(overrides)
        return ModuleSettings(**values)
    return _make


@pytest.fixture
def tmp_iml(project_dir):
    """Factory fixture that writes an .iml file into the project dir and returns the path."""
    def _write(content: str, name: str = "root") -> Path:
        iml = project_dir / f"{name}.iml"
        iml.write_text(textwrap.dedent(content), encoding="utf-8")
        return iml
    return _write


@pytest.fixture
def tmp_build(tmp_path):
    """Factory fixture that writes a build.json and returns its path."""
    def _write(data: dict) -> Path:
        build = tmp_path / "build.json"
        build.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return build
    return _write


@pytest.fixture
def existing_iml():
    """A previously generated descriptor with a hand-added exclude folder."""
    return """\
        <?xml version="1.0" encoding="UTF-8"?>
        <module relativePaths="true" type="JAVA_MODULE" version="4">
          <component name="NewModuleRootManager" inherit-compiler-output="true">
            <exclude-output/>
            <orderEntry type="inheritedJdk"/>
            <content url="file://$MODULE_DIR$/">
              <excludeFolder url="file://$MODULE_DIR$/folderThatWasExcludedEarlier"/>
            </content>
            <orderEntry type="sourceFolder" forTests="false"/>
          </component>
          <component name="ModuleRootManager"/>
        </module>
    """
