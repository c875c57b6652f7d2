"""CLI entry point and output reporting.

Wires together build loading, descriptor generation/merging and the
workspace aggregate to regenerate IDEA module files for a build.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from .build_loader import load_build
from .descriptor_merger import generate_project, modules_xml_path, workspace_modules_xml
from .errors import ImlGenError


def generate(
    build_path: Path,
    modules: Optional[list] = None,
    dry_run: bool = False,
    workers: int = 1,
) -> list:
    """Regenerate the module descriptors of the build described by ``build_path``.

    Loads the build file, generates and merges every selected module, then
    either prints (dry-run) or reports the written files.

    Args:
        build_path: Path to the JSON build file.
        modules: Module names to regenerate; all modules when empty.
        dry_run: If ``True``, prints generated content to stdout instead of writing files.
        workers: Number of modules generated concurrently.

    Returns:
        GenerationResult per generated module.
    """
    build = load_build(build_path)
    known = {m.name for m in build.modules}
    for name in modules or []:
        if name not in known:
            print(f"WARNING: Module '{name}' is not part of the build, skipping", file=sys.stderr)

    results = generate_project(build, only=modules or None, dry_run=dry_run, workers=workers)

    if dry_run:
        for result in results:
            print("=" * 60)
            print(result.path)
            print("=" * 60)
            print(result.content)
        if not modules:
            print("=" * 60)
            print(modules_xml_path(build))
            print("=" * 60)
            print(workspace_modules_xml(build, results))
        return results

    for result in results:
        print(f"  ✓ {result.path}")
    if not modules:
        print(f"  ✓ {modules_xml_path(build)}")
    unresolved = sum(len(r.diagnostics) for r in results)
    print(f"\n✅ Generated {len(results)} module file(s) in: {build.root_dir}")
    if unresolved:
        print(f"⚠️  {unresolved} dependency(ies) could not be resolved; see messages above")
    return results


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate IDEA module files (.iml) from a build description"
    )
    parser.add_argument("build", type=Path, help="Path to the JSON build file")
    parser.add_argument(
        "--module", "-m", action="append", default=[], dest="modules",
        help="Only regenerate this module (repeatable)",
    )
    parser.add_argument("--dry-run", "-n", action="store_true", help="Print output without writing files")
    parser.add_argument("--workers", "-j", type=int, default=1, help="Modules generated in parallel (default: 1)")
    return parser.parse_args(argv)


def main(argv: Optional[list] = None):
    """CLI entry point. Parses arguments and delegates to ``generate()``."""
    args = parse_args(argv)
    try:
        generate(args.build, args.modules, args.dry_run, args.workers)
    except ImlGenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
