"""CLI entrypoint for the layer bundler.

Usage:
    python -m bundler                                  # build with configured defaults
    python -m bundler build --platform linux-arm64     # override the target platform
    python -m bundler inspect src/layers/prisma/node_modules

Defaults come from LAYER_* and CLIENT_GENERATE_* env vars (or .env).
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from bundler.errors import BundleError
from bundler.pipeline import bundle
from bundler.prune import scan_dependency_tree
from common.config import get_settings

logger = logging.getLogger(__name__)


def run_build(args: argparse.Namespace) -> int:
    """Build the layer artifact. Returns exit code."""
    settings = get_settings()
    artifact = bundle(
        source_dir=args.source or settings.layer_source_dir,
        target_platform=args.platform or settings.resolved_target_platform,
        output_dir=args.output or settings.layer_output_dir,
        settings=settings,
    )
    print(json.dumps(artifact.to_dict(), indent=2))
    return 0


def run_inspect(args: argparse.Namespace) -> int:
    """List native packages and their platforms. Returns exit code."""
    dependency_dir = Path(args.dependency_dir)
    if not dependency_dir.is_dir():
        logger.error(f"Not a directory: {dependency_dir}")
        return 1
    packages = scan_dependency_tree(dependency_dir)
    print(json.dumps([p.to_dict() for p in packages], indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dependency layer bundler")
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Bundle the layer (default)")
    build.add_argument("--source", help="Layer source directory")
    build.add_argument("--output", help="Artifact output directory")
    build.add_argument("--platform", help="Target platform, e.g. linux-x64")

    inspect = subparsers.add_parser("inspect", help="Show native binaries by platform")
    inspect.add_argument("dependency_dir", help="Installed dependency tree, e.g. node_modules")
    return parser


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(levelname)s: %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "inspect":
            return run_inspect(args)
        if args.command is None:
            args = parser.parse_args(["build"])
        return run_build(args)
    except (BundleError, ValueError) as e:
        logger.error(f"Bundling failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
