"""Dependency layer bundler.

Prepares an installed dependency tree (e.g. a Prisma client layer) for use as
a Lambda layer:
- Copies manifest, lockfile, generated client and dependency tree
- Prunes native binaries down to one target platform
- Regenerates the client against the pruned tree
- Enforces the layer size ceiling
"""

from bundler.artifact import ArtifactDirectory, compute_digest, directory_size
from bundler.errors import (
    ArtifactTooLargeError,
    BuildInProgressError,
    BundleError,
    ClientGenerationError,
    MissingInputError,
    NoMatchingPlatformError,
)
from bundler.layout import LayerLayout
from bundler.pipeline import bundle
from bundler.platforms import Platform
from bundler.prune import prune_foreign_binaries, scan_dependency_tree

__all__ = [
    "bundle",
    "ArtifactDirectory",
    "LayerLayout",
    "Platform",
    "compute_digest",
    "directory_size",
    "prune_foreign_binaries",
    "scan_dependency_tree",
    "BundleError",
    "MissingInputError",
    "BuildInProgressError",
    "NoMatchingPlatformError",
    "ClientGenerationError",
    "ArtifactTooLargeError",
]
