"""Dependency tree pruning.

Scans an installed dependency tree for packages that ship native binaries,
tags every binary with its platform, and removes everything that does not
run on the target platform.
"""

import logging
import os
import shutil
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from bundler.errors import NoMatchingPlatformError
from bundler.platforms import (
    Platform,
    has_native_name,
    is_native_binary,
    platform_of,
    strip_platform_tokens,
    tag_binary,
)

logger = logging.getLogger(__name__)

# Top-level entries of the dependency tree that are never packages
SKIPPED_ENTRIES = frozenset({".bin"})


@dataclass
class NativeBinary:
    """A platform-tagged native binary, path relative to the dependency dir."""

    path: str
    platform: Platform


@dataclass
class NativePackage:
    """An installed package that ships platform-tagged native binaries."""

    name: str
    root: Path
    platform: Platform | None = None  # tag on the package name itself
    binaries: list[NativeBinary] = field(default_factory=list)
    tagged_dirs: list[tuple[Path, Platform]] = field(default_factory=list)

    @property
    def family(self) -> str:
        """Group key: the package itself, or its platform-variant siblings.

        `@esbuild/darwin-arm64` and `@esbuild/linux-x64` share the family
        `@esbuild/*`; `esbuild-darwin-arm64` and `esbuild-linux-64` share `esbuild`.
        """
        if self.platform is None:
            return self.name
        scope, _, base = self.name.rpartition("/")
        if scope:
            return f"{scope}/*"
        return strip_platform_tokens(base) or base

    @property
    def platforms(self) -> list[Platform]:
        return sorted({b.platform for b in self.binaries})

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "family": self.family,
            "platform": str(self.platform) if self.platform else None,
            "platforms": [str(p) for p in self.platforms],
            "binaries": [{"path": b.path, "platform": str(b.platform)} for b in self.binaries],
        }


@dataclass
class PruneReport:
    """Outcome of a platform prune."""

    target: Platform
    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "target": str(self.target),
            "removed": list(self.removed),
            "kept": list(self.kept),
        }


def iter_packages(dependency_dir: Path) -> Iterator[tuple[str, Path]]:
    """Yield (name, root) for each installed package, expanding @scopes."""
    for entry in sorted(dependency_dir.iterdir()):
        if entry.name in SKIPPED_ENTRIES or entry.is_symlink() or not entry.is_dir():
            continue
        if entry.name.startswith("@"):
            for child in sorted(entry.iterdir()):
                if child.is_dir() and not child.is_symlink():
                    yield f"{entry.name}/{child.name}", child
        else:
            yield entry.name, entry


def _scan_package(name: str, root: Path, dependency_dir: Path) -> NativePackage | None:
    package = NativePackage(name=name, root=root, platform=platform_of(root.name))
    candidate_dirs: list[tuple[Path, Platform]] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames.sort()
        for dirname in dirnames:
            platform = platform_of(dirname)
            if platform is not None:
                candidate_dirs.append((current / dirname, platform))
        for filename in sorted(filenames):
            path = current / filename
            if not is_native_binary(path):
                continue
            platform = tag_binary(path, dependency_dir)
            if platform is None:
                # Platform-neutral binaries are left alone
                continue
            package.binaries.append(
                NativeBinary(path=path.relative_to(dependency_dir).as_posix(), platform=platform)
            )

    if not package.binaries:
        return None

    binary_paths = [dependency_dir / b.path for b in package.binaries]
    package.tagged_dirs = [
        (directory, platform)
        for directory, platform in candidate_dirs
        if any(directory in path.parents for path in binary_paths)
    ]
    return package


def scan_dependency_tree(dependency_dir: Path) -> list[NativePackage]:
    """List the packages under dependency_dir that ship native binaries.

    Read-only; the tree is not modified.
    """
    dependency_dir = Path(dependency_dir)
    packages = []
    for name, root in iter_packages(dependency_dir):
        package = _scan_package(name, root, dependency_dir)
        if package is not None:
            packages.append(package)
    return packages


def _remove(path: Path, dependency_dir: Path, report: PruneReport) -> None:
    if not os.path.lexists(path):
        return
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    report.removed.append(path.relative_to(dependency_dir).as_posix())


def remove_globs(dependency_dir: Path, patterns: Iterable[str]) -> list[str]:
    """Remove every entry under dependency_dir matching one of patterns."""
    removed: list[str] = []
    for pattern in patterns:
        for match in sorted(dependency_dir.glob(pattern)):
            if not os.path.lexists(match):
                continue
            if match.is_dir() and not match.is_symlink():
                shutil.rmtree(match)
            else:
                match.unlink()
            removed.append(match.relative_to(dependency_dir).as_posix())
    return removed


def _holds_target_binary(directory: Path, package: NativePackage, dependency_dir: Path, target: Platform) -> bool:
    return any(
        binary.platform == target and directory in (dependency_dir / binary.path).parents
        for binary in package.binaries
    )


def _contains_native_binary(directory: Path) -> bool:
    for dirpath, _, filenames in os.walk(directory):
        if any(is_native_binary(Path(dirpath) / filename) for filename in filenames):
            return True
    return False


def _prune_symlinks(dependency_dir: Path, target: Platform, report: PruneReport) -> None:
    """Remove links into pruned entries and links named for a foreign platform.

    A file link counts as foreign only when its name looks native; a directory
    link only when the directory holds native binaries.
    """
    removed_paths = [dependency_dir / path for path in report.removed]
    links: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(dependency_dir):
        current = Path(dirpath)
        for name in sorted(dirnames + filenames):
            path = current / name
            if not path.is_symlink():
                continue
            link_target = Path(os.path.normpath(current / os.readlink(path)))
            if any(link_target == r or r in link_target.parents for r in removed_paths):
                links.append(path)
                continue
            platform = platform_of(name)
            if platform is None or platform == target:
                continue
            if path.is_dir():
                foreign = _contains_native_binary(path)
            else:
                foreign = has_native_name(path)
            if foreign:
                links.append(path)

    for link in links:
        _remove(link, dependency_dir, report)


def prune_foreign_binaries(
    dependency_dir: Path,
    target: Platform,
    packages: list[NativePackage] | None = None,
) -> PruneReport:
    """Remove native entries tagged with any platform other than target.

    A foreign-tagged package or directory is removed whole only when none of
    its binaries is a target binary; otherwise its foreign binaries are
    removed one by one. Symlinks left pointing into removed entries, or named
    for a foreign platform, are removed too.

    Args:
        dependency_dir: Root of the installed dependency tree.
        target: The only platform whose binaries are kept.
        packages: A scan of dependency_dir, if one was already taken.

    Returns:
        PruneReport listing removed entries and kept target binaries.
    """
    dependency_dir = Path(dependency_dir)
    if packages is None:
        packages = scan_dependency_tree(dependency_dir)
    report = PruneReport(target=target)

    for package in packages:
        if (
            package.platform is not None
            and package.platform != target
            and not _holds_target_binary(package.root, package, dependency_dir, target)
        ):
            _remove(package.root, dependency_dir, report)
            continue

        for directory, platform in package.tagged_dirs:
            if platform != target and not _holds_target_binary(directory, package, dependency_dir, target):
                _remove(directory, dependency_dir, report)

        for binary in package.binaries:
            path = dependency_dir / binary.path
            if binary.platform != target:
                _remove(path, dependency_dir, report)
            elif os.path.lexists(path):
                report.kept.append(binary.path)

    _prune_symlinks(dependency_dir, target, report)

    logger.info(
        f"Pruned {len(report.removed)} foreign entries, "
        f"kept {len(report.kept)} {target} binaries"
    )
    return report


def verify_target_binaries(
    before: list[NativePackage],
    dependency_dir: Path,
    target: Platform,
) -> list[NativePackage]:
    """Check that every native family still has a target binary.

    Args:
        before: Scan taken before pruning.
        dependency_dir: The pruned dependency tree.
        target: Platform the tree was pruned to.

    Returns:
        A fresh scan of the pruned tree.

    Raises:
        NoMatchingPlatformError: If the tree, or any family that shipped
            binaries before pruning, has no target binary left.
    """
    found = sorted({str(p) for package in before for p in package.platforms})
    if not before:
        raise NoMatchingPlatformError(str(target), [], found)

    after = scan_dependency_tree(dependency_dir)
    remaining: dict[str, int] = defaultdict(int)
    for package in after:
        remaining[package.family] += sum(1 for b in package.binaries if b.platform == target)

    families = sorted({package.family for package in before})
    empty = [family for family in families if remaining[family] == 0]
    if empty:
        raise NoMatchingPlatformError(str(target), empty, found)
    return after
