"""Artifact directory model, size and content digest."""

import hashlib
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path

from bundler.platforms import Platform

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ArtifactDirectory:
    """A bundled, single-platform layer directory ready to be published."""

    path: Path
    target_platform: Platform
    digest: str
    size_bytes: int
    file_count: int
    removed: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "target_platform": str(self.target_platform),
            "digest": self.digest,
            "size_bytes": self.size_bytes,
            "file_count": self.file_count,
            "removed": list(self.removed),
        }


def _walk_sorted(root: Path):
    """Yield (relative posix path, absolute path) for every entry under root, sorted."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        current = Path(dirpath)
        for name in sorted([*dirnames, *filenames]):
            path = current / name
            yield path.relative_to(root).as_posix(), path


def directory_size(root: Path) -> int:
    """Total bytes of files and symlinks under root; links are not followed."""
    total = 0
    for _, path in _walk_sorted(Path(root)):
        st = path.lstat()
        if stat.S_ISREG(st.st_mode) or stat.S_ISLNK(st.st_mode):
            total += st.st_size
    return total


def count_files(root: Path) -> int:
    return sum(1 for _, path in _walk_sorted(Path(root)) if path.is_symlink() or path.is_file())


def compute_digest(root: Path) -> str:
    """SHA-256 over the tree's paths, entry types, contents and link targets.

    Timestamps and ownership are ignored, so rebuilding identical inputs
    yields the same digest.
    """
    digest = hashlib.sha256()
    for relative, path in _walk_sorted(Path(root)):
        st = path.lstat()
        if stat.S_ISLNK(st.st_mode):
            digest.update(b"L\0" + relative.encode() + b"\0" + os.readlink(path).encode() + b"\0")
        elif stat.S_ISDIR(st.st_mode):
            digest.update(b"D\0" + relative.encode() + b"\0")
        elif stat.S_ISREG(st.st_mode):
            executable = b"x" if st.st_mode & stat.S_IXUSR else b"-"
            digest.update(b"F\0" + relative.encode() + b"\0" + executable + b"\0")
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                    digest.update(chunk)
            digest.update(b"\0")
    return digest.hexdigest()
