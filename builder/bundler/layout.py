"""Source layout of a dependency layer."""

from dataclasses import dataclass
from pathlib import Path

from common.config import Settings


@dataclass(frozen=True)
class LayerLayout:
    """Names of the files and directories that make up a layer source.

    Defaults describe a Prisma client layer:

        package.json, package-lock.json, client.js, prisma/, node_modules/
    """

    manifest_file: str = "package.json"
    lockfile: str = "package-lock.json"
    client_files: tuple[str, ...] = ("client.js",)
    schema_dirs: tuple[str, ...] = ("prisma",)
    dependency_dir: str = "node_modules"
    cache_globs: tuple[str, ...] = (".cache",)
    prune_globs: tuple[str, ...] = ("@prisma/engines/node_modules",)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LayerLayout":
        return cls(
            manifest_file=settings.layer_manifest_file,
            lockfile=settings.layer_lockfile,
            client_files=tuple(settings.layer_client_files),
            schema_dirs=tuple(settings.layer_schema_dirs),
            dependency_dir=settings.layer_dependency_dir,
            cache_globs=tuple(settings.layer_cache_globs),
            prune_globs=tuple(settings.layer_prune_globs),
        )

    @property
    def top_level_files(self) -> tuple[str, ...]:
        """Files copied into the artifact root, in copy order."""
        return (self.manifest_file, self.lockfile, *self.client_files)

    def missing_inputs(self, source_dir: Path) -> list[str]:
        """Names of required inputs absent from source_dir."""
        missing = [name for name in self.top_level_files if not (source_dir / name).is_file()]
        missing += [
            f"{name}/"
            for name in (*self.schema_dirs, self.dependency_dir)
            if not (source_dir / name).is_dir()
        ]
        return missing
