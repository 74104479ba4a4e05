"""Layer bundling pipeline.

Turns a development install of a layer source directory into a pruned,
single-platform artifact directory:

1. Copy manifest, lockfile, client entry files and schema into the output
2. Copy the installed dependency tree
3. Remove build caches and unused nested trees
4. Remove native binaries for every platform except the target
5. Regenerate the client against the pruned tree
6. Enforce the layer size ceiling and compute the content digest

Steps run strictly in order. Any failure removes the output directory so a
partial artifact is never published.
"""

import logging
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bundler.artifact import ArtifactDirectory, compute_digest, count_files, directory_size
from bundler.errors import ArtifactTooLargeError, BuildInProgressError, MissingInputError
from bundler.generate import run_client_generation
from bundler.layout import LayerLayout
from bundler.platforms import Platform
from bundler.prune import prune_foreign_binaries, remove_globs, scan_dependency_tree, verify_target_binaries
from common.config import Settings, get_settings

logger = logging.getLogger(__name__)


@contextmanager
def exclusive_build(output_dir: Path) -> Iterator[Path]:
    """Hold `<output_dir>.lock` for the duration of a build.

    Raises:
        BuildInProgressError: If another build holds the lock.
    """
    lock_path = output_dir.with_name(f"{output_dir.name}.lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        raise BuildInProgressError(str(output_dir), str(lock_path)) from None
    try:
        os.write(fd, str(os.getpid()).encode())
        os.close(fd)
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)


def _check_paths(source: Path, output: Path) -> None:
    if output == source or source in output.parents or output in source.parents:
        raise ValueError(
            f"Output directory {output} must not overlap the source directory {source}"
        )


def _reset_output(output: Path) -> None:
    if output.is_symlink() or output.is_file():
        output.unlink()
    elif output.exists():
        shutil.rmtree(output)
    output.mkdir(parents=True)


def _copy_inputs(source: Path, output: Path, layout: LayerLayout) -> None:
    for name in layout.top_level_files:
        shutil.copy2(source / name, output / name)
    for name in layout.schema_dirs:
        shutil.copytree(source / name, output / name, symlinks=True)
    logger.info(
        f"Copied {', '.join(layout.top_level_files)} and {len(layout.schema_dirs)} schema dir(s)"
    )


def bundle(
    source_dir: str | os.PathLike,
    target_platform: str | Platform,
    output_dir: str | os.PathLike | None = None,
    *,
    layout: LayerLayout | None = None,
    generate_command: list[str] | None = None,
    generate_timeout: float | None = None,
    max_size_bytes: int | None = None,
    settings: Settings | None = None,
) -> ArtifactDirectory:
    """Bundle a layer source directory into a single-platform artifact.

    Args:
        source_dir: Layer source with manifest, lockfile, client files,
            schema and an installed dependency tree. Never modified.
        target_platform: The only platform whose native binaries are kept.
        output_dir: Artifact directory; replaced on every build.
        layout: Source layout; defaults to the configured layout.
        generate_command: Client generation command; [] skips generation.
        generate_timeout: Generation timeout in seconds.
        max_size_bytes: Layer size ceiling.
        settings: Settings for any argument left as None.

    Returns:
        The published ArtifactDirectory.

    Raises:
        MissingInputError: A required input is absent (nothing is written).
        BuildInProgressError: Another build holds the output lock.
        NoMatchingPlatformError: Pruning left no target binaries.
        ClientGenerationError: The generation command failed.
        ArtifactTooLargeError: The artifact exceeds max_size_bytes.
    """
    settings = settings or get_settings()
    layout = layout or LayerLayout.from_settings(settings)
    target = Platform.parse(target_platform)
    source = Path(source_dir).resolve()
    output = Path(output_dir or settings.layer_output_dir).resolve()
    if generate_command is None:
        generate_command = list(settings.client_generate_command)
    if generate_timeout is None:
        generate_timeout = settings.client_generate_timeout_seconds
    if max_size_bytes is None:
        max_size_bytes = settings.layer_max_size_bytes

    missing = layout.missing_inputs(source)
    if missing:
        raise MissingInputError(str(source), missing)
    _check_paths(source, output)

    logger.info(f"Bundling {source} -> {output} for {target}")

    with exclusive_build(output):
        try:
            _reset_output(output)

            # 1. Top-level inputs
            _copy_inputs(source, output, layout)

            # 2. Dependency tree
            dependency_dir = output / layout.dependency_dir
            shutil.copytree(source / layout.dependency_dir, dependency_dir, symlinks=True)
            logger.info(f"Copied dependency tree {layout.dependency_dir}/")

            # 3. Caches and unused nested trees
            removed = remove_globs(dependency_dir, [*layout.cache_globs, *layout.prune_globs])
            if removed:
                logger.info(f"Removed {len(removed)} cache/unused entries: {removed}")

            # 4. Foreign platform binaries
            before = scan_dependency_tree(dependency_dir)
            report = prune_foreign_binaries(dependency_dir, target, packages=before)
            verify_target_binaries(before, dependency_dir, target)
            removed += report.removed

            # 5. Client generation, bound to the pruned tree
            if generate_command:
                run_client_generation(
                    generate_command,
                    cwd=output,
                    timeout_seconds=generate_timeout,
                    env=settings.client_generate_env,
                )
                generated = scan_dependency_tree(dependency_dir)
                regenerated = prune_foreign_binaries(dependency_dir, target, packages=generated)
                verify_target_binaries(generated, dependency_dir, target)
                if regenerated.removed:
                    logger.warning(
                        f"Client generation re-introduced foreign binaries, removed: "
                        f"{regenerated.removed}"
                    )
                    removed += regenerated.removed
            else:
                logger.warning("Client generation disabled; skipping")

            # 6. Size ceiling and digest
            size_bytes = directory_size(output)
            if size_bytes > max_size_bytes:
                raise ArtifactTooLargeError(size_bytes, max_size_bytes)

            artifact = ArtifactDirectory(
                path=output,
                target_platform=target,
                digest=compute_digest(output),
                size_bytes=size_bytes,
                file_count=count_files(output),
                removed=tuple(removed),
            )
        except BaseException:
            logger.error(f"Bundling failed, discarding {output}")
            shutil.rmtree(output, ignore_errors=True)
            raise

    logger.info(
        f"Bundled {artifact.file_count} files ({artifact.size_bytes} bytes) "
        f"digest={artifact.digest[:12]}"
    )
    return artifact
