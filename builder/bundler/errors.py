"""Layer bundling errors.

Every error names the pipeline step that failed. None of them are retried:
the build aborts and the output directory is discarded.
"""


class BundleError(Exception):
    """Base exception for layer bundling failures."""

    step = "bundle"

    def __init__(self, message: str, *, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        text = f"[{self.step}] {self.message}"
        if self.hint:
            text += f"\nHint: {self.hint}"
        return text


class MissingInputError(BundleError):
    """A required input is absent from the source directory."""

    step = "preflight"

    def __init__(self, source_dir: str, missing: list[str]):
        self.source_dir = source_dir
        self.missing = list(missing)
        super().__init__(
            f"Missing required input(s) in {source_dir}: {', '.join(self.missing)}",
            hint="Install dependencies (e.g. `npm ci`) and check the layer layout settings.",
        )


class BuildInProgressError(BundleError):
    """Another build holds the lock on the output directory."""

    step = "preflight"

    def __init__(self, output_dir: str, lock_path: str):
        self.output_dir = output_dir
        self.lock_path = lock_path
        super().__init__(
            f"Another build is writing to {output_dir}",
            hint=f"Wait for it to finish, or remove {lock_path} if it is stale.",
        )


class NoMatchingPlatformError(BundleError):
    """Pruning left no native binaries for the target platform."""

    step = "prune"

    def __init__(
        self,
        target: str,
        empty_families: list[str],
        found_platforms: list[str],
    ):
        self.target = target
        self.empty_families = list(empty_families)
        self.found_platforms = list(found_platforms)
        if self.empty_families:
            detail = f"no {target} binaries left in: {', '.join(self.empty_families)}"
        else:
            detail = f"no {target} binaries found in the dependency tree"
        found = ", ".join(self.found_platforms) or "none"
        super().__init__(
            f"{detail} (platforms shipped: {found})",
            hint=f"Install dependencies with {target} binaries included "
            "(for Prisma, add the target to `binaryTargets`).",
        )


class ClientGenerationError(BundleError):
    """The client generation command failed."""

    step = "generate"

    def __init__(
        self,
        command: list[str],
        reason: str,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"`{' '.join(self.command)}` {reason}"
        output = (stderr or stdout).strip()
        if output:
            message += f"\n{output}"
        super().__init__(message)


class ArtifactTooLargeError(BundleError):
    """The artifact exceeds the layer size ceiling."""

    step = "measure"

    def __init__(self, size_bytes: int, max_size_bytes: int):
        self.size_bytes = size_bytes
        self.max_size_bytes = max_size_bytes
        super().__init__(
            f"Artifact is {size_bytes} bytes, over the {max_size_bytes} byte limit",
            hint="Prune unused dependencies or move them out of the layer.",
        )
