"""Client generation step.

Runs the client generator (e.g. `npx prisma generate`) inside the artifact
directory. This must happen after pruning: the generator binds the client to
the engine binaries it finds on disk.
"""

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from bundler.errors import ClientGenerationError

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Output of a successful generation run."""

    command: list[str]
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0


def run_client_generation(
    command: list[str],
    cwd: Path,
    timeout_seconds: float = 300,
    env: dict[str, str] | None = None,
) -> GenerationResult:
    """Run the client generation command.

    Args:
        command: Command and arguments, e.g. ["npx", "prisma", "generate"].
        cwd: Directory to run in (the artifact directory).
        timeout_seconds: Maximum run time.
        env: Extra environment variables, merged over the current environment.

    Returns:
        GenerationResult with captured output.

    Raises:
        ClientGenerationError: On non-zero exit, missing executable or timeout.
    """
    logger.info(f"Generating client: {' '.join(command)} (cwd={cwd})")
    start_time = time.perf_counter()

    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            env={**os.environ, **(env or {})},
        )
    except FileNotFoundError as e:
        raise ClientGenerationError(command, f"could not be started: {e}") from e
    except subprocess.TimeoutExpired as e:
        raise ClientGenerationError(
            command,
            f"timed out after {timeout_seconds} seconds",
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
        ) from e

    duration = time.perf_counter() - start_time

    if result.returncode != 0:
        logger.error(f"Client generation failed with exit code {result.returncode}")
        raise ClientGenerationError(
            command,
            f"exited with code {result.returncode}",
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    logger.info(f"Client generated in {duration:.1f}s")
    if result.stdout:
        logger.debug(f"Output: {result.stdout}")
    return GenerationResult(
        command=list(command),
        stdout=result.stdout,
        stderr=result.stderr,
        duration_seconds=duration,
    )


def _decode(output: str | bytes | None) -> str:
    # TimeoutExpired may carry bytes even when text=True was requested
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
