"""Pytest configuration and fixtures.

Sets test environment variables BEFORE any application modules are
imported, and builds fake layer sources whose native binaries carry real
ELF / Mach-O / PE headers.
"""

import json
import os
import sys
from pathlib import Path

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LAYER_TARGET_PLATFORM", "linux-x64")

import pytest

from bundler.platforms import Architecture, OperatingSystem, Platform
from common.config import Settings

# =============================================================================
# Native binary headers
# =============================================================================


def _elf(arch: Architecture) -> bytes:
    machine = {Architecture.X64: 0x3E, Architecture.ARM64: 0xB7, Architecture.OTHER: 0x28}[arch]
    ident = b"\x7fELF\x02\x01\x01" + b"\x00" * 9
    return ident + (3).to_bytes(2, "little") + machine.to_bytes(2, "little") + b"\x00" * 44


def _macho(arch: Architecture) -> bytes:
    cpu_type = {Architecture.X64: 0x01000007, Architecture.ARM64: 0x0100000C, Architecture.OTHER: 0x07}[arch]
    return b"\xcf\xfa\xed\xfe" + cpu_type.to_bytes(4, "little") + b"\x00" * 56


def _pe(arch: Architecture) -> bytes:
    machine = {Architecture.X64: 0x8664, Architecture.ARM64: 0xAA64, Architecture.OTHER: 0x014C}[arch]
    dos_header = bytearray(0x40)
    dos_header[0:2] = b"MZ"
    dos_header[0x3C:0x40] = (0x40).to_bytes(4, "little")
    return bytes(dos_header) + b"PE\x00\x00" + machine.to_bytes(2, "little") + b"\x00" * 18


_HEADERS = {
    OperatingSystem.LINUX: _elf,
    OperatingSystem.DARWIN: _macho,
    OperatingSystem.WINDOWS: _pe,
}


def write_native(path: Path, platform: Platform) -> Path:
    """Write a fake native binary with a real header for platform."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(_HEADERS[platform.os](platform.arch) + path.name.encode())
    path.chmod(0o755)
    return path


def write_text(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def write_binary():
    """Factory fixture: write_binary(path, platform) -> path."""
    return write_native


# =============================================================================
# Layer source trees
# =============================================================================

ENGINE_NAMES = {
    Platform.LINUX_X64: "libquery_engine-debian-openssl-3.0.x.so.node",
    Platform.DARWIN_ARM64: "libquery_engine-darwin-arm64.dylib.node",
    Platform.WINDOWS_X64: "query_engine-windows.dll.node",
}

ESBUILD_PACKAGES = {
    Platform.LINUX_X64: "@esbuild/linux-x64",
    Platform.DARWIN_ARM64: "@esbuild/darwin-arm64",
    Platform.WINDOWS_X64: "@esbuild/win32-x64",
}


def build_layer_source(root: Path, platforms=tuple(ENGINE_NAMES)) -> Path:
    """Create a Prisma layer source with engines for the given platforms."""
    write_text(root / "package.json", json.dumps({"name": "prisma-layer", "dependencies": {"@prisma/client": "4.8.0"}}))
    write_text(root / "package-lock.json", json.dumps({"name": "prisma-layer", "lockfileVersion": 3}))
    write_text(root / "client.js", "module.exports = require('@prisma/client');\n")
    write_text(root / "prisma" / "schema.prisma", 'generator client {\n  provider = "prisma-client-js"\n}\n')

    modules = root / "node_modules"
    write_text(modules / ".cache" / "prisma" / "download.tmp", "cached")
    write_text(modules / "prisma" / "package.json", '{"name": "prisma"}')
    write_text(modules / "prisma" / "build" / "index.js", "// cli\n")
    write_text(modules / "@prisma" / "client" / "package.json", '{"name": "@prisma/client"}')
    write_text(modules / "@prisma" / "client" / "index.js", "module.exports = {};\n")
    write_text(modules / "@prisma" / "engines" / "package.json", '{"name": "@prisma/engines"}')
    write_text(modules / "@prisma" / "engines" / "node_modules" / "@prisma" / "debug" / "index.js", "// nested\n")

    for platform in platforms:
        write_native(modules / "prisma" / ENGINE_NAMES[platform], platform)
        write_native(modules / "@prisma" / "engines" / ENGINE_NAMES[platform], platform)
        package = modules / ESBUILD_PACKAGES[platform]
        write_text(package / "package.json", json.dumps({"name": ESBUILD_PACKAGES[platform]}))
        binary = "esbuild.exe" if platform.os == OperatingSystem.WINDOWS else "bin/esbuild"
        write_native(package / binary, platform)

    (modules / ".bin").mkdir()
    (modules / ".bin" / "prisma").symlink_to("../prisma/build/index.js")
    return root


@pytest.fixture
def layer_source(tmp_path) -> Path:
    """Layer source with linux-x64, darwin-arm64 and windows-x64 binaries."""
    return build_layer_source(tmp_path / "source")


# Stands in for `npx prisma generate`: fails when the engine for the current
# platform is missing, otherwise writes a client naming the engines it saw.
GENERATE_SCRIPT = """
import pathlib, sys
engines = sorted(p.name for p in pathlib.Path("node_modules/@prisma/engines").iterdir() if "engine" in p.name)
if not any("debian" in name for name in engines):
    sys.exit("Error: Query engine binary for current platform could not be found")
client = pathlib.Path("node_modules/.prisma/client")
client.mkdir(parents=True, exist_ok=True)
(client / "index.js").write_text("// engines: " + ",".join(engines) + "\\n")
print("Generated Prisma Client")
"""


@pytest.fixture
def generate_command() -> list[str]:
    return [sys.executable, "-c", GENERATE_SCRIPT]


@pytest.fixture
def settings(generate_command) -> Settings:
    """Settings isolated from the environment and .env."""
    return Settings(_env_file=None, client_generate_command=generate_command)
