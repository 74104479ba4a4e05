"""Platform tags for native binaries.

A binary's platform comes from its own header (ELF, Mach-O or PE) where
possible, and from the platform tokens in its path otherwise. Names are
compared token by token, never by raw substring, so `windowsill.js` or
`darwinian` never match a platform.

Binaries for an architecture other than x64 or arm64 (ia32, armv7, s390x,
...) are tagged `<os>-other`. No build can target those, so they are always
pruned.
"""

import os
import re
from enum import StrEnum
from pathlib import Path


class OperatingSystem(StrEnum):
    LINUX = "linux"
    DARWIN = "darwin"
    WINDOWS = "windows"


class Architecture(StrEnum):
    X64 = "x64"
    ARM64 = "arm64"
    OTHER = "other"


class Platform(StrEnum):
    """Operating system / architecture pair a native binary runs on."""

    LINUX_X64 = "linux-x64"
    LINUX_ARM64 = "linux-arm64"
    DARWIN_X64 = "darwin-x64"
    DARWIN_ARM64 = "darwin-arm64"
    WINDOWS_X64 = "windows-x64"
    WINDOWS_ARM64 = "windows-arm64"
    LINUX_OTHER = "linux-other"
    DARWIN_OTHER = "darwin-other"
    WINDOWS_OTHER = "windows-other"

    @property
    def os(self) -> OperatingSystem:
        return OperatingSystem(self.value.split("-", 1)[0])

    @property
    def arch(self) -> Architecture:
        return Architecture(self.value.split("-", 1)[1])

    @property
    def is_target(self) -> bool:
        """Whether a build can select this platform."""
        return self.arch != Architecture.OTHER

    @classmethod
    def of(cls, os_: OperatingSystem, arch: Architecture) -> "Platform":
        return cls(f"{os_.value}-{arch.value}")

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        """Resolve a target platform from a tag or a loose name like `linux-x86_64`.

        Raises:
            ValueError: If the value names no known operating system, or an
                architecture other than x64 or arm64.
        """
        platform = value if isinstance(value, cls) else platform_of(str(value))
        if platform is None:
            raise ValueError(f"Unknown platform: {value!r}")
        if not platform.is_target:
            raise ValueError(f"Unsupported platform architecture: {value!r}")
        return platform

    @classmethod
    def for_lambda_architecture(cls, architecture: str) -> "Platform":
        """Map a Lambda instruction set architecture to its platform."""
        try:
            return _LAMBDA_ARCHITECTURES[architecture]
        except KeyError:
            raise ValueError(
                f"Unsupported Lambda architecture: {architecture!r} "
                f"(expected one of {sorted(_LAMBDA_ARCHITECTURES)})"
            ) from None


_LAMBDA_ARCHITECTURES = {
    "x86_64": Platform.LINUX_X64,
    "arm64": Platform.LINUX_ARM64,
}

_OS_TOKENS = {
    "linux": OperatingSystem.LINUX,
    "linuxmusl": OperatingSystem.LINUX,
    "debian": OperatingSystem.LINUX,
    "rhel": OperatingSystem.LINUX,
    "musl": OperatingSystem.LINUX,
    "alpine": OperatingSystem.LINUX,
    "darwin": OperatingSystem.DARWIN,
    "macos": OperatingSystem.DARWIN,
    "windows": OperatingSystem.WINDOWS,
    "win32": OperatingSystem.WINDOWS,
}

_ARCH_TOKENS = {
    "x64": Architecture.X64,
    "amd64": Architecture.X64,
    "arm64": Architecture.ARM64,
    "aarch64": Architecture.ARM64,
    "ia32": Architecture.OTHER,
    "x86": Architecture.OTHER,
    "x32": Architecture.OTHER,
    "i386": Architecture.OTHER,
    "i686": Architecture.OTHER,
    "arm": Architecture.OTHER,
    "armhf": Architecture.OTHER,
    "armv6": Architecture.OTHER,
    "armv6l": Architecture.OTHER,
    "armv7": Architecture.OTHER,
    "armv7l": Architecture.OTHER,
    "s390": Architecture.OTHER,
    "s390x": Architecture.OTHER,
    "ppc": Architecture.OTHER,
    "ppc64": Architecture.OTHER,
    "ppc64le": Architecture.OTHER,
    "riscv64": Architecture.OTHER,
    "loong64": Architecture.OTHER,
    "mips": Architecture.OTHER,
    "mipsel": Architecture.OTHER,
    "mips64el": Architecture.OTHER,
}

# Bare bitness right after an OS token: `esbuild-linux-64`, `node-win-32`
_BITNESS_TOKENS = {
    "64": Architecture.X64,
    "32": Architecture.OTHER,
}

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_X86_64 = re.compile(r"x86[_-]64")

NATIVE_SUFFIXES = frozenset({".node", ".so", ".dylib", ".dll", ".exe"})


def tokenize(name: str) -> list[str]:
    normalized = _X86_64.sub("x64", name.lower())
    return [token for token in _TOKEN_SPLIT.split(normalized) if token]


def _classify(tokens: list[str]) -> tuple[OperatingSystem | None, Architecture | None, set[int]]:
    """Return (os, arch, indices of platform tokens) for a tokenized name."""
    os_ = None
    arch = None
    platform_indices: set[int] = set()
    for i, token in enumerate(tokens):
        if token in _OS_TOKENS:
            platform_indices.add(i)
            os_ = os_ or _OS_TOKENS[token]
        elif token in _ARCH_TOKENS:
            platform_indices.add(i)
            arch = arch or _ARCH_TOKENS[token]
        elif token in _BITNESS_TOKENS and i > 0 and tokens[i - 1] in _OS_TOKENS:
            platform_indices.add(i)
            arch = arch or _BITNESS_TOKENS[token]
    return os_, arch, platform_indices


def platform_of(name: str) -> Platform | None:
    """Tag a single path segment by its platform tokens.

    Returns None unless a whole token names an operating system. The
    architecture defaults to x64 only when the name carries no arch token
    at all; any arch other than x64 or arm64 tags the name `<os>-other`.
    """
    os_, arch, _ = _classify(tokenize(name))
    if os_ is None:
        return None
    return Platform.of(os_, arch or Architecture.X64)


def strip_platform_tokens(name: str) -> str:
    """Drop OS and arch tokens from a name: `turbo-darwin-arm64` and `turbo-linux-64` -> `turbo`."""
    tokens = tokenize(name)
    _, _, platform_indices = _classify(tokens)
    return "-".join(t for i, t in enumerate(tokens) if i not in platform_indices)


# =============================================================================
# Binary headers
# =============================================================================

_ELF_MAGIC = b"\x7fELF"
_MACHO_MAGICS = {
    b"\xcf\xfa\xed\xfe": "little",  # 64-bit, little endian
    b"\xfe\xed\xfa\xcf": "big",  # 64-bit, big endian
}
_MACHO32_MAGICS = {b"\xce\xfa\xed\xfe", b"\xfe\xed\xfa\xce"}
_PE_MAGIC = b"MZ"

_ELF_MACHINES = {0x3E: Architecture.X64, 0xB7: Architecture.ARM64}
_MACHO_CPU_TYPES = {0x01000007: Architecture.X64, 0x0100000C: Architecture.ARM64}
_PE_MACHINES = {0x8664: Architecture.X64, 0xAA64: Architecture.ARM64}

_HEADER_BYTES = 64


def _inspect_header(path: Path) -> tuple[str | None, Platform | None]:
    """Return (binary format, platform) read from a file header.

    A recognized format always yields a platform; an unknown machine field
    gives `<os>-other`.
    """
    try:
        with open(path, "rb") as f:
            head = f.read(_HEADER_BYTES)
            if head[:4] == _ELF_MAGIC and len(head) >= 20:
                byteorder = "big" if head[5] == 2 else "little"
                machine = int.from_bytes(head[18:20], byteorder)
                arch = _ELF_MACHINES.get(machine, Architecture.OTHER)
                return "elf", Platform.of(OperatingSystem.LINUX, arch)

            if head[:4] in _MACHO_MAGICS and len(head) >= 8:
                cpu_type = int.from_bytes(head[4:8], _MACHO_MAGICS[head[:4]])
                arch = _MACHO_CPU_TYPES.get(cpu_type, Architecture.OTHER)
                return "macho", Platform.of(OperatingSystem.DARWIN, arch)

            if head[:4] in _MACHO32_MAGICS:
                return "macho", Platform.DARWIN_OTHER

            if head[:2] == _PE_MAGIC and len(head) >= 0x40:
                offset = int.from_bytes(head[0x3C:0x40], "little")
                f.seek(offset)
                pe = f.read(6)
                if pe[:4] != b"PE\x00\x00" or len(pe) < 6:
                    return None, None
                arch = _PE_MACHINES.get(int.from_bytes(pe[4:6], "little"), Architecture.OTHER)
                return "pe", Platform.of(OperatingSystem.WINDOWS, arch)
    except OSError:
        return None, None
    return None, None


def detect_binary_platform(path: str | os.PathLike) -> Platform | None:
    """Platform declared by a binary's header, or None if not recognized."""
    return _inspect_header(Path(path))[1]


def has_native_name(path: str | os.PathLike) -> bool:
    """Whether a file name looks like a native executable or shared library."""
    path = Path(path)
    return bool(NATIVE_SUFFIXES.intersection(path.suffixes)) or ".so." in path.name


def is_native_binary(path: str | os.PathLike) -> bool:
    """Whether a regular file is a native executable or shared library."""
    path = Path(path)
    if path.is_symlink() or not path.is_file():
        return False
    binary_format, _ = _inspect_header(path)
    if binary_format is not None:
        return True
    return has_native_name(path)


def tag_binary(path: Path, relative_to: Path) -> Platform | None:
    """Platform of a native binary: header first, then the closest tagged path segment.

    The path is consulted only when the header is not a recognized format.
    """
    platform = detect_binary_platform(path)
    if platform is not None:
        return platform
    for segment in reversed(path.relative_to(relative_to).parts):
        platform = platform_of(segment)
        if platform is not None:
            return platform
    return None
