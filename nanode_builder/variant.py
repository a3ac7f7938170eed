import re
from dataclasses import dataclass, fields
from typing import Any, Dict

ICU_MODES = ("full", "small", "system", "none")
TARGET_ARCHS = ("x64", "arm64", "x86")

# Suffix tokens appended to the build name, in this order, when the flag is set.
FLAG_SUFFIXES = (
    ("v8_opts", "-v8_opts"),
    ("no_jit", "-nojit"),
    ("use_lto", "-lto"),
    ("win_use_clang_cl", "-clang"),
    ("pointer_compression", "-ptr_compr"),
)

VERSION_RE = re.compile(r"^\s*v?(\d+)")


@dataclass(frozen=True)
class BuildConfiguration:
    version: str = "v18.x"
    icu_mode: str = "full"
    v8_opts: bool = False
    target_arch: str = "x64"
    no_jit: bool = False
    use_lto: bool = False
    win_use_clang_cl: bool = False
    pointer_compression: bool = False
    make_upx_build: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.version, str) or not self.version:
            raise ValueError("version must be a non-empty string")
        if "/" in self.version or "\\" in self.version:
            raise ValueError(f"version must not contain path separators, got {self.version!r}")
        if self.icu_mode not in ICU_MODES:
            raise ValueError(f"icu_mode must be one of {', '.join(ICU_MODES)}, got {self.icu_mode!r}")
        if self.target_arch not in TARGET_ARCHS:
            raise ValueError(f"target_arch must be one of {', '.join(TARGET_ARCHS)}, got {self.target_arch!r}")
        for f in fields(self):
            if f.type in (bool, "bool") and not isinstance(getattr(self, f.name), bool):
                raise ValueError(f"{f.name} must be a boolean")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildConfiguration":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown build option(s): {', '.join(unknown)}")
        return cls(**data)


def compute_identity(config: BuildConfiguration) -> str:
    suffixes = "".join(token for flag, token in FLAG_SUFFIXES if getattr(config, flag))
    return f"nanode-{config.version}-icu_{config.icu_mode}{suffixes}-{config.target_arch}"


def parse_version(version: str) -> int:
    match = VERSION_RE.match(version)
    if match is None:
        raise ValueError(f"Cannot parse major version from {version!r}")
    return int(match.group(1))
