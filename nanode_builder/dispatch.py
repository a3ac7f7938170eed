import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from nanode_builder.utils import log_step, log_success, run
from nanode_builder.variant import BuildConfiguration, compute_identity, parse_version

CLANG_CL_MIN_MAJOR = 22
MAKE_JOBS = 4
UPX_CMD = ["upx", "--best", "--ultra-brute"]


class PreconditionError(Exception):
    """The requested feature cannot be built for this platform or version."""


@dataclass(frozen=True)
class ArtifactDescriptor:
    name: str
    local_path: Path


def stage_artifact(src: Path, staging: Path, name: str) -> ArtifactDescriptor:
    dst = staging / name
    shutil.copy2(src, dst)
    log_success(f"Staged {name}")
    return ArtifactDescriptor(name, dst)


class BuildDispatcher:
    platform = ""
    binary = ""
    extension = ""

    def check_preconditions(self, config: BuildConfiguration) -> None:
        raise NotImplementedError

    def build(self, config: BuildConfiguration, node_dir: Path) -> None:
        raise NotImplementedError

    def extra_artifacts(self, identity: str, node_dir: Path, staging: Path) -> List[ArtifactDescriptor]:
        return []

    def expected_asset_name(self, identity: str) -> str:
        return f"{identity}{self.extension}"

    def run_build(self, config: BuildConfiguration, node_dir: Path, staging: Path) -> List[ArtifactDescriptor]:
        identity = compute_identity(config)
        log_step(f"Building {identity} ({self.platform})")
        self.build(config, node_dir)

        binary = node_dir / self.binary
        artifacts = [stage_artifact(binary, staging, self.expected_asset_name(identity))]
        artifacts += self.extra_artifacts(identity, node_dir, staging)

        if config.make_upx_build:
            # upx rewrites the binary in place; the plain one is already staged.
            run(UPX_CMD + [self.binary], cwd=node_dir, placeholder="Compressing binary with upx...", placeholder_column="Compressing...")
            artifacts.append(stage_artifact(binary, staging, f"{identity}-upx{self.extension}"))
        return artifacts


class WindowsBuildDispatcher(BuildDispatcher):
    platform = "win32"
    binary = "out/Release/node.exe"
    extension = ".exe"
    symbols = "out/Release/node.pdb"

    ICU_ARGS = {
        "full": "full-icu",
        "small": "small-icu",
        "none": "intl-none",
    }

    def check_preconditions(self, config: BuildConfiguration) -> None:
        if config.icu_mode not in self.ICU_ARGS:
            raise PreconditionError(f"icu_mode={config.icu_mode} is not supported by vcbuild.bat")
        if config.win_use_clang_cl:
            try:
                major = parse_version(config.version)
            except ValueError as e:
                raise PreconditionError(str(e)) from e
            if major < CLANG_CL_MIN_MAJOR:
                raise PreconditionError(f"win_use_clang_cl is only supported on Node.js {CLANG_CL_MIN_MAJOR} and above")

    def build(self, config: BuildConfiguration, node_dir: Path) -> None:
        cmd = ["cmd", "/c", "vcbuild.bat", config.target_arch, self.ICU_ARGS[config.icu_mode]]
        if config.win_use_clang_cl:
            cmd.append("clang-cl")
        run(cmd, cwd=node_dir, placeholder="Running vcbuild.bat...", placeholder_column="Building...")

    def extra_artifacts(self, identity: str, node_dir: Path, staging: Path) -> List[ArtifactDescriptor]:
        return [stage_artifact(node_dir / self.symbols, staging, f"{identity}.pdb")]


class PosixBuildDispatcher(BuildDispatcher):
    platform = "posix"
    binary = "out/Release/node"

    def check_preconditions(self, config: BuildConfiguration) -> None:
        if config.win_use_clang_cl:
            raise PreconditionError("win_use_clang_cl is only supported on Windows")

    def build(self, config: BuildConfiguration, node_dir: Path) -> None:
        intl = "none" if config.icu_mode == "none" else f"{config.icu_mode}-icu"
        run(["./configure", f"--with-intl={intl}"], cwd=node_dir)
        run(["make", f"-j{MAKE_JOBS}"], cwd=node_dir, placeholder="Compiling node...", placeholder_column="Building...")
        run(["strip", self.binary], cwd=node_dir)


def select_dispatcher(host_platform: Optional[str] = None) -> BuildDispatcher:
    if host_platform is None:
        host_platform = sys.platform
    if host_platform == "win32":
        return WindowsBuildDispatcher()
    return PosixBuildDispatcher()
