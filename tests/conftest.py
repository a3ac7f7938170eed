"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

import nanode_builder.dispatch as dispatch

CONFIGURE_SOURCE = """\
def configure_v8(o, configs):
  o['variables']['v8_enable_pointer_compression'] = 1 if options.v8_enable_pointer_compression else 0
  o['variables']['v8_enable_lite_mode'] = 1 if options.v8_lite_mode else 0
  o['variables']['v8_enable_object_print'] = 0 if options.v8_disable_object_print else 1
  o['variables']['v8_enable_i18n_support'] = 1 if options.v8_enable_i18n_support else 0
  o['variables']['v8_print_objects'] = 1 if options.v8_enable_object_print else 0
  o['variables']['enable_lto'] = b(options.enable_lto)
  o['variables']['node_with_ltcg'] = b(options.with_ltcg)
  o['variables']['node_install_npm'] = b(not options.without_npm)
  o['variables']['node_install_corepack'] = b(not options.without_corepack)
  o['variables']['node_use_amaro'] = b(not options.without_amaro)
  o['variables']['node_use_sqlite'] = b(not options.without_sqlite)
  o['variables']['v8_enable_inspector'] = 0 if options.without_inspector else 1
"""


class FakeReleaseHost:
    def __init__(self, assets: dict[str, list[str]] | None = None) -> None:
        self.assets = assets or {}
        self.uploads: list[tuple[str, str, bytes]] = []
        self.lookups: list[str] = []

    def get_release_assets(self, tag: str) -> list[str] | None:
        self.lookups.append(tag)
        return self.assets.get(tag)

    def create_or_update_release(self, tag, release_name, release_notes, upload_file_path) -> None:
        path = Path(upload_file_path)
        self.uploads.append((tag, path.name, path.read_bytes()))
        self.assets.setdefault(tag, []).append(path.name)


class FakeClone:
    def __init__(self, source: str = CONFIGURE_SOURCE) -> None:
        self.source = source
        self.calls: list[tuple[str, Path]] = []

    def __call__(self, version: str, out_dir: Path) -> None:
        self.calls.append((version, out_dir))
        out_dir.mkdir(parents=True)
        (out_dir / "configure.py").write_text(self.source)


class BuildTools:
    """Stand-in for the build toolchain behind ``dispatch.run``."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.commands: list[list[str]] = []
        self.cwds: list[Path] = []

    def __call__(self, cmd, cwd=None, placeholder=None, placeholder_column=None) -> None:
        self.commands.append(list(cmd))
        self.cwds.append(Path(cwd))
        if self.fail_on is not None and self.fail_on in cmd:
            raise subprocess.CalledProcessError(2, cmd)

        release = Path(cwd) / "out" / "Release"
        if cmd[:3] == ["cmd", "/c", "vcbuild.bat"]:
            release.mkdir(parents=True, exist_ok=True)
            (release / "node.exe").write_bytes(b"node.exe")
            (release / "node.pdb").write_bytes(b"node.pdb")
        elif cmd[0] == "make":
            release.mkdir(parents=True, exist_ok=True)
            (release / "node").write_bytes(b"node")
        elif cmd[0] == "upx":
            target = Path(cwd) / cmd[-1]
            target.write_bytes(b"upx:" + target.read_bytes())


@pytest.fixture
def build_tools(monkeypatch: pytest.MonkeyPatch) -> BuildTools:
    tools = BuildTools()
    monkeypatch.setattr(dispatch, "run", tools)
    return tools


@pytest.fixture
def release_host() -> FakeReleaseHost:
    return FakeReleaseHost()


@pytest.fixture
def fake_clone() -> FakeClone:
    return FakeClone()
