#!/usr/bin/env python3
import subprocess
import sys
import tempfile
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from nanode_builder.dispatch import BuildDispatcher, PreconditionError, select_dispatcher
from nanode_builder.ledger import GitHubReleaseHost, already_published
from nanode_builder.patchers.configure_patcher import CONFIGURE_FILE, PatchDriftError, apply_patch_plan, build_patch_plan
from nanode_builder.patchers.minify import minify_js
from nanode_builder.utils import (
    LOG_COLOR,
    console,
    die,
    force_rmtree,
    log_error,
    log_info,
    log_step,
    log_success,
    log_warn,
    read_json,
    run,
)
from nanode_builder.variant import BuildConfiguration, compute_identity

NODE_REPO_URL = "https://github.com/nodejs/node"

ABORTED = "aborted"
SKIPPED = "skipped"
PUBLISHED = "published"

REQUIRED_KEYS = {
    "release": dict,
    "workspace_dir": str,
    "builds": list,
}

RELEASE_KEYS = {
    "owner": str,
    "repo": str,
}

OPTIONAL_KEYS = {
    "upstream_url": str,
    "strict_patches": bool,
    "confirm": bool,
}

VARIANT_COLUMNS = (
    "icu_mode",
    "target_arch",
    "v8_opts",
    "no_jit",
    "use_lto",
    "win_use_clang_cl",
    "pointer_compression",
    "make_upx_build",
)


# =========================
# CONFIG VALIDATION
# =========================
def validate_config(cfg: Dict[str, Any]) -> List[BuildConfiguration]:
    for k, t in REQUIRED_KEYS.items():
        if k not in cfg or not isinstance(cfg[k], t):
            die(f"Missing or invalid config key: {k}")
    for k, t in RELEASE_KEYS.items():
        if k not in cfg["release"] or not isinstance(cfg["release"][k], t):
            die(f"Missing or invalid release.{k}")
    for k, t in OPTIONAL_KEYS.items():
        if k in cfg and not isinstance(cfg[k], t):
            die(f"Invalid {k}")

    builds = []
    for i, entry in enumerate(cfg["builds"]):
        if not isinstance(entry, dict):
            die(f"builds[{i}] must be an object")
        try:
            builds.append(BuildConfiguration.from_dict(entry))
        except (TypeError, ValueError) as e:
            die(f"Invalid builds[{i}]: {e}")
    return builds

def display_intro(cfg: Dict[str, Any], builds: List[BuildConfiguration]) -> None:
    console.rule("[bold green]Nanode Builder Configuration Overview[/]")

    general = Table(show_header=True, header_style="bold magenta")
    general.add_column("Option", style="cyan")
    general.add_column("Value", style="yellow")
    general.add_row("release", f"{cfg['release']['owner']}/{cfg['release']['repo']}")
    general.add_row("workspace_dir", cfg["workspace_dir"])
    general.add_row("upstream_url", cfg.get("upstream_url", NODE_REPO_URL))
    console.print("[bold underline]General Options[/]")
    console.print(general)

    variants = Table(show_header=True, header_style="bold magenta")
    variants.add_column("Variant", style="cyan")
    for name in VARIANT_COLUMNS:
        variants.add_column(name, style="yellow")
    for build in builds:
        row = asdict(build)
        cells = []
        for name in VARIANT_COLUMNS:
            v = row[name]
            if isinstance(v, bool):
                cells.append("[green]True[/]" if v else "[red]False[/]")
            else:
                cells.append(str(v))
        variants.add_row(compute_identity(build), *cells)
    console.print("[bold underline]Variants[/]")
    console.print(variants)

    if cfg.get("confirm", False) and not Confirm.ask("[?] Are these configuration options correct?", default=True):
        die("User aborted. Please update config and retry.")


# =========================
# NODE CLONE & WORKSPACE
# =========================
def clone_node(version: str, out_dir: Path, url: str = NODE_REPO_URL) -> None:
    run([
        "git", "clone",
        "--depth", "1",
        "--single-branch",
        "--branch", version,
        url,
        str(out_dir)
    ], placeholder=f"Cloning {url} at {version}...", placeholder_column="Cloning...")

@contextmanager
def workspace(root: Path, identity: str, version: str, clone: Callable[[str, Path], None]) -> Iterator[Path]:
    node_dir = root / identity
    if node_dir.exists():
        log_warn(f"Removing leftover workspace: {node_dir}")
        force_rmtree(node_dir)
    root.mkdir(parents=True, exist_ok=True)

    try:
        log_step(f"Cloning Node.js {version} into {node_dir}")
        clone(version, node_dir)
        yield node_dir
    finally:
        if node_dir.exists():
            force_rmtree(node_dir)
        log_info(f"Workspace removed: {node_dir}")


# =========================
# BUILD & UPLOAD
# =========================
def build_and_upload(
    config: BuildConfiguration,
    *,
    release_host,
    workspace_root: Path,
    dispatcher: Optional[BuildDispatcher] = None,
    host_platform: Optional[str] = None,
    clone: Callable[[str, Path], None] = clone_node,
    minify: Callable[[Path], None] = minify_js,
    strict_patches: bool = False,
) -> str:
    if host_platform is None:
        host_platform = sys.platform
    if dispatcher is None:
        dispatcher = select_dispatcher(host_platform)

    try:
        dispatcher.check_preconditions(config)
    except PreconditionError as e:
        log_error(str(e))
        return ABORTED

    identity = compute_identity(config)
    log_info(f"Check if release exists: {identity}")
    if already_published(release_host, config, dispatcher):
        log_info("Release already exists, skipping")
        return SKIPPED

    with tempfile.TemporaryDirectory(prefix=f"{identity}-") as staging_dir:
        staging = Path(staging_dir)
        with workspace(Path(workspace_root), identity, config.version, clone) as node_dir:
            try:
                minify(node_dir)
            except (subprocess.CalledProcessError, OSError) as e:
                log_warn(f"Failed to minify JS: {e}")

            plan = build_patch_plan(config, host_platform)
            log_step(f"Patching {CONFIGURE_FILE}: {', '.join(step.name for step in plan)}")
            apply_patch_plan(plan, node_dir / CONFIGURE_FILE, strict=strict_patches)

            artifacts = dispatcher.run_build(config, node_dir, staging)

        for artifact in artifacts:
            log_step(f"Uploading {artifact.name} to release {config.version}")
            release_host.create_or_update_release(
                tag=config.version,
                release_name=config.version,
                release_notes="Upload",
                upload_file_path=artifact.local_path,
            )
    log_success(f"Published {identity}")
    return PUBLISHED


# =========================
# MAIN
# =========================
def main() -> None:
    if len(sys.argv) != 2:
        die("Usage: nanode-builder <config.json>")

    cfg = read_json(Path(sys.argv[1]))
    builds = validate_config(cfg)
    display_intro(cfg, builds)

    release_host = GitHubReleaseHost(cfg["release"]["owner"], cfg["release"]["repo"])
    workspace_root = Path(cfg["workspace_dir"]).resolve()
    url = cfg.get("upstream_url", NODE_REPO_URL)

    outcomes = []
    for build in builds:
        try:
            outcome = build_and_upload(
                build,
                release_host=release_host,
                workspace_root=workspace_root,
                clone=lambda version, out_dir: clone_node(version, out_dir, url),
                strict_patches=cfg.get("strict_patches", False),
            )
        except subprocess.CalledProcessError as e:
            die(f"Command failed: {e}")
        except PatchDriftError as e:
            die(f"configure.py drifted from the expected layout: {e}")
        except OSError as e:
            die(f"Build failed: {e}")
        outcomes.append((compute_identity(build), outcome))

    aborted = any(outcome == ABORTED for _, outcome in outcomes)
    summary = "\n".join(f"{name}: {outcome}" for name, outcome in outcomes)
    console.print(Panel(summary, title="Nanode builds", style=LOG_COLOR["warning" if aborted else "success"]))

if __name__ == "__main__":
    main()
