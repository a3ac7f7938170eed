import json
import os
import shutil
import stat
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn


# =========================
# GLOBALS
# =========================
console = Console()
LOG_COLOR = {
    "info": "cyan",
    "warning": "yellow",
    "error": "red",
    "success": "green",
    "step": "magenta",
    "run": "blue",
}


# =========================
# UTILITIES
# =========================
def die(msg: str) -> None:
    console.print(f"[{LOG_COLOR['error']}][FATAL][/]: {msg}")
    sys.exit(1)

def run(cmd: list[str], cwd: Optional[Path] = None, placeholder: Optional[str] = None, placeholder_column: Optional[str] = "Executing...") -> None:
    console.print(f"[{LOG_COLOR['run']}][RUN][/]: {' '.join(cmd)}")
    if placeholder is not None:
        console.print(f"[dim]{placeholder}[/dim]")
        console.print()  # blank line before spinner

        with Progress(
            SpinnerColumn(style="cyan"),
            TextColumn(placeholder_column),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("", start=True)
            subprocess.run(cmd, cwd=cwd, check=True)
    else:
        subprocess.run(cmd, cwd=cwd, check=True)

def force_rmtree(path: Path) -> None:
    # git checkouts on Windows carry read-only pack files
    def make_writable(func, p, _exc) -> None:
        os.chmod(p, stat.S_IWRITE)
        func(p)

    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=make_writable)
    else:
        shutil.rmtree(path, onerror=make_writable)

def capture(cmd: list[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)

def read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        die(f"Failed to read JSON config {path}: {e}")

def log_step(msg: str) -> None:
    console.print(f"[{LOG_COLOR['step']}][STEP][/]: {msg}")

def log_info(msg: str) -> None:
    console.print(f"[{LOG_COLOR['info']}][INFO][/]: {msg}")

def log_warn(msg: str) -> None:
    console.print(f"[{LOG_COLOR['warning']}][WARNING][/]: {msg}")

def log_error(msg: str) -> None:
    console.print(f"[{LOG_COLOR['error']}][ERROR][/]: {msg}")

def log_success(msg: str) -> None:
    console.print(f"[{LOG_COLOR['success']}][DONE][/]: {msg}")
