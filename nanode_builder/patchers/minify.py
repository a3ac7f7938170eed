from pathlib import Path

from nanode_builder.utils import log_step, log_success, run

UNDICI_BUNDLE = "deps/undici/undici.js"


def minify_js(node_dir: Path) -> None:
    bundle = node_dir / UNDICI_BUNDLE
    if not bundle.exists():
        raise FileNotFoundError(f"undici bundle not found: {bundle}")

    before = bundle.stat().st_size
    log_step(f"Minifying {UNDICI_BUNDLE}")
    run(
        [
            "npx", "--yes", "terser",
            str(bundle),
            "--compress",
            "--mangle",
            "--output", str(bundle),
        ],
        cwd=node_dir,
    )
    log_success(f"Minified {UNDICI_BUNDLE}: {before} -> {bundle.stat().st_size} bytes")
