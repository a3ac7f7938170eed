import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from nanode_builder.variant import BuildConfiguration

CONFIGURE_FILE = "configure.py"

# Always forced on, whatever the variant asks for.
BASE_REPLACEMENTS = (
    ("options.without_npm", "True"),
    ("options.without_corepack", "True"),
    ("options.without_amaro", "True"),
    ("options.without_sqlite", "True"),
    ("options.without_inspector", "True"),
)


class PatchDriftError(Exception):
    """Raised in strict mode when an expected token is gone from the patched file."""

    def __init__(self, path: Path, missing: List[str]) -> None:
        self.path = path
        self.missing = missing
        super().__init__(f"{path}: token(s) not found: {', '.join(missing)}")


@dataclass(frozen=True)
class PatchStep:
    name: str
    enabled: Callable[[BuildConfiguration], bool]
    replacements: Tuple[Tuple[str, str], ...]

    def apply(self, code: str) -> str:
        for token, value in self.replacements:
            code = code.replace(token, value)
        return code


def build_patch_plan(config: BuildConfiguration, host_platform: Optional[str] = None) -> List[PatchStep]:
    if host_platform is None:
        host_platform = sys.platform
    lto_token = "options.with_ltcg" if host_platform == "win32" else "options.enable_lto"

    steps = (
        PatchStep(
            "pointer-compression",
            lambda c: c.pointer_compression,
            (("options.v8_enable_pointer_compression", "True"),),
        ),
        PatchStep(
            "v8-opts",
            lambda c: c.v8_opts,
            (
                ("options.v8_disable_object_print", "True"),
                ("options.v8_enable_object_print", "False"),
                ("options.without_inspector", "True"),
                ("options.v8_enable_i18n_support", "False"),
            ),
        ),
        PatchStep(
            "no-jit",
            lambda c: c.no_jit,
            (("options.v8_lite_mode", "True"),),
        ),
        PatchStep(
            "lto",
            lambda c: c.use_lto,
            ((lto_token, "True"),),
        ),
        PatchStep("strip-bundled", lambda c: True, BASE_REPLACEMENTS),
    )
    return [step for step in steps if step.enabled(config)]


def patch_file(path: Path, transform: Callable[[str], str]) -> None:
    path.write_text(transform(path.read_text()))


def apply_patch_plan(plan: List[PatchStep], path: Path, strict: bool = False) -> Dict[str, int]:
    """Apply every step to ``path`` in order and write it back once.

    Returns how often each token matched at the moment its step ran. A token
    that matched nothing is left as a no-op unless ``strict`` is set.
    """
    counts: Dict[str, int] = {}

    def transform(code: str) -> str:
        for step in plan:
            for token, _ in step.replacements:
                counts[token] = counts.get(token, 0) + code.count(token)
            code = step.apply(code)
        if strict:
            missing = [token for token, n in counts.items() if n == 0]
            if missing:
                raise PatchDriftError(path, missing)
        return code

    patch_file(path, transform)
    return counts
