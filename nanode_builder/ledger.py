import json
from pathlib import Path
from typing import List, Optional

from nanode_builder.utils import capture, log_info, run
from nanode_builder.variant import BuildConfiguration, compute_identity


# =========================
# RELEASE HOST (gh CLI)
# =========================
class GitHubReleaseHost:
    """Thin wrapper over ``gh release`` for one ``owner/repo``."""

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def get_release_assets(self, tag: str) -> Optional[List[str]]:
        """Asset names of the release tagged ``tag``, or None if it does not exist."""
        r = capture(["gh", "release", "view", tag, "--repo", self.slug, "--json", "assets"])
        if r.returncode != 0:
            return None
        data = json.loads(r.stdout or "{}")
        return [asset["name"] for asset in data.get("assets", [])]

    def create_or_update_release(
        self,
        tag: str,
        release_name: str,
        release_notes: str,
        upload_file_path: Path,
    ) -> None:
        if self.get_release_assets(tag) is None:
            log_info(f"Creating release {tag} on {self.slug}")
            run([
                "gh", "release", "create", tag,
                "--repo", self.slug,
                "--title", release_name,
                "--notes", release_notes,
            ])
        run([
            "gh", "release", "upload", tag,
            str(upload_file_path),
            "--repo", self.slug,
            "--clobber",
        ])


# =========================
# LEDGER
# =========================
def already_published(release_host, config: BuildConfiguration, dispatcher) -> bool:
    expected = dispatcher.expected_asset_name(compute_identity(config))
    assets = release_host.get_release_assets(config.version)
    if assets is None:
        log_info(f"No release tagged {config.version} yet")
        return False
    return expected in assets
