"""Release delta from a persistent local clone, backed by GitPython.

Used for repositories small enough to keep on disk. One bare clone per
repository lives under ``repos_dir`` and is reused across invocations: the
first run clones, later runs fetch every branch head so a previous deploy
built from another branch is still reachable. The clone is not locked;
concurrent invocations for the same repository must not overlap.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import git

from shiplog_core.fetchers.base import RangeFetcher

if TYPE_CHECKING:
    from shiplog_core.gh.auth import CredentialProvider
    from shiplog_core.paths import TargetPathSpec

logger = logging.getLogger(__name__)


def clone_path(repos_dir: str | Path, full_name: str) -> Path:
    """On-disk location of the clone for ``owner/name``."""
    return Path(repos_dir).expanduser() / full_name.replace("/", "__")


def auth_env(credentials: CredentialProvider | None) -> dict[str, str]:
    """Environment that makes git send the token as basic auth.

    Applied per command through GIT_CONFIG_*; the token is never written to
    the clone's config or embedded in a remote URL.
    """
    if credentials is None:
        return {}
    basic = base64.b64encode(f"x-access-token:{credentials.token()}".encode()).decode()
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": f"Authorization: Basic {basic}",
    }


class LocalRepoFetcher(RangeFetcher):
    NAME = "local"
    ORDERED = True

    def __init__(self, repo: git.Repo):
        self.repo = repo

    @classmethod
    def open_or_clone(
        cls,
        full_name: str,
        clone_url: str,
        repos_dir: str | Path,
        credentials: CredentialProvider | None = None,
    ) -> LocalRepoFetcher:
        path = clone_path(repos_dir, full_name)
        env = auth_env(credentials)

        if path.exists():
            logger.info("%s already cloned, fetching branches", full_name)
            repo = git.Repo(path)
            repo.git.fetch("origin", "+refs/heads/*:refs/heads/*", env=env)
        else:
            logger.info("Cloning %s into %s", full_name, path)
            path.parent.mkdir(parents=True, exist_ok=True)
            repo = git.Repo.clone_from(clone_url, path, bare=True, env=env)

        return cls(repo)

    def diff(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> str:
        patch = self.repo.git.diff(old_sha, new_sha, "--no-color", "--no-ext-diff")
        # GitPython strips the final newline of command output.
        if patch:
            patch += "\n"
        return self.apply_scope(patch, spec)

    def commit_messages(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> list[str]:
        """Messages of commits reachable from new_sha but not old_sha, newest first."""
        logger.info("Walking commits %s..%s", old_sha[:7], new_sha[:7])
        messages: list[str] = []
        for commit in self.repo.iter_commits(f"{old_sha}..{new_sha}"):
            if spec is not None and not any(spec.is_included(p) for p in self.changed_paths(commit)):
                logger.debug("Skipping out-of-scope commit %s", commit.hexsha[:7])
                continue
            messages.append(commit.message.rstrip())
        return messages

    def changed_paths(self, commit: git.Commit) -> list[str]:
        """Paths the commit changed relative to its first parent.

        Root commits are compared against the empty tree. Both sides of each
        change are reported so deletions and moves are visible to scoping.
        """
        if commit.parents:
            changes = commit.parents[0].diff(commit)
        else:
            changes = commit.diff(git.NULL_TREE)

        paths: list[str] = []
        for change in changes:
            for path in (change.b_path, change.a_path):
                if path and path not in paths:
                    paths.append(path)
        return paths
