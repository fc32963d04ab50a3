"""GitHub credential providers.

Every component that talks to GitHub (the REST client and the local clone
backend) receives a CredentialProvider instead of reading a global token.
Each provider fetches its token at most once and caches it for the rest of
the invocation.

Resolution order used by ``credentials_from_config`` (stops at first hit):
  1. GITHUB_TOKEN (CI / explicit override, already merged into config)
  2. `gh auth token` (GitHub CLI session, for local runs)
  3. GitHub App installation token (GITHUB_APP_ID + private key + installation id)
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from abc import ABC, abstractmethod

from github import Auth, GithubIntegration

logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Lazily resolves a GitHub token once and hands out the cached value."""

    def __init__(self):
        self._token: str | None = None
        self._lock = threading.Lock()

    def token(self) -> str:
        # Reconciliation fans out to worker threads; only one may fetch.
        with self._lock:
            if self._token is None:
                self._token = self._fetch()
        return self._token

    def auth(self) -> Auth.Token:
        """PyGithub auth object wrapping the cached token."""
        return Auth.Token(self.token())

    @abstractmethod
    def _fetch(self) -> str:
        """Obtain a fresh token. Raise on failure; the result is cached."""


class StaticTokenProvider(CredentialProvider):
    def __init__(self, token: str):
        super().__init__()
        self._static = token

    def _fetch(self) -> str:
        return self._static


class AppInstallationTokenProvider(CredentialProvider):
    """Installation access token for a GitHub App.

    The token is valid for an hour, which comfortably covers a single
    webhook invocation; it is never refreshed.
    """

    def __init__(self, app_id: str, private_key: str, installation_id: int, base_url: str | None = None):
        super().__init__()
        self.app_id = app_id
        self.private_key = private_key
        self.installation_id = installation_id
        self.base_url = base_url

    def _fetch(self) -> str:
        logger.info("Fetching GitHub App installation token for installation %s", self.installation_id)
        kwargs = {"base_url": self.base_url} if self.base_url else {}
        integration = GithubIntegration(auth=Auth.AppAuth(self.app_id, self.private_key), **kwargs)
        return integration.get_access_token(self.installation_id).token


def resolve_github_token() -> str | None:
    """Return a GitHub token from the environment or the gh CLI, or None.

    Never raises: callers decide what a missing token means.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out.
        pass

    return None


def credentials_from_config(config: dict) -> CredentialProvider | None:
    """Pick a credential provider from a loaded config, or None if none apply."""
    token = config.get("github_token") or resolve_github_token()
    if token:
        return StaticTokenProvider(token)

    app_id = config.get("github_app_id")
    private_key = config.get("github_app_private_key")
    installation_id = config.get("github_app_installation_id")
    if app_id and private_key and installation_id:
        base_url = config.get("github_base_url")
        return AppInstallationTokenProvider(app_id, private_key, int(installation_id), base_url=base_url)

    return None
