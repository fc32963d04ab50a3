"""Release delta orchestration for one deploy run."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from shiplog_core.attempts import AttemptChain
from shiplog_core.diff import DiffDocument
from shiplog_core.errors import ReleaseDeltaError
from shiplog_core.fetchers.base import RangeFetcher
from shiplog_core.fetchers.local import LocalRepoFetcher
from shiplog_core.fetchers.remote import RemoteReconciliationFetcher
from shiplog_core.gh.auth import CredentialProvider, credentials_from_config
from shiplog_core.gh.client import GitHubRepoClient
from shiplog_core.history import find_previous_successful_run
from shiplog_core.models import RangeResult, Run
from shiplog_core.paths import TargetPathSpec, scope_description

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "local", "remote")


@dataclass
class ReleaseDelta:
    """Everything the summarizer and notifiers need about one release.

    ``result`` is the scoped diff and commit messages; the runs are there so
    PR and Jira correlation can also look at deploys that failed in between.
    """

    repo: str
    run: Run
    previous_run: Run
    result: RangeResult
    backend: str
    repo_url: str
    spec: TargetPathSpec | None = None
    skipped_runs: list[Run] = field(default_factory=list)
    resolved_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def compare_url(self) -> str:
        return f"{self.repo_url}/compare/{self.previous_run.head_sha}...{self.run.head_sha}"

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "repo_url": self.repo_url,
            "run": _run_dict(self.run),
            "previous_run": _run_dict(self.previous_run),
            "skipped_runs": [_run_dict(r) for r in self.skipped_runs],
            "backend": self.backend,
            "scope": {
                "included": list(self.spec.included) if self.spec else [],
                "excluded": list(self.spec.excluded) if self.spec else [],
            },
            "compare_url": self.compare_url,
            "diff": self.result.diff,
            "commit_messages": list(self.result.commit_messages),
            "ordered": self.result.ordered,
            "resolved_at": self.resolved_at,
        }


def _run_dict(run: Run) -> dict:
    data = asdict(run)
    data["created_at"] = run.created_at.isoformat()
    return data


def build_target_spec(client: GitHubRepoClient, run: Run, config: dict) -> TargetPathSpec | None:
    """Explicit ``paths`` input wins; otherwise use the workflow's push filters."""
    explicit = config.get("paths")
    if explicit:
        logger.info("Using explicit path filters")
        return TargetPathSpec.from_input(explicit)
    return TargetPathSpec.from_workflow_config(client.get_workflow_config(run))


def _get_fetcher(
    backend: str,
    client: GitHubRepoClient,
    config: dict,
    credentials: CredentialProvider | None,
) -> RangeFetcher:
    if backend == "auto":
        too_large = client.size_kb > config["clone_size_limit_kb"]
        backend = "remote" if too_large else "local"
        logger.info("Repository is %d KB; using %s backend", client.size_kb, backend)
    if backend == "remote":
        return RemoteReconciliationFetcher(client, max_workers=config["pr_file_workers"])
    if backend == "local":
        return LocalRepoFetcher.open_or_clone(
            client.full_name,
            client.clone_url,
            config["repos_dir"],
            credentials=credentials,
        )
    raise ValueError(f"Unknown backend: {backend!r}. Choose one of {', '.join(BACKENDS)}.")


def resolve_release_delta(
    repo: str,
    run_id: int,
    config: dict,
    client: GitHubRepoClient | None = None,
    credentials: CredentialProvider | None = None,
    backend: str = "auto",
) -> ReleaseDelta | None:
    """Work out what a deploy run shipped since the previous successful deploy.

    Returns None when there is nothing to announce: the run is not the first
    successful attempt of its retry chain, no earlier deploy succeeded, or
    nothing in scope changed. Every failure is raised as ReleaseDeltaError
    with the original exception as its cause.
    """
    try:
        return _resolve(repo, run_id, config, client, credentials, backend)
    except ReleaseDeltaError:
        raise
    except Exception as e:
        logger.error("Release delta for %s run %s failed: %s", repo, run_id, e)
        raise ReleaseDeltaError(f"Could not resolve release delta for {repo} run {run_id}: {e}") from e


def _resolve(
    repo: str,
    run_id: int,
    config: dict,
    client: GitHubRepoClient | None,
    credentials: CredentialProvider | None,
    backend: str,
) -> ReleaseDelta | None:
    if client is None:
        credentials = credentials or credentials_from_config(config)
        if credentials is None:
            raise ReleaseDeltaError("No GitHub credentials configured.")
        client = GitHubRepoClient.connect(
            repo,
            credentials,
            base_url=config["github_base_url"],
            per_page=config["per_page"],
        )

    run = client.get_run(run_id)
    chain = AttemptChain(client, max_hops=config["max_attempt_hops"])

    if not chain.is_first_successful_attempt(run):
        logger.info("Run %s is not the first successful attempt; skipping", run_id)
        return None

    search = find_previous_successful_run(client, chain, run, branch_scoped=config["branch_scoped"])
    if search is None:
        logger.info("No previous successful run; skipping")
        return None

    spec = build_target_spec(client, run, config)
    logger.info("Scope: %s", scope_description(spec))

    fetcher = _get_fetcher(backend, client, config, credentials)
    result = fetcher.fetch(search.previous.head_sha, run.head_sha, spec)
    if result is None:
        if spec is not None:
            logger.warning("No changes matched the workflow's path filters; these may be wrong if this is unexpected")
        return None

    logger.info(
        "Release delta: %d file(s), %d commit message(s)",
        len(DiffDocument.parse(result.diff).sections),
        len(result.commit_messages),
    )
    return ReleaseDelta(
        repo=repo,
        run=run,
        previous_run=search.previous,
        result=result,
        backend=fetcher.NAME,
        repo_url=client.html_url,
        spec=spec,
        skipped_runs=list(search.skipped_runs),
    )
