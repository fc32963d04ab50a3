"""Tests for release delta orchestration."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from github import GithubException

from shiplog_core.config import DEFAULT_CONFIG
from shiplog_core.errors import AttemptChainTooLongError, ReleaseDeltaError
from shiplog_core.fetchers.remote import RemoteReconciliationFetcher
from shiplog_core.models import RangeResult, Run
from shiplog_core.paths import TargetPathSpec
from shiplog_core.resolver import _get_fetcher, build_target_spec, resolve_release_delta
from shiplog_core.workflow_config import PushTrigger, WorkflowConfig

DEPLOY = ".github/workflows/deploy.yml"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _run(run_id, conclusion="success", minutes_ago=0, previous_attempt_url=None):
    return Run(
        id=run_id,
        head_sha=f"{run_id:040d}",
        head_branch="main",
        created_at=T0 - timedelta(minutes=minutes_ago),
        path=DEPLOY,
        conclusion=conclusion,
        previous_attempt_url=previous_attempt_url,
    )


def _config(**overrides):
    config = dict(DEFAULT_CONFIG)
    config.update(overrides)
    return config


def _client(current, history=(), workflow=None):
    client = MagicMock()
    client.get_run.return_value = current
    client.get_previous_attempt.return_value = None
    client.get_runs_page.side_effect = lambda before, page, branch=None: list(history) if page == 0 else []
    client.get_workflow_config.return_value = workflow or WorkflowConfig(push=PushTrigger(paths=("apps/web/**",)))
    client.full_name = "org/app"
    client.html_url = "https://github.com/org/app"
    client.size_kb = 100
    return client


@pytest.fixture
def fetcher(mocker):
    fake = MagicMock()
    fake.NAME = "local"
    fake.fetch.return_value = RangeResult(diff="diff --git a/apps/web/a.ts b/apps/web/a.ts\n+x\n", commit_messages=("Ship it",))
    mocker.patch("shiplog_core.resolver._get_fetcher", return_value=fake)
    return fake


class TestResolveReleaseDelta:
    def test_happy_path(self, fetcher):
        current = _run(2)
        previous = _run(1, minutes_ago=30)
        client = _client(current, history=[previous])

        delta = resolve_release_delta("org/app", 2, _config(), client=client)

        fetcher.fetch.assert_called_once_with(previous.head_sha, current.head_sha, TargetPathSpec(included=("apps/web/**",)))
        assert delta.run is current
        assert delta.previous_run is previous
        assert delta.backend == "local"
        assert delta.result.commit_messages == ("Ship it",)
        assert delta.compare_url == f"https://github.com/org/app/compare/{previous.head_sha}...{current.head_sha}"

    def test_failed_run_is_skipped(self, fetcher):
        client = _client(_run(2, conclusion="failure"), history=[_run(1, minutes_ago=30)])
        assert resolve_release_delta("org/app", 2, _config(), client=client) is None
        client.get_runs_page.assert_not_called()
        fetcher.fetch.assert_not_called()

    def test_rerun_of_successful_run_is_skipped(self, fetcher):
        current = _run(2, previous_attempt_url="https://api.github.com/attempt/1")
        client = _client(current)
        client.get_previous_attempt.side_effect = lambda run: _run(2) if run is current else None

        assert resolve_release_delta("org/app", 2, _config(), client=client) is None
        fetcher.fetch.assert_not_called()

    def test_no_previous_successful_run(self, fetcher):
        client = _client(_run(2), history=[_run(1, conclusion="failure", minutes_ago=30)])
        assert resolve_release_delta("org/app", 2, _config(), client=client) is None
        fetcher.fetch.assert_not_called()

    def test_nothing_in_scope(self, fetcher):
        fetcher.fetch.return_value = None
        client = _client(_run(2), history=[_run(1, minutes_ago=30)])
        assert resolve_release_delta("org/app", 2, _config(), client=client) is None

    def test_skipped_runs_reported(self, fetcher):
        failed = _run(3, conclusion="failure", minutes_ago=10)
        client = _client(_run(4), history=[failed, _run(1, minutes_ago=30)])

        delta = resolve_release_delta("org/app", 4, _config(), client=client)

        assert delta.skipped_runs == [failed]
        assert delta.to_dict()["skipped_runs"][0]["id"] == 3

    def test_compare_url_follows_repository_host(self, fetcher):
        current = _run(2)
        previous = _run(1, minutes_ago=30)
        client = _client(current, history=[previous])
        client.html_url = "https://github.example.com/org/app"
        config = _config(github_base_url="https://github.example.com/api/v3")

        delta = resolve_release_delta("org/app", 2, config, client=client)

        assert delta.compare_url == (
            f"https://github.example.com/org/app/compare/{previous.head_sha}...{current.head_sha}"
        )
        assert delta.to_dict()["repo_url"] == "https://github.example.com/org/app"

    def test_to_dict_is_json_friendly(self, fetcher):
        client = _client(_run(2), history=[_run(1, minutes_ago=30)])
        data = resolve_release_delta("org/app", 2, _config(), client=client).to_dict()
        assert data["run"]["created_at"] == "2024-05-01T12:00:00+00:00"
        assert data["scope"] == {"included": ["apps/web/**"], "excluded": []}
        assert data["commit_messages"] == ["Ship it"]
        assert data["ordered"] is True


class TestFailures:
    def test_github_error_wrapped(self, fetcher):
        client = _client(_run(2))
        client.get_run.side_effect = GithubException(502, {"message": "Bad gateway"}, {})

        with pytest.raises(ReleaseDeltaError) as exc_info:
            resolve_release_delta("org/app", 2, _config(), client=client)

        assert isinstance(exc_info.value.__cause__, GithubException)

    def test_chain_too_long_wrapped(self, fetcher):
        current = _run(2, previous_attempt_url="x")
        client = _client(current)
        client.get_previous_attempt.side_effect = lambda run: _run(2, conclusion="failure", previous_attempt_url="x")

        with pytest.raises(ReleaseDeltaError) as exc_info:
            resolve_release_delta("org/app", 2, _config(max_attempt_hops=5), client=client)

        assert isinstance(exc_info.value.__cause__, AttemptChainTooLongError)

    def test_fetch_error_wrapped(self, fetcher):
        fetcher.fetch.side_effect = RuntimeError("disk full")
        client = _client(_run(2), history=[_run(1, minutes_ago=30)])
        with pytest.raises(ReleaseDeltaError, match="disk full"):
            resolve_release_delta("org/app", 2, _config(), client=client)

    def test_missing_credentials(self, mocker):
        mocker.patch("shiplog_core.resolver.credentials_from_config", return_value=None)
        with pytest.raises(ReleaseDeltaError, match="credentials"):
            resolve_release_delta("org/app", 2, _config())


class TestBuildTargetSpec:
    def test_explicit_paths_win(self):
        client = _client(_run(2))
        spec = build_target_spec(client, _run(2), _config(paths="apps/api/**"))
        assert spec.included == ("apps/api/**",)
        client.get_workflow_config.assert_not_called()

    def test_workflow_filters_used_by_default(self):
        client = _client(_run(2))
        spec = build_target_spec(client, _run(2), _config())
        assert spec.included == ("apps/web/**",)

    def test_workflow_without_filters(self):
        client = _client(_run(2), workflow=WorkflowConfig(push=PushTrigger()))
        assert build_target_spec(client, _run(2), _config()) is None


class TestGetFetcher:
    def test_large_repo_uses_remote(self):
        client = _client(_run(2))
        client.size_kb = 60001
        fetcher = _get_fetcher("auto", client, _config(), None)
        assert isinstance(fetcher, RemoteReconciliationFetcher)

    def test_small_repo_uses_local_clone(self, mocker):
        open_or_clone = mocker.patch("shiplog_core.resolver.LocalRepoFetcher.open_or_clone")
        client = _client(_run(2))
        client.size_kb = 60000
        client.clone_url = "https://github.com/org/app.git"

        _get_fetcher("auto", client, _config(repos_dir="/tmp/clones"), None)

        open_or_clone.assert_called_once_with(
            "org/app", "https://github.com/org/app.git", "/tmp/clones", credentials=None
        )

    def test_forced_remote(self):
        client = _client(_run(2))
        assert isinstance(_get_fetcher("remote", client, _config(), None), RemoteReconciliationFetcher)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            _get_fetcher("ftp", _client(_run(2)), _config(), None)
