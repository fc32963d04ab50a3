"""Tests for workflow file parsing."""

import pytest

from shiplog_core.errors import WorkflowConfigError
from shiplog_core.paths import TargetPathSpec
from shiplog_core.workflow_config import PushTrigger, WorkflowConfig

DEPLOY_WORKFLOW = """\
name: Deploy web
on:
  push:
    branches: [main]
    paths:
      - apps/web/**
      - libs/ui/**
    paths-ignore:
      - apps/web/**/*.md
jobs:
  deploy:
    runs-on: ubuntu-latest
"""


class TestParse:
    def test_push_paths_and_ignores(self):
        config = WorkflowConfig.parse(DEPLOY_WORKFLOW)
        assert config.name == "Deploy web"
        assert config.push == PushTrigger(
            paths=("apps/web/**", "libs/ui/**"),
            paths_ignore=("apps/web/**/*.md",),
        )

    def test_bare_on_key_read_as_boolean(self):
        # YAML 1.1 turns an unquoted `on` into True; it must still be found.
        config = WorkflowConfig.parse("on:\n  push:\n    paths: ['src/**']\n")
        assert config.push.paths == ("src/**",)

    def test_quoted_on_key(self):
        config = WorkflowConfig.parse("'on':\n  push:\n    paths: ['src/**']\n")
        assert config.push.paths == ("src/**",)

    def test_on_as_string(self):
        assert WorkflowConfig.parse("on: push\n").push == PushTrigger()
        assert WorkflowConfig.parse("on: workflow_dispatch\n").push is None

    def test_on_as_list(self):
        assert WorkflowConfig.parse("on: [push, pull_request]\n").push == PushTrigger()
        assert WorkflowConfig.parse("on: [pull_request]\n").push is None

    def test_empty_push(self):
        assert WorkflowConfig.parse("on:\n  push:\n").push == PushTrigger()

    def test_no_push_trigger(self):
        config = WorkflowConfig.parse("on:\n  workflow_dispatch: {}\n")
        assert config.push is None

    def test_no_triggers(self):
        assert WorkflowConfig.parse("name: x\n").push is None

    def test_empty_document(self):
        assert WorkflowConfig.parse("") == WorkflowConfig()

    def test_single_string_path(self):
        config = WorkflowConfig.parse("on:\n  push:\n    paths: apps/web/**\n")
        assert config.push.paths == ("apps/web/**",)


class TestInvalid:
    def test_invalid_yaml(self):
        with pytest.raises(WorkflowConfigError, match="invalid YAML"):
            WorkflowConfig.parse("on: [push\n", source="deploy.yml")

    def test_top_level_not_mapping(self):
        with pytest.raises(WorkflowConfigError, match="mapping"):
            WorkflowConfig.parse("- a\n- b\n")

    def test_on_wrong_type(self):
        with pytest.raises(WorkflowConfigError, match="`on`"):
            WorkflowConfig.parse("on: 42\n")

    def test_push_wrong_type(self):
        with pytest.raises(WorkflowConfigError, match="on.push"):
            WorkflowConfig.parse("on:\n  push: [main]\n")

    def test_paths_not_strings(self):
        with pytest.raises(WorkflowConfigError, match="on.push.paths"):
            WorkflowConfig.parse("on:\n  push:\n    paths:\n      - a: b\n")

    def test_name_not_string(self):
        with pytest.raises(WorkflowConfigError, match="name"):
            WorkflowConfig.parse("name: [x]\non: push\n")


class TestLoad:
    def test_load_from_file(self, tmp_path):
        path = tmp_path / "deploy.yml"
        path.write_text(DEPLOY_WORKFLOW)
        assert WorkflowConfig.load(path).name == "Deploy web"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            WorkflowConfig.load(tmp_path / "nope.yml")


def test_workflow_filters_scope_paths():
    spec = TargetPathSpec.from_workflow_config(WorkflowConfig.parse(DEPLOY_WORKFLOW))
    assert spec.is_included("apps/web/src/app.ts")
    assert spec.is_included("libs/ui/button.tsx")
    assert not spec.is_included("apps/web/README.md")
    assert not spec.is_included("apps/api/main.py")
