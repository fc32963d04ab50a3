"""Typed view of a GitHub Actions workflow file.

Only the parts the release delta needs are modelled: the workflow name and
the push trigger's ``paths`` / ``paths-ignore`` filters. Structural problems
are rejected while parsing, so nothing downstream has to second-guess the
shape of the document.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from shiplog_core.errors import WorkflowConfigError


@dataclass(frozen=True)
class PushTrigger:
    paths: tuple[str, ...] | None = None
    paths_ignore: tuple[str, ...] | None = None


@dataclass(frozen=True)
class WorkflowConfig:
    name: str | None = None
    push: PushTrigger | None = None

    @classmethod
    def parse(cls, text: str, source: str = "<workflow>") -> WorkflowConfig:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise WorkflowConfigError(f"{source}: invalid YAML: {e}") from e

        if document is None:
            return cls()
        if not isinstance(document, dict):
            raise WorkflowConfigError(f"{source}: expected a mapping at the top level")

        # YAML 1.1 reads a bare `on:` key as the boolean True.
        triggers = document.get("on", document.get(True))
        name = document.get("name")
        if name is not None and not isinstance(name, str):
            raise WorkflowConfigError(f"{source}: `name` must be a string")

        return cls(name=name, push=_parse_push(triggers, source))

    @classmethod
    def load(cls, path: str | Path) -> WorkflowConfig:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Workflow file not found: {path}")
        return cls.parse(p.read_text(), source=str(p))


def _parse_push(triggers, source: str) -> PushTrigger | None:
    if triggers is None:
        return None
    if isinstance(triggers, str):
        return PushTrigger() if triggers == "push" else None
    if isinstance(triggers, list):
        return PushTrigger() if "push" in triggers else None
    if not isinstance(triggers, dict):
        raise WorkflowConfigError(f"{source}: `on` must be a string, list or mapping")

    if "push" not in triggers:
        return None
    push = triggers["push"]
    if push is None:
        return PushTrigger()
    if not isinstance(push, dict):
        raise WorkflowConfigError(f"{source}: `on.push` must be a mapping")

    return PushTrigger(
        paths=_string_list(push.get("paths"), "on.push.paths", source),
        paths_ignore=_string_list(push.get("paths-ignore"), "on.push.paths-ignore", source),
    )


def _string_list(value, key: str, source: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise WorkflowConfigError(f"{source}: `{key}` must be a list of strings")
    return tuple(value)
