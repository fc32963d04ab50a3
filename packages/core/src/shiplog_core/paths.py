"""Monorepo path scoping for release deltas.

A TargetPathSpec answers one question: does a change to this path belong to
the app being released? It is built either from an explicit list of globs
(the ``paths`` input) or from the deploy workflow's ``on.push.paths`` and
``on.push.paths-ignore`` filters, so the release delta sees exactly the files
that would have triggered the deploy in the first place.

Patterns use git wildmatch semantics via pathspec. ``*`` never crosses a
``/`` inside a pattern, ``**`` crosses directories and ``**/`` also matches
zero directories. As in gitignore, a pattern's last segment also matches
everything beneath a directory of that name, so ``apps/web/*`` covers
``apps/web/src/x.ts`` as well.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

from pathspec import PathSpec

from shiplog_core.errors import WorkflowConfigError
from shiplog_core.utils.ignored_paths import is_ignored_path

if TYPE_CHECKING:
    from shiplog_core.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)

_INPUT_SEPARATORS_RE = re.compile(r"[,\n]")
_GLOB_CHARS_RE = re.compile(r"[*\[\]?!+]")
_DIFF_HEADER = "diff --git "


class _SectionState(enum.Enum):
    IN_SCOPE = "in_scope"
    OUT_OF_SCOPE = "out_of_scope"


def _header_path(line: str) -> str | None:
    """Return the post-image path if ``line`` is a file header, else None.

    Splits on the last `` b/`` so paths that themselves contain ``b/``
    (``lib/``, ``web/``) are not cut short.
    """
    if not line.startswith(_DIFF_HEADER):
        return None
    header = line.rstrip("\r\n")
    if " b/" in header:
        return header.rsplit(" b/", 1)[1].strip('"')
    # Quoted headers: diff --git "a/x y" "b/x y"
    if ' "b/' in header:
        return header.rsplit(' "b/', 1)[1].rstrip('"')
    return None


def _filter_sections(diff: str, keep: Callable[[str], bool]) -> str:
    """Drop whole file sections from a unified diff in one forward pass.

    Hunk bodies never repeat the file name, so the keep/drop decision made at
    each ``diff --git`` header carries over every following line until the
    next header. Lines before the first header are kept.
    """
    state = _SectionState.IN_SCOPE
    kept: list[str] = []
    for line in diff.splitlines(keepends=True):
        path = _header_path(line)
        if path is not None:
            state = _SectionState.IN_SCOPE if keep(path) else _SectionState.OUT_OF_SCOPE
        if state is _SectionState.IN_SCOPE:
            kept.append(line)
    return "".join(kept)


def filter_ignored_sections(diff: str) -> str:
    """Strip lockfile, build output and CI config sections from a diff."""
    return _filter_sections(diff, lambda path: not is_ignored_path(path))


def _compile(patterns: tuple[str, ...]) -> PathSpec | None:
    if not patterns:
        return None
    try:
        return PathSpec.from_lines("gitwildmatch", patterns)
    except ValueError as e:
        # pathspec's GitWildMatchPatternError subclasses ValueError.
        raise WorkflowConfigError(f"Invalid path pattern in {list(patterns)!r}: {e}") from e


def _literal_prefix(pattern: str) -> str:
    """Plain directory prefix of a glob, usable as a GitHub ``path`` filter.

    ``apps/web/*`` -> ``apps/web``, ``src/**/*.ts`` -> ``src``,
    ``apps/api`` -> ``apps/api``, ``*.md`` -> ``""`` (matches anywhere).
    """
    match = _GLOB_CHARS_RE.search(pattern)
    if match is None:
        return pattern.strip("/")
    literal = pattern[: match.start()]
    # Cut back to the last whole directory: "apps/we*" must not become "apps/we".
    return literal.rsplit("/", 1)[0].strip("/") if "/" in literal else ""


@dataclass(frozen=True)
class TargetPathSpec:
    """Compiled include/exclude globs scoping a monorepo app.

    Exclusion always wins. An empty ``included`` means everything that is
    not excluded is in scope, never that nothing is.
    """

    included: tuple[str, ...] = ()
    excluded: tuple[str, ...] = ()
    _included_spec: PathSpec | None = field(init=False, repr=False, compare=False, default=None)
    _excluded_spec: PathSpec | None = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self):
        object.__setattr__(self, "_included_spec", _compile(self.included))
        object.__setattr__(self, "_excluded_spec", _compile(self.excluded))

    # ------------------------------------------------------------------ #
    # Construction                                                         #
    # ------------------------------------------------------------------ #

    @classmethod
    def from_entries(cls, entries: Iterable[str], ignored: Iterable[str] = ()) -> TargetPathSpec | None:
        """Build a spec from ``!``-style entries plus always-excluded globs.

        Returns None when nothing is left after dropping infrastructure
        entries, meaning no scoping applies.
        """
        included: list[str] = []
        excluded: list[str] = []
        for entry in entries:
            if is_ignored_path(entry):
                logger.debug("Dropping infrastructure path filter %r", entry)
                continue
            if entry.startswith("!"):
                excluded.append(entry[1:])
            else:
                included.append(entry)
        excluded.extend(p for p in ignored if not is_ignored_path(p))

        if not included and not excluded:
            return None
        return cls(included=tuple(included), excluded=tuple(excluded))

    @classmethod
    def from_input(cls, text: str | None) -> TargetPathSpec | None:
        """Parse a comma- or newline-separated path list, e.g. an action input."""
        if not text:
            return None
        entries = [e.strip() for e in _INPUT_SEPARATORS_RE.split(text)]
        return cls.from_entries(e for e in entries if e)

    @classmethod
    def from_workflow_config(cls, config: WorkflowConfig) -> TargetPathSpec | None:
        """Build a spec from a workflow's push-trigger path filters."""
        push = config.push
        if push is None:
            return None
        return cls.from_entries(push.paths or (), ignored=push.paths_ignore or ())

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def is_included(self, path: str) -> bool:
        included = self._included_spec is None or self._included_spec.match_file(path)
        excluded = self._excluded_spec is not None and self._excluded_spec.match_file(path)
        return bool(included) and not excluded

    def filter_diff(self, diff: str) -> str:
        """Keep only the file sections of ``diff`` that are in scope."""
        return _filter_sections(diff, lambda path: not is_ignored_path(path) and self.is_included(path))

    def sanitized_included_prefixes(self) -> tuple[str, ...]:
        """Included patterns reduced to literal path prefixes, deduplicated.

        GitHub's commit listing takes a literal ``path`` and knows nothing
        about globs. An empty string means the pattern can match anywhere,
        so the caller has to fall back to an unscoped query.
        """
        prefixes: list[str] = []
        for pattern in self.included:
            prefix = _literal_prefix(pattern)
            if prefix not in prefixes:
                prefixes.append(prefix)
        return tuple(prefixes)


def scope_description(spec: TargetPathSpec | None) -> str:
    if spec is None:
        return "all paths"
    parts = []
    if spec.included:
        parts.append("include " + ", ".join(spec.included))
    if spec.excluded:
        parts.append("exclude " + ", ".join(spec.excluded))
    return "; ".join(parts)
