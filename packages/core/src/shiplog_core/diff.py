"""Per-file unified diff sections.

Both backends produce plain ``git diff`` text. DiffDocument splits it on its
``diff --git`` headers so callers can count and list the files a release
touched.
"""

from __future__ import annotations

from dataclasses import dataclass

_DIFF_HEADER = "diff --git "


@dataclass(frozen=True)
class DiffSection:
    """One file's worth of unified diff, tagged with its post-image path."""

    path: str
    text: str
    old_path: str | None = None


@dataclass(frozen=True)
class DiffDocument:
    sections: tuple[DiffSection, ...] = ()

    @property
    def paths(self) -> list[str]:
        return [s.path for s in self.sections]

    def render(self) -> str:
        return "".join(s.text for s in self.sections)

    @classmethod
    def parse(cls, text: str) -> DiffDocument:
        """Split unified diff text on its ``diff --git`` headers.

        Anything before the first header is not part of a file section and is
        dropped.
        """
        sections: list[DiffSection] = []
        current: list[str] = []
        path = old_path = None
        for line in text.splitlines(keepends=True):
            if line.startswith(_DIFF_HEADER):
                if path is not None:
                    sections.append(DiffSection(path=path, text="".join(current), old_path=old_path))
                old_path, path = _split_header(line)
                current = [line]
            elif path is not None:
                current.append(line)
        if path is not None:
            sections.append(DiffSection(path=path, text="".join(current), old_path=old_path))
        return cls(sections=tuple(sections))


def _split_header(line: str) -> tuple[str, str]:
    header = line[len(_DIFF_HEADER) :].rstrip("\r\n")
    old, _, new = header.rpartition(" b/")
    return old.removeprefix("a/"), new
