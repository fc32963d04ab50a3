"""Tests for splitting unified diff text into per-file sections."""

from shiplog_core.diff import DiffDocument
from shiplog_core.paths import TargetPathSpec


def _section(path, body="@@ -1,2 +1,2 @@\n-old\n+new\n context\n"):
    return f"diff --git a/{path} b/{path}\nindex 111..222 100644\n--- a/{path}\n+++ b/{path}\n{body}"


class TestDiffDocument:
    def test_sections_in_order(self):
        doc = DiffDocument.parse(_section("a.py") + _section("lib/b/c.py"))
        assert doc.paths == ["a.py", "lib/b/c.py"]

    def test_render_reproduces_text(self):
        text = _section("a.py") + _section("lib/b/c.py")
        assert DiffDocument.parse(text).render() == text

    def test_parse_drops_preamble(self):
        doc = DiffDocument.parse("commit abc\n\n" + _section("a.py"))
        assert doc.paths == ["a.py"]
        assert not doc.render().startswith("commit")

    def test_parse_records_old_path(self):
        text = "diff --git a/old/x.py b/new/x.py\nsimilarity index 100%\nrename from old/x.py\nrename to new/x.py\n"
        (section,) = DiffDocument.parse(text).sections
        assert section.old_path == "old/x.py"
        assert section.path == "new/x.py"

    def test_binary_section_without_hunks(self):
        text = "diff --git a/logo.png b/logo.png\nindex 111..222 100644\nBinary files a/logo.png and b/logo.png differ\n"
        (section,) = DiffDocument.parse(text).sections
        assert section.path == "logo.png"
        assert section.text == text

    def test_parse_empty(self):
        assert DiffDocument.parse("").sections == ()

    def test_filtered_diff_keeps_scoped_sections(self):
        text = _section("apps/web/a.ts") + _section("apps/api/b.ts")
        filtered = TargetPathSpec(included=("apps/web/**",)).filter_diff(text)
        assert DiffDocument.parse(filtered).paths == ["apps/web/a.ts"]
