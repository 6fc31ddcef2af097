"""Tests for cross-reference rewriting."""

from pathlib import Path

import pytest

from docport.exceptions import ReferenceRewriteError
from docport.services.rewriter import CrossReferenceRewriter, is_external, split_reference


@pytest.fixture
def roots(temp_dir):
    input_root = temp_dir / "in"
    output_root = temp_dir / "out"
    input_root.mkdir()
    output_root.mkdir()
    return input_root, output_root


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestHelpers:
    def test_split_reference(self):
        assert split_reference("a/b.htm#top") == ("a/b.htm", "top")
        assert split_reference("a/b.htm") == ("a/b.htm", None)

    @pytest.mark.parametrize(
        "ref", ["https://example.com", "mailto:x@y.z", "#local", "data:image/png;base64,AA", ""]
    )
    def test_external(self, ref):
        assert is_external(ref)

    def test_internal(self):
        assert not is_external("../Topics/intro.htm")


class TestAsciidoc:
    """Tests for AsciiDoc link syntax."""

    def test_xref_to_renamed_file(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"old/page.htm": "new/page.adoc"}, input_root, output_root, "asciidoc"
        )
        other = _write(output_root / "new" / "other.adoc", "See xref:old/page.htm#sec1[Title].\n")

        changes = rewriter.rewrite_file(other)

        assert changes == 1
        assert other.read_text(encoding="utf-8") == "See xref:page.adoc#sec1[Title].\n"

    def test_rewrite_is_idempotent(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"old/page.htm": "new/page.adoc"}, input_root, output_root, "asciidoc"
        )
        other = _write(output_root / "new" / "other.adoc", "xref:old/page.htm#sec1[Title]\n")

        rewriter.rewrite_file(other)
        once = other.read_text(encoding="utf-8")
        assert rewriter.rewrite_file(other) == 0
        assert other.read_text(encoding="utf-8") == once

    def test_idempotent_with_shared_target_basename(self, roots):
        """Two renamed targets named alike keep their own links on a second pass."""
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"a/x.htm": "a/overview.adoc", "b/y.htm": "b/overview.adoc"},
            input_root,
            output_root,
            "asciidoc",
        )
        doc = _write(output_root / "c" / "z.adoc", "xref:../b/y.htm[B] and xref:../a/x.htm[A]\n")

        rewriter.rewrite_file(doc)
        once = doc.read_text(encoding="utf-8")
        assert once == "xref:../b/overview.adoc[B] and xref:../a/overview.adoc[A]\n"

        assert rewriter.rewrite_file(doc) == 0
        assert doc.read_text(encoding="utf-8") == once

    def test_correct_link_to_unrenamed_file_kept(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"a/intro.htm": "a/getting-started.adoc"}, input_root, output_root, "asciidoc"
        )
        _write(output_root / "b" / "getting-started.adoc", "= Local\n")
        doc = _write(output_root / "b" / "other.adoc", "xref:getting-started.adoc[B]\n")

        assert rewriter.rewrite_file(doc) == 0
        assert doc.read_text(encoding="utf-8") == "xref:getting-started.adoc[B]\n"

    def test_shared_basename_prefers_same_directory(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {
                "a/x.htm": "a/overview.adoc",
                "b/y.htm": "b/overview.adoc",
                "a/topics/overview.htm": "a/topics/intro.adoc",
                "b/topics/overview.htm": "b/topics/intro.adoc",
            },
            input_root,
            output_root,
            "asciidoc",
        )
        doc = _write(
            output_root / "b" / "index.adoc",
            "xref:old/overview.adoc[Target] and xref:pages/overview.htm[Source]\n",
        )
        rewriter.sources = {doc: input_root / "b" / "topics" / "index.htm"}

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == (
            "xref:overview.adoc[Target] and xref:topics/intro.adoc[Source]\n"
        )

    def test_relative_path_to_other_directory(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"Topics/intro.htm": "Topics/getting-started.adoc"}, input_root, output_root, "asciidoc"
        )
        doc = _write(output_root / "Reference" / "api.adoc", "link:../Topics/intro.htm[Intro]\n")
        sources = {doc: input_root / "Reference" / "api.htm"}
        rewriter.sources = sources

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == "link:../Topics/getting-started.adoc[Intro]\n"

    def test_match_ignoring_extension(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"intro.htm": "getting-started.adoc"}, input_root, output_root, "asciidoc"
        )
        doc = _write(output_root / "install.adoc", "<<intro.adoc#steps,Intro>>\n")

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == "<<getting-started.adoc#steps,Intro>>\n"

    def test_match_by_basename(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"Content/Topics/intro.htm": "Content/Topics/getting-started.adoc"},
            input_root,
            output_root,
            "asciidoc",
        )
        doc = _write(output_root / "Content" / "Topics" / "x.adoc", "xref:intro.htm[Intro]\n")

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == "xref:getting-started.adoc[Intro]\n"

    def test_fuzzy_match(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"Topics/installation.htm": "Topics/install-guide.adoc"},
            input_root,
            output_root,
            "asciidoc",
        )
        doc = _write(output_root / "Topics" / "x.adoc", "xref:Topics/instalation-page[Install]\n")

        rewriter.rewrite_file(doc)

        assert "xref:install-guide.adoc[Install]" in doc.read_text(encoding="utf-8")

    def test_existing_target_left_alone(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"Topics/installation.htm": "Topics/install-guide.adoc"},
            input_root,
            output_root,
            "asciidoc",
        )
        _write(output_root / "Topics" / "installer.adoc", "exists")
        doc = _write(output_root / "Topics" / "x.adoc", "xref:installer.adoc[Installer]\n")

        assert rewriter.rewrite_file(doc) == 0

    def test_unmatched_and_external_unchanged(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"old/page.htm": "new/page.adoc"}, input_root, output_root, "asciidoc"
        )
        text = "link:https://example.com/page.htm[Site] and xref:zzz.adoc[Nothing]\n"
        doc = _write(output_root / "a.adoc", text)

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == text

    def test_image_repointed_to_copied_asset(self, roots, png_bytes):
        input_root, output_root = roots
        (output_root / "Images").mkdir()
        (output_root / "Images" / "logo.png").write_bytes(png_bytes)
        rewriter = CrossReferenceRewriter(
            {"old/page.htm": "new/page.adoc"}, input_root, output_root, "asciidoc"
        )
        doc = _write(output_root / "new" / "page.adoc", "image::../Resources/Images/logo.png[Logo]\n")

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == "image::../Images/logo.png[Logo]\n"


class TestOtherSyntaxes:
    """Tests for Markdown and HTML outputs."""

    def test_markdown_links(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"intro.htm": "getting-started.md"}, input_root, output_root, "markdown"
        )
        doc = _write(output_root / "index.md", '[Start](intro.htm#top "Intro")\n')

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == '[Start](getting-started.md#top "Intro")\n'

    def test_zendesk_anchors(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"intro.htm": "getting-started.html"}, input_root, output_root, "zendesk"
        )
        doc = _write(output_root / "index.html", '<a class="x" href="intro.htm">Start</a>\n')

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == '<a class="x" href="getting-started.html">Start</a>\n'

    def test_zendesk_single_quoted_attributes(self, roots, png_bytes):
        input_root, output_root = roots
        (output_root / "Images").mkdir()
        (output_root / "Images" / "logo.png").write_bytes(png_bytes)
        rewriter = CrossReferenceRewriter(
            {"intro.htm": "getting-started.html"}, input_root, output_root, "zendesk"
        )
        doc = _write(
            output_root / "index.html",
            "<a href='intro.htm'>Start</a><img src='Resources/logo.png'>\n",
        )

        rewriter.rewrite_file(doc)

        assert doc.read_text(encoding="utf-8") == (
            "<a href='getting-started.html'>Start</a><img src='Images/logo.png'>\n"
        )

    def test_text_format_is_untouched(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter({"intro.htm": "start.txt"}, input_root, output_root, "text")
        assert rewriter.rewrite_content("intro.htm", output_root / "a.txt") == ("intro.htm", 0)


class TestRewriteAll:
    """Tests for the batch pass."""

    def test_report(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"old/page.htm": "new/page.adoc"}, input_root, output_root, "asciidoc"
        )
        changed = _write(output_root / "new" / "a.adoc", "xref:old/page.htm[P]\n")
        unchanged = _write(output_root / "new" / "b.adoc", "no links\n")
        image = _write(output_root / "new" / "c.png", "not text")

        report = rewriter.rewrite_all([changed, unchanged, image])

        assert report.files_scanned == 2
        assert report.files_changed == 1
        assert report.references_rewritten == 1
        assert report.errors == []

    def test_unreadable_file_is_reported(self, roots):
        input_root, output_root = roots
        rewriter = CrossReferenceRewriter(
            {"old/page.htm": "new/page.adoc"}, input_root, output_root, "asciidoc"
        )
        missing = output_root / "gone.adoc"

        with pytest.raises(ReferenceRewriteError):
            rewriter.rewrite_file(missing)
        report = rewriter.rewrite_all([missing])

        assert len(report.errors) == 1

    def test_empty_mapping_does_nothing(self, roots):
        input_root, output_root = roots
        doc = _write(output_root / "a.adoc", "xref:x.htm[X]\n")
        report = CrossReferenceRewriter({}, input_root, output_root, "asciidoc").rewrite_all([doc])
        assert report.files_scanned == 0
