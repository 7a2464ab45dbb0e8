import pytest

from convert_service import formats


@pytest.mark.parametrize(
    ("declared", "expected"),
    [
        ("markdown", "markdown"),
        ("md", "markdown"),
        ("MD", "markdown"),
        ("text", "plain"),
        ("txt", "plain"),
        ("plain", "plain"),
        ("htm", "html"),
        ("html", "html"),
        ("docx", "docx"),
        ("LaTeX", "latex"),
    ],
)
def test_pandoc_format(declared, expected):
    assert formats.pandoc_format(declared) == expected


@pytest.mark.parametrize(
    ("target", "extension"),
    [
        ("md", "md"),
        ("markdown", "md"),
        ("txt", "txt"),
        ("text", "txt"),
        ("plain", "txt"),
        ("HTML", "html"),
        (".docx", "docx"),
    ],
)
def test_output_extension(target, extension):
    assert formats.output_extension(target) == extension


def test_build_output_filename_uses_stem_task_id_and_extension():
    assert formats.build_output_filename("notes.final.md", "abc", "markdown") == "notes.final-abc.md"
    assert formats.build_output_filename("report.pdf", "abc", "plain") == "report-abc.txt"
    assert formats.build_output_filename("README", "abc", "html") == "README-abc.html"


def test_extension_hint_prefers_declared_format():
    assert formats.extension_hint("/tmp/file.bin", ".DOCX") == "docx"


def test_extension_hint_falls_back_to_suffix():
    assert formats.extension_hint("/tmp/Slides.PPTX") == "pptx"
    assert formats.extension_hint("/tmp/Slides.PPTX", "  ") == "pptx"


def test_extension_hint_is_none_without_any_information():
    assert formats.extension_hint("/tmp/noext") is None


def test_legacy_target():
    assert formats.legacy_target("DOC") == "docx"
    assert formats.legacy_target("ppt") == "pptx"
    assert formats.legacy_target("xls") == "xlsx"
    assert formats.legacy_target("docx") is None


def test_listed_formats_cover_common_cases():
    assert "markdown" in formats.SUPPORTED_SOURCE_FORMATS
    assert "pdf" in formats.SUPPORTED_SOURCE_FORMATS
    assert "html" in formats.SUPPORTED_TARGET_FORMATS
