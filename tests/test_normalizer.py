import pytest

from convert_service.conversion import ToolExecutionFailure, ToolOutputMissing
from convert_service.conversion.adapters import SofficeConverter
from convert_service.conversion.normalizer import LegacyFormatNormalizer

SOFFICE_COPY = 'base=$(basename "$6")\ncp "$6" "$5/${base%.*}.$3"'


@pytest.fixture
def scratch_root(tmp_path):
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def legacy_doc(tmp_path):
    path = tmp_path / "letter.doc"
    path.write_bytes(b"legacy bytes")
    return path


@pytest.mark.asyncio
async def test_non_legacy_format_passes_through(tmp_path, fake_tool, scratch_root):
    soffice = fake_tool("soffice", "exit 1")
    normalizer = LegacyFormatNormalizer(SofficeConverter(soffice), scratch_root=scratch_root)
    source = tmp_path / "a.docx"

    prepared = await normalizer.normalize("docx", source)

    assert prepared.path == source
    assert prepared.format == "docx"
    await prepared.release()
    assert list(scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_unconfigured_converter_passes_legacy_format_through(legacy_doc, scratch_root):
    normalizer = LegacyFormatNormalizer(SofficeConverter(None), scratch_root=scratch_root)

    prepared = await normalizer.normalize("doc", legacy_doc)

    assert prepared.path == legacy_doc
    assert prepared.format == "doc"


@pytest.mark.asyncio
async def test_missing_converter_passes_legacy_format_through(tmp_path, legacy_doc, scratch_root):
    normalizer = LegacyFormatNormalizer(SofficeConverter(str(tmp_path / "soffice.exe")), scratch_root=scratch_root)

    prepared = await normalizer.normalize("DOC", legacy_doc)

    assert prepared.path == legacy_doc
    assert list(scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_legacy_document_is_converted_in_scratch_dir(fake_tool, legacy_doc, scratch_root):
    normalizer = LegacyFormatNormalizer(SofficeConverter(fake_tool("soffice", SOFFICE_COPY)), scratch_root=scratch_root)

    prepared = await normalizer.normalize("doc", legacy_doc)

    assert prepared.format == "docx"
    assert prepared.path.name == "letter.docx"
    assert prepared.path.parent.parent == scratch_root
    assert prepared.path.read_bytes() == b"legacy bytes"

    await prepared.release()
    assert not prepared.path.parent.exists()
    assert legacy_doc.exists()


@pytest.mark.asyncio
async def test_converter_failure_removes_scratch_dir(fake_tool, legacy_doc, scratch_root):
    soffice = fake_tool("soffice", 'echo "source file could not be loaded" >&2\nexit 1')
    normalizer = LegacyFormatNormalizer(SofficeConverter(soffice), scratch_root=scratch_root)

    with pytest.raises(ToolExecutionFailure, match="could not be loaded"):
        await normalizer.normalize("doc", legacy_doc)

    assert list(scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_missing_output_removes_scratch_dir(fake_tool, legacy_doc, scratch_root):
    soffice = fake_tool("soffice", 'touch "$5/letter.pdf"')
    normalizer = LegacyFormatNormalizer(SofficeConverter(soffice), scratch_root=scratch_root)

    with pytest.raises(ToolOutputMissing):
        await normalizer.normalize("doc", legacy_doc)

    assert list(scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_each_normalization_gets_its_own_scratch_dir(fake_tool, legacy_doc, scratch_root):
    normalizer = LegacyFormatNormalizer(SofficeConverter(fake_tool("soffice", SOFFICE_COPY)), scratch_root=scratch_root)

    first = await normalizer.normalize("doc", legacy_doc)
    second = await normalizer.normalize("doc", legacy_doc)

    assert first.path.parent != second.path.parent
    await first.release()
    await second.release()
    assert list(scratch_root.iterdir()) == []
