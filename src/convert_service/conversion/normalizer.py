import asyncio
import logging
import shutil
import tempfile
from pathlib import Path

from convert_service.formats import legacy_target

from .errors import ToolOutputMissing
from .interfaces import OfficeConverterGateway, PreparedSource

logger = logging.getLogger(__name__)


class LegacyFormatNormalizer:
    """Upgrades legacy office documents before the primary converter sees them.

    Formats outside the legacy set, and every format when the office
    converter is unavailable, pass through untouched.
    """

    def __init__(self, office: OfficeConverterGateway, *, scratch_root: str | Path | None = None) -> None:
        self._office = office
        self._scratch_root = str(scratch_root) if scratch_root is not None else None

    async def normalize(self, source_format: str, source_path: str | Path) -> PreparedSource:
        target_ext = legacy_target(source_format)
        if target_ext is None or not self._office.available:
            return PreparedSource.passthrough(source_path, source_format)

        scratch = Path(await asyncio.to_thread(tempfile.mkdtemp, prefix="convert-office-", dir=self._scratch_root))

        async def remove_scratch() -> None:
            await asyncio.to_thread(_remove_tree, scratch)

        try:
            await self._office.convert(Path(source_path), target_ext, scratch)
            produced = await asyncio.to_thread(_find_output, scratch, target_ext)
        except BaseException:
            await remove_scratch()
            raise

        logger.info("normalized %s document to %s", source_format, target_ext, extra={"path": produced})
        return PreparedSource(produced, target_ext, remove_scratch)


def _find_output(scratch: Path, extension: str) -> Path:
    suffix = f".{extension}"
    for entry in sorted(scratch.iterdir()):
        if entry.is_file() and entry.name.lower().endswith(suffix):
            return entry
    raise ToolOutputMissing(f"Office converter produced no .{extension} file")


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.debug("could not remove scratch directory %s: %s", path, e)
