import asyncio
import logging
from pathlib import Path

from convert_service.formats import normalize_format_label

from .interfaces import PreparedSource, TextExtractorGateway
from .strategy import ConversionStrategy

logger = logging.getLogger(__name__)

INTERMEDIATE_SUFFIX = ".source.md"


class SourcePreparer:
    """Stages the (possibly normalized) source for the chosen strategy.

    Only the pandoc path does any work: PDFs are flattened to an
    intermediate markdown file next to the outputs, deleted on release.
    """

    def __init__(self, extractor: TextExtractorGateway, output_dir: str | Path) -> None:
        self._extractor = extractor
        self._output_dir = Path(output_dir)

    def intermediate_path(self, source_filename: str, task_id: str) -> Path:
        return self._output_dir / f"{Path(source_filename).stem}-{task_id}{INTERMEDIATE_SUFFIX}"

    async def prepare(
        self,
        strategy: ConversionStrategy,
        source: PreparedSource,
        *,
        source_filename: str,
        task_id: str,
    ) -> PreparedSource:
        if strategy is not ConversionStrategy.PANDOC or normalize_format_label(source.format) != "pdf":
            return PreparedSource.passthrough(source.path, source.format)

        text = await asyncio.to_thread(self._extractor.extract_text, source.path)
        intermediate = self.intermediate_path(source_filename, task_id)
        await asyncio.to_thread(intermediate.write_text, text, encoding="utf-8")
        logger.debug("extracted PDF text to %s", intermediate)

        async def remove_intermediate() -> None:
            await asyncio.to_thread(_unlink_quietly, intermediate)

        return PreparedSource(intermediate, "markdown", remove_intermediate)


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("could not remove intermediate file %s: %s", path, e)
