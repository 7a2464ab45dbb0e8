from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Protocol

Release = Callable[[], Awaitable[None]]


async def _noop() -> None:
    return None


@dataclass
class PreparedSource:
    """A staged input: working path, effective format and its cleanup.

    `release` runs the cleanup at most once; later calls do nothing.
    """

    path: Path
    format: str
    _release: Release = field(default=_noop, repr=False)
    _released: bool = field(default=False, init=False, repr=False)

    @classmethod
    def passthrough(cls, path: str | Path, format: str) -> "PreparedSource":
        return cls(Path(path), format)

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._release()


class DocumentConverterGateway(Protocol):
    async def convert(self, source: PreparedSource, target_format: str, output_path: Path) -> None:
        """Produce `output_path` from the prepared source.

        Raises a ConversionError subclass when the tool fails.
        """


class ShortcutConverterGateway(Protocol):
    async def convert(self, source_path: Path, output_path: Path, source_format: str | None = None) -> None:
        ...


class OfficeConverterGateway(Protocol):
    @property
    def available(self) -> bool:
        ...

    async def convert(self, source_path: Path, target_extension: str, out_dir: Path) -> None:
        ...


class TextExtractorGateway(Protocol):
    def extract_text(self, source_path: Path) -> str:
        """Return the document's text. This is a blocking call."""
