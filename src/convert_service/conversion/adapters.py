import asyncio
import io
import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from convert_service.formats import extension_hint, pandoc_format

from .errors import SourceExtractionFailure, ToolExecutionFailure, ToolNotFound
from .interfaces import PreparedSource

logger = logging.getLogger(__name__)


async def run_tool(
    executable: str,
    args: Sequence[str],
    *,
    tool: str,
    env_var: str,
    timeout: float | None = None,
) -> None:
    """Run an external converter to completion.

    A missing executable raises ToolNotFound; a non-zero exit (or a
    timeout, after the process is killed) raises ToolExecutionFailure.
    Any other spawn error propagates as-is.
    """
    argv = [str(a) for a in args]
    logger.info("executing %s", tool, extra={"executable": executable, "argv": argv})
    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        logger.error("%s executable not found at %s", tool, executable)
        raise ToolNotFound(tool, executable, env_var) from e

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise ToolExecutionFailure(tool, None, f"{tool} timed out after {timeout:g} seconds")
    except BaseException:
        # cancelled (service shutdown) or interrupted: never leave the child behind
        logger.warning("stopping %s (pid %s) before it finished", tool, proc.pid)
        await _kill(proc)
        raise

    if proc.returncode != 0:
        text = stderr.decode("utf-8", errors="replace") if stderr else ""
        logger.warning("%s exited with code %s", tool, proc.returncode, extra={"stderr": text})
        raise ToolExecutionFailure(tool, proc.returncode, text)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await asyncio.shield(proc.wait())


class PandocConverter:
    def __init__(self, executable: str = "pandoc", *, timeout: float | None = None) -> None:
        self.executable = executable
        self._timeout = timeout

    @staticmethod
    def build_args(source: PreparedSource, target_format: str, output_path: Path) -> list[str]:
        return [
            "--from",
            pandoc_format(source.format),
            "--to",
            pandoc_format(target_format),
            str(source.path),
            "--output",
            str(output_path),
        ]

    async def convert(self, source: PreparedSource, target_format: str, output_path: Path) -> None:
        await run_tool(
            self.executable,
            self.build_args(source, target_format, output_path),
            tool="pandoc",
            env_var="PANDOC_PATH",
            timeout=self._timeout,
        )


class MarkitdownConverter:
    def __init__(self, executable: str = "markitdown", *, timeout: float | None = None) -> None:
        self.executable = executable
        self._timeout = timeout

    @staticmethod
    def build_args(source_path: Path, output_path: Path, source_format: str | None = None) -> list[str]:
        args = [str(source_path), "-o", str(output_path)]
        hint = extension_hint(source_path, source_format)
        if hint:
            args += ["--extension", hint]
        return args

    async def convert(self, source_path: Path, output_path: Path, source_format: str | None = None) -> None:
        await run_tool(
            self.executable,
            self.build_args(source_path, output_path, source_format),
            tool="markitdown",
            env_var="MARKITDOWN_PATH",
            timeout=self._timeout,
        )


class SofficeConverter:
    """Headless LibreOffice used to upgrade legacy office documents.

    Whether the executable exists is checked on first use and remembered
    for the lifetime of this instance; a negative answer is never
    re-checked.
    """

    def __init__(self, executable: str | None, *, timeout: float | None = None) -> None:
        self.executable = executable
        self._timeout = timeout
        self._available: bool | None = None

    @property
    def available(self) -> bool:
        if self._available is None:
            self._available = self._probe()
            if not self._available:
                logger.info("office converter not available at %s; legacy formats pass through", self.executable)
        return self._available

    def _probe(self) -> bool:
        if not self.executable:
            return False
        return Path(self.executable).is_file() or shutil.which(self.executable) is not None

    async def convert(self, source_path: Path, target_extension: str, out_dir: Path) -> None:
        if not self.executable:
            raise ToolNotFound("soffice", "", "SOFFICE_PATH")
        await run_tool(
            self.executable,
            ["--headless", "--convert-to", target_extension, "--outdir", str(out_dir), str(source_path)],
            tool="soffice",
            env_var="SOFFICE_PATH",
            timeout=self._timeout,
        )


class SimulatedConverter:
    """Stand-in converter for test mode: copies the source to the output."""

    async def convert(self, source: PreparedSource, target_format: str, output_path: Path) -> None:
        try:
            await asyncio.to_thread(shutil.copyfile, source.path, output_path)
        except OSError:
            def copy_text() -> None:
                content = source.path.read_text(encoding="utf-8")
                output_path.write_text(content, encoding="utf-8")

            await asyncio.to_thread(copy_text)


class PypdfTextExtractor:
    def extract_text(self, source_path: Path) -> str:
        from pypdf import PdfReader

        data = Path(source_path).read_bytes()
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise SourceExtractionFailure(f"Failed to extract text from PDF {Path(source_path).name}: {e}") from e
        return "\n\n".join(pages)


@dataclass(frozen=True)
class StoredUpload:
    original_name: str
    stored_name: str
    mime_type: str
    size: int
    path: Path


class LocalStorage:
    def __init__(self, storage_root: str | Path) -> None:
        self._base = Path(storage_root).resolve()

    @property
    def root(self) -> Path:
        return self._base

    @property
    def uploads_dir(self) -> Path:
        return self._base / "uploads"

    @property
    def converted_dir(self) -> Path:
        return self._base / "converted"

    def ensure_directories(self) -> None:
        for d in (self._base, self.uploads_dir, self.converted_dir):
            d.mkdir(parents=True, exist_ok=True)

    def relative(self, path: str | Path) -> str:
        return Path(path).resolve().relative_to(self._base).as_posix()

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._base / candidate
        return candidate.resolve()

    async def save_upload(
        self,
        filename: str,
        content_type: str,
        reader: Callable[[int], Awaitable[bytes]],
        *,
        max_upload_mb: int,
    ) -> StoredUpload:
        """Stream an upload into the uploads directory under a unique name."""
        original_name = filename or "upload"
        ext = Path(original_name).suffix
        stored_name = f"{int(time.time() * 1000)}-{uuid.uuid4()}{ext}"
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        target = self.uploads_dir / stored_name

        size_bytes = 0
        CHUNK = 1024 * 1024
        max_bytes = max_upload_mb * 1024 * 1024
        with target.open("wb") as f_out:
            while True:
                chunk = await reader(CHUNK)
                if not chunk:
                    break
                size_bytes += len(chunk)
                if size_bytes > max_bytes:
                    f_out.close()
                    target.unlink(missing_ok=True)
                    raise ValueError(f"upload exceeds {max_upload_mb} MB")
                f_out.write(chunk)

        return StoredUpload(
            original_name=original_name,
            stored_name=stored_name,
            mime_type=content_type or "application/octet-stream",
            size=size_bytes,
            path=target,
        )
