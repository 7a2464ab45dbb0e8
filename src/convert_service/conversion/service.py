import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from convert_service.config import ServiceConfig
from convert_service.formats import build_output_filename

from .adapters import MarkitdownConverter, PandocConverter, PypdfTextExtractor, SimulatedConverter, SofficeConverter
from .errors import TaskNotFound, TaskNotReady
from .interfaces import DocumentConverterGateway, PreparedSource, ShortcutConverterGateway
from .normalizer import LegacyFormatNormalizer
from .preparer import SourcePreparer
from .strategy import ConversionStrategy, resolve_strategy
from .tasks import Task, TaskStatus, TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionRequest:
    source_absolute_path: str
    source_relative_path: str
    source_format: str
    target_format: str
    source_filename: str = ""

    def filename(self) -> str:
        return self.source_filename or Path(self.source_absolute_path).name


class ConversionService:
    """Core domain service orchestrating conversion tasks.

    Framework-agnostic: the HTTP layer (or a test) submits requests and
    reads tasks back from the store. `submit` queues the task for the
    background workers; `convert` runs the same pipeline inline and
    returns once the task is terminal.
    """

    def __init__(
        self,
        store: TaskStore,
        config: ServiceConfig,
        *,
        normalizer: LegacyFormatNormalizer | None = None,
        preparer: SourcePreparer | None = None,
        pandoc: DocumentConverterGateway | None = None,
        shortcut: ShortcutConverterGateway | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._output_dir = config.converted_dir
        timeout = config.tool_timeout_sec
        self._normalizer = normalizer or LegacyFormatNormalizer(SofficeConverter(config.soffice_path, timeout=timeout))
        self._preparer = preparer or SourcePreparer(PypdfTextExtractor(), self._output_dir)
        self._pandoc = pandoc or PandocConverter(config.pandoc_path, timeout=timeout)
        self._shortcut = shortcut or MarkitdownConverter(config.markitdown_path, timeout=timeout)
        self._simulated = SimulatedConverter()
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def queue(self) -> asyncio.Queue[str]:
        return self._queue

    async def ensure_directories(self) -> None:
        await asyncio.to_thread(self._output_dir.mkdir, parents=True, exist_ok=True)

    async def start(self) -> None:
        for i in range(self._config.workers):
            task = asyncio.create_task(self._worker_loop(f"worker-{i+1}"))
            self._tasks.append(task)

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def submit(self, request: ConversionRequest) -> Task:
        """Create a task and hand it to the workers; returns the pending snapshot."""
        task = await self._create_task(request)
        await self._queue.put(task.id)
        return task

    async def convert(self, request: ConversionRequest) -> Task:
        """Create a task and run it to a terminal state before returning."""
        task = await self._create_task(request)
        return await self.process_task(task.id)

    def get_task(self, task_id: str) -> Task:
        task = self._store.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def resolve_download(self, task_id: str) -> Path:
        task = self.get_task(task_id)
        if task.status is not TaskStatus.COMPLETED or not task.output_path:
            raise TaskNotReady(task_id, task.status.value)
        path = Path(task.output_path)
        if not path.is_file():
            raise FileNotFoundError(f"converted file not found: {path.name}")
        return path

    async def _create_task(self, request: ConversionRequest) -> Task:
        await self.ensure_directories()
        return self._store.create(
            id=str(uuid.uuid4()),
            source_path=request.source_absolute_path,
            source_relative_path=request.source_relative_path,
            source_format=request.source_format,
            target_format=request.target_format,
            source_filename=request.filename(),
        )

    async def process_task(self, task_id: str) -> Task:
        task = self._store.set_processing(task_id)
        if task is None:
            raise TaskNotFound(task_id)

        output_path = self._output_dir / build_output_filename(task.source_filename, task.id, task.target_format)
        strategy = resolve_strategy(
            self._config.run_mode,
            task.target_format,
            shortcut_enabled=self._config.shortcut_enabled,
        )
        try:
            async with contextlib.AsyncExitStack() as stack:
                # Simulation never touches external tools, the office converter included.
                if strategy is ConversionStrategy.SIMULATE:
                    source = PreparedSource.passthrough(task.source_path, task.source_format)
                else:
                    source = await self._normalizer.normalize(task.source_format, task.source_path)
                stack.push_async_callback(source.release)

                prepared = await self._preparer.prepare(
                    strategy, source, source_filename=task.source_filename, task_id=task.id
                )
                stack.push_async_callback(prepared.release)

                await self._invoke(strategy, prepared, task.target_format, output_path)
        except asyncio.CancelledError:
            logger.warning("task %s cancelled", task.id)
            self._store.attach_error(task.id, "Conversion cancelled")
            raise
        except Exception as e:
            message = str(e) or "Unknown error"
            logger.warning("task %s failed: %s", task.id, message)
            return self._store.attach_error(task.id, message) or task

        logger.info("task %s completed", task.id, extra={"output": output_path})
        return self._store.attach_result(task.id, str(output_path)) or task

    async def _invoke(
        self, strategy: ConversionStrategy, prepared: PreparedSource, target_format: str, output_path: Path
    ) -> None:
        if strategy is ConversionStrategy.SIMULATE:
            await self._simulated.convert(prepared, target_format, output_path)
        elif strategy is ConversionStrategy.SHORTCUT:
            await self._shortcut.convert(prepared.path, output_path, prepared.format)
        else:
            await self._pandoc.convert(prepared, target_format, output_path)

    async def _worker_loop(self, name: str) -> None:
        while True:
            task_id = await self._queue.get()
            try:
                await self.process_task(task_id)
            except Exception:
                logger.exception("%s: unexpected error while processing task %s", name, task_id)
            finally:
                self._queue.task_done()
