import logging
import os
from pathlib import Path

from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from convert_service import __version__
from convert_service.config import ServiceConfig
from convert_service.conversion import (
    ConversionRequest,
    ConversionService,
    TaskNotFound,
    TaskNotReady,
    TaskStatus,
    TaskStore,
)
from convert_service.conversion.adapters import LocalStorage
from convert_service.conversion.preparer import INTERMEDIATE_SUFFIX
from convert_service.formats import SUPPORTED_SOURCE_FORMATS, SUPPORTED_TARGET_FORMATS
from convert_service.logging import configure_logging

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


class ConvertedFiles(StaticFiles):
    """Static view of the output directory without in-flight intermediates."""

    async def get_response(self, path: str, scope):
        if path.lower().endswith(INTERMEDIATE_SUFFIX):
            raise HTTPException(status_code=404)
        return await super().get_response(path, scope)


def create_app(config: ServiceConfig | None = None, *, service: ConversionService | None = None) -> FastAPI:
    """Build the HTTP front-end around a conversion service.

    With no arguments the configuration comes from the environment. The
    service and storage are reachable on `app.state` for callers that
    need them (tests, embedding).
    """
    config = config or ServiceConfig.from_env()
    storage = LocalStorage(config.storage_root)
    service = service or ConversionService(TaskStore(), config)

    app = FastAPI(
        title="File Conversion Service",
        version=os.getenv("CONVERT_SERVICE_VERSION", __version__),
        description="Upload documents, convert them with pandoc and friends, and download the results.",
    )
    app.state.config = config
    app.state.storage = storage
    app.state.service = service

    app.mount("/downloads", ConvertedFiles(directory=storage.converted_dir, check_dir=False), name="downloads")

    @app.on_event("startup")
    async def _startup() -> None:
        storage.ensure_directories()
        logger.info(
            "conversion service starting",
            extra={
                "output_dir": storage.converted_dir,
                "pandoc": config.pandoc_path,
                "markitdown": config.markitdown_path,
                "soffice": config.soffice_path or "not configured",
                "run_mode": config.run_mode.value,
            },
        )
        await service.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await service.stop()

    @app.get("/health")
    def health() -> dict[str, str]:
        """Basic liveness check."""
        return {"status": "ok"}

    @app.get("/formats")
    def formats() -> dict[str, object]:
        return {"formats": {"source": list(SUPPORTED_SOURCE_FORMATS), "target": list(SUPPORTED_TARGET_FORMATS)}}

    @app.post("/upload", status_code=status.HTTP_201_CREATED)
    async def upload(file: UploadFile | None = File(None)) -> JSONResponse:
        """Store an uploaded document under the uploads directory.

        Accepts multipart/form-data with a single part named "file". The
        returned `path` is relative to the storage root and is what
        `/convert` expects as `sourcePath`.
        """
        if file is None:
            return JSONResponse(status_code=400, content={"message": "No file uploaded."})

        async def read_chunk(n: int) -> bytes:
            return await file.read(n)

        try:
            stored = await storage.save_upload(
                filename=file.filename or "upload",
                content_type=file.content_type or "application/octet-stream",
                reader=read_chunk,
                max_upload_mb=config.max_upload_mb,
            )
        except ValueError as e:
            return JSONResponse(status_code=413, content={"message": str(e)})

        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={
                "message": "File uploaded successfully.",
                "file": {
                    "originalName": stored.original_name,
                    "storedName": stored.stored_name,
                    "mimeType": stored.mime_type,
                    "size": stored.size,
                    "path": storage.relative(stored.path),
                },
            },
        )

    @app.post("/convert")
    async def convert(request: Request, wait: bool = False) -> JSONResponse:
        """Create a conversion task.

        Returns 202 with the pending task; with `?wait=true` the
        conversion runs before responding and the terminal task comes
        back with 200.
        """
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}
        source_path = body.get("sourcePath")
        source_format = body.get("sourceFormat")
        target_format = body.get("targetFormat")
        if not source_path or not source_format or not target_format:
            return JSONResponse(
                status_code=400,
                content={"message": "sourcePath, sourceFormat, and targetFormat are required."},
            )

        absolute = storage.resolve(str(source_path))
        if not absolute.is_file():
            return JSONResponse(
                status_code=404,
                content={"message": "Source file not found.", "sourcePath": str(source_path)},
            )

        conversion_request = ConversionRequest(
            source_absolute_path=str(absolute),
            source_relative_path=str(source_path),
            source_format=str(source_format),
            target_format=str(target_format),
            source_filename=str(body.get("sourceFilename") or absolute.name),
        )
        if wait:
            task = await service.convert(conversion_request)
            code = status.HTTP_200_OK
        else:
            task = await service.submit(conversion_request)
            code = status.HTTP_202_ACCEPTED
        return JSONResponse(
            status_code=code,
            content={"message": "Conversion task created successfully.", "task": task.to_dict()},
            headers={"Location": f"/tasks/{task.id}"},
        )

    @app.get("/tasks/{task_id}")
    async def get_task(task_id: str, request: Request) -> JSONResponse:
        try:
            task = service.get_task(task_id)
        except TaskNotFound:
            return JSONResponse(status_code=404, content={"message": "Task not found."})

        rendered = task.to_dict()
        if task.output_path:
            rendered["outputPath"] = _relative_to(Path(task.output_path), storage.converted_dir)
        rendered["downloadUrl"] = (
            str(request.url_for("download", task_id=task.id))
            if task.status is TaskStatus.COMPLETED and task.output_path
            else None
        )
        return JSONResponse(content={"task": rendered})

    @app.get("/download/{task_id}", name="download")
    async def download(task_id: str):
        try:
            path = service.resolve_download(task_id)
        except TaskNotFound:
            return JSONResponse(status_code=404, content={"message": "Task not found."})
        except TaskNotReady as e:
            return JSONResponse(status_code=409, content={"message": str(e), "status": e.status})
        except FileNotFoundError:
            return JSONResponse(status_code=404, content={"message": "Converted file not found on disk."})
        return FileResponse(path, media_type="application/octet-stream", filename=path.name)

    return app


def _relative_to(path: Path, base: Path) -> str:
    try:
        return path.resolve().relative_to(base.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


app = create_app()


def run() -> None:
    """Run the ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:3100). Set PORT env var to override.
    """
    import uvicorn

    configure_logging(app.state.config.log_level)
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3100"))
    reload = os.getenv("RELOAD", "false").lower() in _TRUTHY

    uvicorn.run("convert_service.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
