"""FastAPI application for the build-narration orchestrator.

The lifespan starts the manifest polling loop as a background task, and the
routes expose a small read-only operability surface:

    GET /health                          service info and poll cadence
    GET /status                          manifest count and last poll summary
    GET /api/project/{project_id}/state  persisted state (or a synthesized ingest state)
    GET /api/project/{project_id}/manifest  the project's manifest

No route writes to the object store.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from proof_of_build.config import get_poll_interval, get_polling_enabled
from proof_of_build.exceptions import (
    ManifestNotFoundError,
    ManifestValidationError,
    StateValidationError,
)
from proof_of_build.runtime import Pipeline, build_pipeline
from proof_of_build.services.manifest_poller import run_polling_loop
from proof_of_build.services.state_store import create_initial_state
from proof_of_build.utils.keys import build_state_key
from proof_of_build.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

SERVICE_NAME = "proof-of-build-worker"


def create_app(pipeline: Pipeline | None = None, *, start_polling: bool | None = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        pipeline: Prebuilt pipeline (default: built from configuration at startup)
        start_polling: Run the polling loop in the lifespan
            (default: POLLING_ENABLED)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup: build the pipeline and start polling. Shutdown: cancel and close."""
        owned = pipeline is None
        app.state.pipeline = pipeline or build_pipeline()
        poll_task = None

        polling = get_polling_enabled() if start_polling is None else start_polling
        if polling:
            interval = get_poll_interval()
            log.info("starting_polling_loop", interval_seconds=interval)
            poll_task = asyncio.create_task(run_polling_loop(app.state.pipeline.poller, interval))
        else:
            log.warning("polling_disabled", message="Polling loop will not run")

        yield

        if poll_task:
            log.info("shutting_down_polling_loop")
            poll_task.cancel()
            try:
                await poll_task
            except asyncio.CancelledError:
                log.info("polling_task_cancelled")

        if owned:
            await app.state.pipeline.close()

    app = FastAPI(
        title="Proof of Build - Pipeline Orchestrator",
        description="Turns uploaded build artifacts into a narrated script and audio",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check() -> JSONResponse:
        return JSONResponse(
            content={
                "status": "ok",
                "service": SERVICE_NAME,
                "description": "Worker orchestrates the proof-of-build pipeline",
                "mode": "polling",
                "pollIntervalSeconds": get_poll_interval(),
                "endpoints": {"health": "/health", "status": "/status"},
            }
        )

    @app.get("/status")
    async def pipeline_status(request: Request) -> JSONResponse:
        """Manifest count and the outcome of the most recent poll."""
        current: Pipeline = request.app.state.pipeline
        try:
            manifest_count = await current.poller.count_manifests()
        except Exception as e:
            log.error("status_manifest_count_failed", error=str(e), exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"status": "error", "message": str(e)},
            )

        last = current.poller.last_summary
        return JSONResponse(
            content={
                "status": "ok",
                "manifestsFound": manifest_count,
                "lastPoll": last.to_dict() if last else None,
            }
        )

    @app.get("/api/project/{project_id}/state")
    async def project_state(project_id: str, request: Request) -> JSONResponse:
        """Return the persisted state; a missing record reads as a fresh ingest state."""
        current: Pipeline = request.app.state.pipeline
        try:
            build_state_key(project_id)
        except ValueError as e:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Invalid project id", "message": str(e)},
            )

        try:
            state = await current.state_store.load(project_id)
        except StateValidationError as e:
            log.error("project_state_read_failed", project_id=project_id, error=str(e))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Failed to read state", "message": str(e)},
            )

        if state is None:
            state = create_initial_state(project_id)
        return JSONResponse(content=state.to_json_dict())

    @app.get("/api/project/{project_id}/manifest")
    async def project_manifest(project_id: str, request: Request) -> JSONResponse:
        current: Pipeline = request.app.state.pipeline
        try:
            manifest = await current.poller.load_manifest(project_id)
        except ValueError as e:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Invalid project id", "message": str(e)},
            )
        except ManifestNotFoundError:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={
                    "error": "Manifest not found",
                    "message": f"No manifest found for project {project_id}",
                },
            )
        except ManifestValidationError as e:
            log.error("project_manifest_read_failed", project_id=project_id, error=str(e))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Failed to read manifest", "message": str(e)},
            )
        return JSONResponse(content=manifest.to_json_dict())

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "proof_of_build.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
