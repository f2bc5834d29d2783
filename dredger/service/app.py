"""FastAPI application entrypoint for dredger service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import load_config
from ..errors import ConfigError
from ..git.publisher import Publisher
from ..pipeline import Pipeline, PipelineOutcome


class RunRequest(BaseModel):
    path: str
    dry_run: bool = True


class FilePatch(BaseModel):
    path: str
    diff: str


class RunResponse(BaseModel):
    status: str
    report: Dict[str, Any]
    patches: List[FilePatch]


class HealthResponse(BaseModel):
    status: str


def _default_pipeline(path: str) -> Pipeline:
    return Pipeline(load_config(Path(path)))


def create_app(
    pipeline_factory: Callable[[str], Pipeline] = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing documentation runs."""

    app = FastAPI(title="Dredger Service", version="0.1.0")

    async def get_factory() -> Callable[[str], Pipeline]:
        return pipeline_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/runs", response_model=RunResponse)
    async def create_run(
        payload: RunRequest,
        factory: Callable[[str], Pipeline] = Depends(get_factory),
    ) -> RunResponse:
        def _run() -> PipelineOutcome:
            repo = Path(payload.path).expanduser()
            if not repo.is_dir():
                raise FileNotFoundError(f"Repository path not found: {payload.path}")
            pipeline = factory(str(repo))
            outcome = pipeline.run_repository(repo)
            if not payload.dry_run and outcome.patches:
                Publisher().apply(repo, outcome.patches)
            return outcome

        outcome = await asyncio.get_running_loop().run_in_executor(None, _run)
        report = outcome.report
        return RunResponse(
            status="ok" if report.ok else "partial",
            report=report.to_dict(),
            patches=[FilePatch(path=entry.path, diff=entry.diff()) for entry in outcome.patches],
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["create_app", "run_service"]
