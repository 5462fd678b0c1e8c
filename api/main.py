"""FastAPI server for dailyuse.

Run with:
    uvicorn api.main:create_app --factory
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any

from fastapi import FastAPI, HTTPException, Header, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from dailyuse import (
    Config,
    MetricsCollector,
    NoDataTodayError,
    UsageError,
    UsageService,
    UsageState,
    ValidationError,
    error_code,
)


def _get_api_key() -> Optional[str]:
    return os.getenv("DAILYUSE_API_KEY")


def _require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    api_key = _get_api_key()
    if api_key and x_api_key != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def _service(request: Request) -> UsageService:
    return request.app.state.service


class UsageResponse(BaseModel):
    daily_count: int
    daily_cost: float
    cost_display: str
    status: str
    status_label: str
    is_available: bool
    last_update: str
    last_reset: str
    error: Optional[str] = None
    code: Optional[str] = None


class ThresholdsRequest(BaseModel):
    yellow_threshold: float
    red_threshold: float


class ToolPathRequest(BaseModel):
    path: str = Field(..., min_length=1)


def _usage_response(state: UsageState, error: Optional[UsageError] = None) -> UsageResponse:
    data = state.to_dict()
    return UsageResponse(
        daily_count=data["daily_count"],
        daily_cost=data["daily_cost"],
        cost_display=state.cost_display,
        status=data["status"],
        status_label=data["status_label"],
        is_available=data["is_available"],
        last_update=data["last_update"],
        last_reset=data["last_reset"],
        error=str(error) if error else None,
        code=error_code(error) if error else None,
    )


def _read(service: UsageService, forced: bool) -> JSONResponse:
    try:
        state = service.update_usage() if forced else service.get_daily_usage()
    except UsageError as exc:
        body = _usage_response(exc.state or service.snapshot(), exc)
        status_code = 200 if isinstance(exc, NoDataTodayError) else 503
        return JSONResponse(status_code=status_code, content=body.model_dump())
    return JSONResponse(content=_usage_response(state).model_dump())


def create_app(service: Optional[UsageService] = None) -> FastAPI:
    """
    Build the API around one UsageService.

    Args:
        service: Service to expose. Built from the environment if not provided.
    """
    if service is None:
        config = Config.from_env()
        config.validate()
        service = UsageService(config, metrics=MetricsCollector())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        service.close()

    app = FastAPI(title="dailyuse API", version="1.0.0", lifespan=lifespan)
    app.state.service = service

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "tool_available": service.is_available()}

    @app.get("/usage", response_model=UsageResponse, dependencies=[Depends(_require_api_key)])
    def get_usage(svc: UsageService = Depends(_service)) -> JSONResponse:
        return _read(svc, forced=False)

    @app.post("/usage/refresh", response_model=UsageResponse, dependencies=[Depends(_require_api_key)])
    def refresh_usage(svc: UsageService = Depends(_service)) -> JSONResponse:
        return _read(svc, forced=True)

    @app.post("/usage/reset", response_model=UsageResponse, dependencies=[Depends(_require_api_key)])
    def reset_usage(svc: UsageService = Depends(_service)) -> UsageResponse:
        return _usage_response(svc.reset_daily())

    @app.put("/thresholds", response_model=UsageResponse, dependencies=[Depends(_require_api_key)])
    def set_thresholds(req: ThresholdsRequest, svc: UsageService = Depends(_service)) -> UsageResponse:
        try:
            state = svc.set_thresholds(req.yellow_threshold, req.red_threshold)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _usage_response(state)

    @app.put("/tool-path", dependencies=[Depends(_require_api_key)])
    def set_tool_path(req: ToolPathRequest, svc: UsageService = Depends(_service)) -> Dict[str, Any]:
        try:
            svc.set_tool_path(req.path)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"path": svc.tool_path, "available": svc.is_available()}

    @app.get("/metrics", dependencies=[Depends(_require_api_key)])
    def metrics(svc: UsageService = Depends(_service)) -> Dict[str, Any]:
        if svc.metrics is None:
            return {"counters": {}, "refresh_duration_s": {}, "total_events": 0}
        return svc.metrics.get_stats()

    return app
