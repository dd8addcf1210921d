"""
FastAPI application for the shop statistics service.

Routes delegate business logic to the services layer.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from datetime import date
from typing import Literal

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field, ValidationError

from .config import get_settings
from .domain import DateGroupType, ErrorCode
from .repositories import StatsRepository
from .services import StatsService
from .stats import EvaluationRequest, EvaluationResult, StatsConfigurationError

logger = logging.getLogger(__name__)

app = FastAPI(title="Shop Stats Service", version="1.0.0", docs_url="/docs", redoc_url="/redoc", openapi_url="/openapi.json")


# ============================================================================
# Pydantic Models
# ============================================================================

class GroupNodeModel(BaseModel):
    title: str
    totals: dict[str, float]
    children: list[GroupNodeModel] = Field(default_factory=list)


class WarningModel(BaseModel):
    group: str
    kind: Literal["query_execution", "malformed_row", "configuration"]
    message: str


class StatsTableResponse(BaseModel):
    groups: list[GroupNodeModel]
    column_names: list[str]
    max_depth: int
    show_diff_column: bool
    warnings: list[WarningModel]


class StatsFrameResponse(BaseModel):
    index_names: list[str]
    index: list[list[str]]
    columns: list[str]
    data: list[list[float]]
    warnings: list[WarningModel]


class StatGroupModel(BaseModel):
    name: str
    position: int
    sub_group_fields: list[str]
    date_restriction_field: str
    portal_restriction_field: str


class StatGroupListResponse(BaseModel):
    total: int
    groups: list[StatGroupModel]


class HealthResponse(BaseModel):
    status: Literal["ok", "error"]
    message: str | None = None


# ============================================================================
# Service Factories + Helpers
# ============================================================================

def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _stats_service() -> StatsService:
    try:
        return StatsService.from_settings(get_settings())
    except StatsConfigurationError as e:
        raise HTTPException(500, {"code": ErrorCode.CONFIGURATION_ERROR, "message": str(e)})


def _build_request(
    start_date: date | None,
    end_date: date | None,
    date_group_type: str,
    show_diff: bool,
    portal_id: str | None,
) -> EvaluationRequest:
    try:
        return EvaluationRequest(start_date=start_date, end_date=end_date, date_group_type=date_group_type,
                                 show_diff=show_diff, portal_id=portal_id)
    except ValidationError as e:
        raise HTTPException(422, [{"msg": err["msg"], "loc": list(err["loc"])} for err in e.errors()])


def _warnings(result: EvaluationResult) -> list[WarningModel]:
    return [WarningModel(group=w.group, kind=w.kind, message=w.message) for w in result.warnings]


# ============================================================================
# Startup
# ============================================================================

@app.on_event("startup")
async def startup() -> None:
    s = get_settings()
    configure_logging(s.log_level)
    if s.group_source == "db":
        StatsRepository(s.db_path).apply_migrations()


# ============================================================================
# Statistics Routes
# ============================================================================

@app.get("/api/stats", response_model=StatsTableResponse)
async def get_stats(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    date_group_type: DateGroupType = Query("day"),
    show_diff: bool = Query(False),
    portal_id: str | None = Query(None),
) -> StatsTableResponse:
    request = _build_request(start_date, end_date, date_group_type, show_diff, portal_id)
    service = _stats_service()
    try:
        result = await asyncio.to_thread(service.evaluate, request)
    except StatsConfigurationError as e:
        raise HTTPException(500, {"code": ErrorCode.CONFIGURATION_ERROR, "message": str(e)})
    model = result.model
    return StatsTableResponse(groups=[GroupNodeModel.model_validate(g.to_dict()) for g in model.groups],
                              column_names=list(model.column_names), max_depth=model.max_depth,
                              show_diff_column=model.show_diff_column, warnings=_warnings(result))


@app.get("/api/stats/table", response_model=StatsFrameResponse)
async def get_stats_table(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    date_group_type: DateGroupType = Query("day"),
    show_diff: bool = Query(False),
    portal_id: str | None = Query(None),
) -> StatsFrameResponse:
    request = _build_request(start_date, end_date, date_group_type, show_diff, portal_id)
    service = _stats_service()
    try:
        frame, result = await asyncio.to_thread(service.table_frame, request)
    except StatsConfigurationError as e:
        raise HTTPException(500, {"code": ErrorCode.CONFIGURATION_ERROR, "message": str(e)})
    index = [list(k) if isinstance(k, tuple) else [k] for k in frame.index]
    return StatsFrameResponse(index_names=[str(n) for n in frame.index.names], index=index,
                              columns=[str(c) for c in frame.columns], data=frame.values.tolist(),
                              warnings=_warnings(result))


@app.get("/api/stats/export.csv")
async def export_stats_csv(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    date_group_type: DateGroupType = Query("day"),
    show_diff: bool = Query(False),
    portal_id: str | None = Query(None),
) -> Response:
    request = _build_request(start_date, end_date, date_group_type, show_diff, portal_id)
    service = _stats_service()
    try:
        export = await asyncio.to_thread(service.export_csv, request)
    except StatsConfigurationError as e:
        raise HTTPException(500, {"code": ErrorCode.EXPORT_ERROR, "message": str(e)})
    return Response(content=export.content, media_type="text/csv; charset=utf-8",
                    headers={"Content-Disposition": f'attachment; filename="{export.filename}"',
                             "X-Stats-Warnings": str(len(export.result.warnings))})


@app.get("/api/stats/groups", response_model=StatGroupListResponse)
async def list_stat_groups() -> StatGroupListResponse:
    try:
        groups = _stats_service().list_groups()
    except StatsConfigurationError as e:
        raise HTTPException(500, {"code": ErrorCode.CONFIGURATION_ERROR, "message": str(e)})
    return StatGroupListResponse(total=len(groups), groups=[StatGroupModel(name=g.name, position=g.position, sub_group_fields=g.sub_group_fields,
                                                                            date_restriction_field=g.date_restriction_field,
                                                                            portal_restriction_field=g.portal_restriction_field) for g in groups])


@app.post("/api/stats/reload")
async def reload_stat_groups() -> dict:
    try:
        groups = _stats_service().list_groups(force_reload=True)
    except StatsConfigurationError as e:
        raise HTTPException(500, {"code": ErrorCode.CONFIGURATION_ERROR, "message": str(e)})
    return {"status": "ok", "message": "Configuration reloaded", "groups_count": len(groups)}


# ============================================================================
# Health Routes
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    ok, message = await asyncio.to_thread(StatsRepository(get_settings().db_path).check_connection)
    return HealthResponse(status="ok" if ok else "error", message=message)


@app.get("/")
async def root() -> dict:
    s = get_settings()
    return {"service": "shop-stats-service", "status": "ok", "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "group_source": s.group_source, "locale": s.locale}
