"""
FastAPI application for the GL reconciliation engine.

Thin adapter: parses requests, calls the engine and maps domain errors to
HTTP status codes.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Literal, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .config import get_settings
from .engine import ReconciliationEngine
from .errors import (
    AlreadyMatched,
    ConcurrentRunConflict,
    EntityNotFound,
    ExcludedEntity,
    InvalidPeriod,
    NotMatched,
    ReconciliationError,
    StoreFailure,
)
from .models import (
    AccountSummary,
    EntityKind,
    MatchedPair,
    MatchRecord,
    ReconciliationLog,
    ReconciliationMode,
)
from .models.ledger import utcnow
from .storage import InMemoryReconciliationStore

logger = structlog.get_logger()
settings = get_settings()


def setup_logging():
    """Configure stdlib logging and route structlog through it."""
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.app_log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

setup_logging()


# Engine backing the API; replaced through dependency_overrides in tests
_engine: Optional[ReconciliationEngine] = None


def get_engine() -> ReconciliationEngine:
    global _engine
    if _engine is None:
        _engine = ReconciliationEngine(InMemoryReconciliationStore(), settings)
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting GL Reconciliation API", env=settings.app_env)
    settings.reports_dir.mkdir(parents=True, exist_ok=True)
    yield
    logger.info("Shutting down GL Reconciliation API")


app = FastAPI(
    title="GL Reconciliation Engine",
    description="Matches general-ledger postings against order-revenue forecasts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


ERROR_STATUS = (
    (InvalidPeriod, 400),
    (EntityNotFound, 404),
    (NotMatched, 404),
    (AlreadyMatched, 409),
    (ExcludedEntity, 409),
    (ConcurrentRunConflict, 409),
    (StoreFailure, 503),
)


def to_http_error(error: ReconciliationError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code, str(error))
    return HTTPException(500, str(error))


# Request/Response models
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExecuteRequest(CamelModel):
    period: str
    mode: ReconciliationMode = ReconciliationMode.BOTH
    initiator: str = "system"


class PairResponse(CamelModel):
    gl_id: str
    forecast_id: str
    method: str
    score: float

    @classmethod
    def from_pair(cls, pair: MatchedPair) -> "PairResponse":
        return cls(
            gl_id=pair.gl_entry_id,
            forecast_id=pair.forecast_line_id,
            method=pair.method.value,
            score=pair.score,
        )


class ExecuteResponse(CamelModel):
    period: str
    mode: str
    matched_exact: int
    matched_fuzzy: int
    already_matched: int
    unmatched_gl: int
    unmatched_forecast: int
    log_id: Optional[str]
    pairs: List[PairResponse]
    already_matched_pairs: List[PairResponse]
    unmatched_gl_ids: List[str]
    unmatched_forecast_ids: List[str]


class PairRequest(CamelModel):
    gl_id: str
    forecast_id: str
    initiator: str = "user"


class MatchRecordResponse(CamelModel):
    id: str
    gl_id: str
    forecast_id: str
    method: str
    score: float
    period: Optional[str]
    created_at: datetime
    created_by: str

    @classmethod
    def from_record(cls, record: MatchRecord) -> "MatchRecordResponse":
        return cls(
            id=record.id,
            gl_id=record.gl_entry_id,
            forecast_id=record.forecast_line_id,
            method=record.method.value,
            score=record.score,
            period=str(record.period) if record.period else None,
            created_at=record.created_at,
            created_by=record.created_by,
        )


class UnmatchResponse(CamelModel):
    success: bool
    gl_id: str
    forecast_id: str
    previous_method: str


class AccountSummaryResponse(CamelModel):
    account_code: str
    account_name: Optional[str]
    matched_amount: int
    unmatched_amount: int
    matched_count: int
    unmatched_count: int
    forecast_amount: int
    forecast_count: int
    difference: int

    @classmethod
    def from_summary(cls, summary: AccountSummary) -> "AccountSummaryResponse":
        return cls(
            account_code=summary.account_code,
            account_name=summary.account_name,
            matched_amount=summary.matched_amount,
            unmatched_amount=summary.unmatched_amount,
            matched_count=summary.matched_count,
            unmatched_count=summary.unmatched_count,
            forecast_amount=summary.forecast_amount,
            forecast_count=summary.forecast_count,
            difference=summary.difference,
        )


class LogResponse(CamelModel):
    id: str
    period: str
    mode: str
    matched_exact: int
    matched_fuzzy: int
    already_matched: int
    unmatched_gl: int
    unmatched_forecast: int
    total_gl: int
    total_forecast: int
    match_rate: float
    initiator: str
    settings: Dict[str, float]
    executed_at: datetime

    @classmethod
    def from_log(cls, log: ReconciliationLog) -> "LogResponse":
        return cls(
            id=log.id,
            period=str(log.period),
            mode=log.mode.value,
            matched_exact=log.counts.matched_exact,
            matched_fuzzy=log.counts.matched_fuzzy,
            already_matched=log.counts.already_matched,
            unmatched_gl=log.counts.unmatched_gl,
            unmatched_forecast=log.counts.unmatched_forecast,
            total_gl=log.counts.total_gl,
            total_forecast=log.counts.total_forecast,
            match_rate=round(log.match_rate, 2),
            initiator=log.initiator,
            settings=dict(log.settings),
            executed_at=log.executed_at,
        )


class LogListResponse(CamelModel):
    items: List[LogResponse]
    total: int
    limit: int
    offset: int


class StatisticsResponse(CamelModel):
    total_executions: int
    total_matched_exact: int
    total_matched_fuzzy: int
    total_unmatched: int
    average_match_rate: float
    last_execution_at: Optional[datetime]


class ExclusionRequest(CamelModel):
    kind: EntityKind
    ids: List[str]
    excluded: bool = True
    reason: Optional[str] = None


class ExclusionItem(CamelModel):
    id: str
    is_excluded: bool
    exclusion_reason: Optional[str]


class ExclusionResponse(CamelModel):
    updated: List[ExclusionItem]


# API Endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": utcnow().isoformat()}


@app.post("/api/reconciliation/execute", response_model=ExecuteResponse)
async def execute_reconciliation(
    request: ExecuteRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Run a reconciliation for one period."""
    try:
        result = await engine.orchestrator.run(request.period, request.mode, request.initiator)
    except ReconciliationError as e:
        raise to_http_error(e) from e

    counts = result.counts
    return ExecuteResponse(
        period=str(result.period),
        mode=result.mode.value,
        matched_exact=counts.matched_exact,
        matched_fuzzy=counts.matched_fuzzy,
        already_matched=counts.already_matched,
        unmatched_gl=counts.unmatched_gl,
        unmatched_forecast=counts.unmatched_forecast,
        log_id=result.log_id,
        pairs=[PairResponse.from_pair(p) for p in result.pairs],
        already_matched_pairs=[PairResponse.from_pair(p) for p in result.already_matched_pairs],
        unmatched_gl_ids=result.unmatched_gl_ids,
        unmatched_forecast_ids=result.unmatched_forecast_ids,
    )


@app.get("/api/reconciliation/account-summary", response_model=Dict[str, AccountSummaryResponse])
async def get_account_summary(
    period: str,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Matched/unmatched totals per account code."""
    try:
        summaries = await engine.summaries.account_summary(period)
    except ReconciliationError as e:
        raise to_http_error(e) from e

    return {
        code: AccountSummaryResponse.from_summary(summary)
        for code, summary in summaries.items()
    }


@app.post("/api/reconciliation/manual-match", response_model=MatchRecordResponse)
async def manual_match(
    request: PairRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Pair a GL entry and a forecast line by hand."""
    try:
        record = await engine.overrides.manual_match(
            request.gl_id, request.forecast_id, request.initiator
        )
    except ReconciliationError as e:
        raise to_http_error(e) from e

    return MatchRecordResponse.from_record(record)


@app.post("/api/reconciliation/unmatch", response_model=UnmatchResponse)
async def unmatch(
    request: PairRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Remove an active pairing."""
    try:
        record = await engine.overrides.unmatch(
            request.gl_id, request.forecast_id, request.initiator
        )
    except ReconciliationError as e:
        raise to_http_error(e) from e

    return UnmatchResponse(
        success=True,
        gl_id=record.gl_entry_id,
        forecast_id=record.forecast_line_id,
        previous_method=record.method.value,
    )


@app.post("/api/reconciliation/set-exclusion", response_model=ExclusionResponse)
async def set_exclusion(
    request: ExclusionRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Exclude records from reconciliation, or include them again."""
    try:
        entities = await engine.overrides.set_exclusion(
            request.kind, request.ids, request.excluded, request.reason
        )
    except ReconciliationError as e:
        raise to_http_error(e) from e

    return ExclusionResponse(updated=[
        ExclusionItem(
            id=entity.id,
            is_excluded=entity.is_excluded,
            exclusion_reason=entity.exclusion_reason,
        )
        for entity in entities
    ])


@app.get("/api/reconciliation/logs", response_model=LogListResponse)
async def list_logs(
    period: Optional[str] = None,
    period_from: Optional[str] = Query(None, alias="periodFrom"),
    period_to: Optional[str] = Query(None, alias="periodTo"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    sort_by: Literal["executed_at", "period"] = Query("executed_at", alias="sortBy"),
    descending: bool = True,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Page through the reconciliation history."""
    try:
        logs = await engine.logs.list(
            period=period,
            period_from=period_from,
            period_to=period_to,
            limit=limit,
            offset=offset,
            sort_by=sort_by,
            descending=descending,
        )
        total = await engine.logs.count(period, period_from, period_to)
    except ReconciliationError as e:
        raise to_http_error(e) from e

    return LogListResponse(
        items=[LogResponse.from_log(log) for log in logs],
        total=total,
        limit=limit,
        offset=offset,
    )


@app.get("/api/reconciliation/logs/latest", response_model=LogResponse)
async def latest_log(
    period: Optional[str] = None,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Most recent run, optionally for one period."""
    try:
        log = await engine.logs.latest(period)
    except ReconciliationError as e:
        raise to_http_error(e) from e

    if log is None:
        raise HTTPException(404, "No reconciliation has been executed")
    return LogResponse.from_log(log)


@app.get("/api/reconciliation/logs/{log_id}", response_model=LogResponse)
async def get_log(
    log_id: str,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """One reconciliation log row."""
    log = await engine.logs.get(log_id)
    if log is None:
        raise HTTPException(404, "Log not found")
    return LogResponse.from_log(log)


@app.get("/api/reconciliation/statistics", response_model=StatisticsResponse)
async def get_statistics(engine: ReconciliationEngine = Depends(get_engine)):
    """Totals across every logged run."""
    stats = await engine.logs.statistics()
    return StatisticsResponse(
        total_executions=stats.total_executions,
        total_matched_exact=stats.total_matched_exact,
        total_matched_fuzzy=stats.total_matched_fuzzy,
        total_unmatched=stats.total_unmatched,
        average_match_rate=round(stats.average_match_rate, 2),
        last_execution_at=stats.last_execution_at,
    )


@app.get("/api/reconciliation/overrides/export")
async def export_override_audit(engine: ReconciliationEngine = Depends(get_engine)):
    """Export the manual override audit trail to a JSON file."""
    output_path = engine.overrides.audit.export_to_file()
    return FileResponse(
        output_path,
        media_type="application/json",
        filename=output_path.name,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.app_log_level.lower())
