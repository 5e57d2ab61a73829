"""HTTP entry point: accepts chat messages and serves flow results."""

from __future__ import annotations

import time
from typing import Awaitable, Callable, Literal, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from insight_flow.config import Settings, get_settings
from insight_flow.errors import InsightFlowError
from insight_flow.logging_config import configure_logging, get_logger
from insight_flow.orchestration.pipeline import StagePipeline
from insight_flow.services.flow_store import FlowResult, FlowResultStore

logger = get_logger(__name__)

HealthCheck = Callable[[], Awaitable[bool]]


class ChatRequest(BaseModel):
    message: str = Field(..., max_length=8192, description="User chat message")

    @field_validator("message")
    @classmethod
    def message_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message must not be empty")
        return v


class ChatAccepted(BaseModel):
    """Returned immediately; the answer is produced in the background."""

    status: Literal["processing"] = "processing"
    message: str
    flow_id: str


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    components: dict[str, bool]
    pending_flows: int
    timestamp: float


def create_app(
    settings: Settings | None = None,
    pipeline: StagePipeline | None = None,
    result_store: FlowResultStore | None = None,
    health_checks: Optional[dict[str, HealthCheck]] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Without an injected pipeline the default one is built from settings,
    so missing credentials fail here rather than per request.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    _results = result_store or FlowResultStore(max_results=settings.max_flow_results)
    _checks: dict[str, HealthCheck] = dict(health_checks or {})

    if pipeline is None:
        from insight_flow.deps import (
            create_embedding_service,
            create_llm_client,
            create_pipeline,
            create_vector_store,
        )

        llm = create_llm_client(settings)
        embedder = create_embedding_service(settings)
        store = create_vector_store(settings)
        pipeline = create_pipeline(
            settings,
            llm=llm,
            embedder=embedder,
            store=store,
            result_store=_results,
        )
        for name, component in (("completion", llm), ("embedding", embedder), ("vector_store", store)):
            check = getattr(component, "health_check", None)
            if check is not None:
                _checks.setdefault(name, check)

    _pipeline = pipeline

    app = FastAPI(
        title="Insight Flow",
        description="Context-augmented chat answers over prior agent conversations",
        version="0.1.0",
    )
    app.state.pipeline = _pipeline
    app.state.result_store = _results

    @app.exception_handler(InsightFlowError)
    async def insight_flow_error_handler(request: Request, exc: InsightFlowError) -> JSONResponse:
        logger.error("request_failed", path=request.url.path, **exc.to_dict())
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error_code": exc.code, "message": exc.message},
        )

    @app.post("/chat", response_model=ChatAccepted, status_code=status.HTTP_202_ACCEPTED)
    async def chat(request: ChatRequest) -> ChatAccepted:
        """Start a flow for the message and return without waiting for it."""
        flow_id, _ = _pipeline.submit(request.message)
        logger.info("chat_accepted", correlation_id=flow_id, message_length=len(request.message))
        return ChatAccepted(message=request.message, flow_id=flow_id)

    @app.get("/flows/{flow_id}", response_model=FlowResult)
    async def get_flow(flow_id: str) -> FlowResult:
        """Result of a completed flow; 404 while it is still running or unknown."""
        result = _results.get(flow_id)
        if result is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "FLOW_NOT_FOUND", "message": f"No result for flow {flow_id}"},
            )
        return result

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        components: dict[str, bool] = {}
        for name, check in _checks.items():
            try:
                components[name] = bool(await check())
            except Exception as e:
                logger.warning("health_check_failed", component=name, error_type=type(e).__name__)
                components[name] = False
        return HealthResponse(
            status="healthy" if all(components.values()) else "degraded",
            components=components,
            pending_flows=_pipeline.pending,
            timestamp=time.time(),
        )

    logger.info("app_created", settings=settings.to_dict(redact=True), health_checks=sorted(_checks))
    return app
