import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import select

from .config import (
    LOG_LEVEL,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    OPENAI_TIMEOUT,
    RATE_LIMIT_AI,
)
from .ai import AIAnalysisError, AIAnalyzer
from .completion import OpenAICompletionClient
from .database import Base, SessionLocal, engine
from .models import Bug, CodeAnalysis
from .schemas import (
    BugAnalysisResult,
    BugCreate,
    BugOut,
    BugUpdate,
    CodeAnalysisCreate,
    CodeAnalysisOut,
    SuggestionRequest,
    SuggestionResponse,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Columns a client may not null out through PUT
_REQUIRED_BUG_FIELDS = ("title", "priority", "status")

limiter = Limiter(key_func=get_remote_address)


def _ai_rate_limit() -> str:
    return RATE_LIMIT_AI


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # One HTTP client for the process lifetime, closed on shutdown.
    async with httpx.AsyncClient(timeout=OPENAI_TIMEOUT) as http:
        completion = OpenAICompletionClient(
            http, OPENAI_API_KEY, model=OPENAI_MODEL, base_url=OPENAI_BASE_URL
        )
        app.state.analyzer = AIAnalyzer(completion)
        logger.info("AI analyzer ready (model=%s)", OPENAI_MODEL)
        yield


app = FastAPI(title="BugScope", lifespan=lifespan)
app.state.limiter = limiter


def get_analyzer(request: Request) -> AIAnalyzer:
    return request.app.state.analyzer


async def _get_bug_or_404(session, bug_id: str) -> Bug:
    bug = await session.get(Bug, bug_id)
    if not bug:
        raise HTTPException(status_code=404, detail="Bug not found.")
    return bug


async def _store_bug_analysis(bug_id: str, analysis: BugAnalysisResult) -> Bug:
    # Written in its own session so no connection is held during the AI call.
    async with SessionLocal() as session:
        bug = await _get_bug_or_404(session, bug_id)
        bug.ai_analysis = analysis.model_dump(by_alias=True)
        await session.commit()
    return bug


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please slow down and try again later."},
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/bugs", response_model=List[BugOut])
async def list_bugs(project_id: Optional[str] = Query(default=None, alias="projectId")):
    stmt = select(Bug).order_by(Bug.created_at.desc())
    if project_id:
        stmt = stmt.where(Bug.project_id == project_id)
    async with SessionLocal() as session:
        bugs = (await session.scalars(stmt)).all()
    return [BugOut.model_validate(bug) for bug in bugs]


@app.get("/api/bugs/{bug_id}", response_model=BugOut)
async def get_bug(bug_id: str):
    async with SessionLocal() as session:
        bug = await _get_bug_or_404(session, bug_id)
    return BugOut.model_validate(bug)


@app.post("/api/bugs", response_model=BugOut, status_code=201)
@limiter.limit(_ai_rate_limit)
async def create_bug(
    request: Request, body: BugCreate, analyzer: AIAnalyzer = Depends(get_analyzer)
):
    async with SessionLocal() as session:
        bug = Bug(**body.model_dump())
        session.add(bug)
        await session.commit()

    # The bug is already stored; analysis is best-effort.
    try:
        analysis = await analyzer.analyze_bug(
            bug.title, bug.description or "", bug.stack_trace
        )
    except AIAnalysisError as exc:
        logger.warning("Bug %s saved without AI analysis: %s", bug.id, exc)
        return BugOut.model_validate(bug)

    return BugOut.model_validate(await _store_bug_analysis(bug.id, analysis))


@app.put("/api/bugs/{bug_id}", response_model=BugOut)
async def update_bug(bug_id: str, body: BugUpdate):
    changes = body.model_dump(exclude_unset=True)
    for field in _REQUIRED_BUG_FIELDS:
        if changes.get(field, "") is None:
            del changes[field]

    async with SessionLocal() as session:
        bug = await _get_bug_or_404(session, bug_id)
        for field, value in changes.items():
            setattr(bug, field, value)
        await session.commit()
    return BugOut.model_validate(bug)


@app.delete("/api/bugs/{bug_id}", status_code=204)
async def delete_bug(bug_id: str):
    async with SessionLocal() as session:
        bug = await _get_bug_or_404(session, bug_id)
        await session.delete(bug)
        await session.commit()
    return Response(status_code=204)


@app.post("/api/bugs/{bug_id}/analysis", response_model=BugOut)
@limiter.limit(_ai_rate_limit)
async def analyze_bug(
    request: Request, bug_id: str, analyzer: AIAnalyzer = Depends(get_analyzer)
):
    async with SessionLocal() as session:
        bug = await _get_bug_or_404(session, bug_id)

    try:
        analysis = await analyzer.analyze_bug(
            bug.title, bug.description or "", bug.stack_trace
        )
    except AIAnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return BugOut.model_validate(await _store_bug_analysis(bug_id, analysis))


@app.get("/api/code-analysis/{project_id}", response_model=List[CodeAnalysisOut])
async def list_code_analyses(project_id: str):
    stmt = (
        select(CodeAnalysis)
        .where(CodeAnalysis.project_id == project_id)
        .order_by(CodeAnalysis.created_at.desc())
    )
    async with SessionLocal() as session:
        analyses = (await session.scalars(stmt)).all()
    return [CodeAnalysisOut.model_validate(analysis) for analysis in analyses]


@app.post("/api/code-analysis", response_model=CodeAnalysisOut, status_code=201)
@limiter.limit(_ai_rate_limit)
async def create_code_analysis(
    request: Request,
    body: CodeAnalysisCreate,
    analyzer: AIAnalyzer = Depends(get_analyzer),
):
    try:
        result = await analyzer.analyze_code(body.code, body.language, body.file_path)
    except AIAnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    dumped = result.model_dump(by_alias=True)
    async with SessionLocal() as session:
        analysis = CodeAnalysis(
            project_id=body.project_id,
            file_path=body.file_path,
            language=body.language,
            quality_score=result.quality_score,
            suggestions=dumped["suggestions"],
            metrics=dumped["metrics"],
            ai_insights=dumped["issues"],
        )
        session.add(analysis)
        await session.commit()

    logger.info(
        "Analyzed %s for project %s (score %.0f)",
        body.file_path,
        body.project_id,
        result.quality_score,
    )
    return CodeAnalysisOut.model_validate(analysis)


@app.post("/api/ai/suggestions", response_model=SuggestionResponse)
@limiter.limit(_ai_rate_limit)
async def generate_suggestions(
    request: Request,
    body: SuggestionRequest,
    analyzer: AIAnalyzer = Depends(get_analyzer),
):
    try:
        suggestions = await analyzer.generate_suggestions(
            body.context, body.language, body.requirements
        )
    except AIAnalysisError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SuggestionResponse(suggestions=suggestions)
