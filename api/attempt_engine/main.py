"""
Main FastAPI Application
Controller layer that exposes the attempt engine services.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask

from attempt_engine.config import get_settings
from attempt_engine.errors import AttemptEngineError
from attempt_engine.schemas import (
    AttemptView,
    ModuleOrderRequest,
    SaveProgressRequest,
    StartAttemptRequest,
    TestAttempt,
)
from attempt_engine.services.catalog import Catalog, HttpCatalog, InMemoryCatalog
from attempt_engine.services.essay_grader import (
    GeminiWritingEvaluator,
    WritingEvaluator,
    evaluate_attempt_writing,
    get_client,
)
from attempt_engine.services.lifecycle import (
    attempt_question_ids,
    get_attempt,
    set_module_order,
    start_attempt,
    submit_attempt,
)
from attempt_engine.services.progress import save_progress
from attempt_engine.services.report_generator import generate_report
from attempt_engine.services.store import AttemptStore

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# Setup Paths
BASE_DIR = Path(__file__).resolve().parents[2]
OUTPUT_DIR = BASE_DIR / "output"


def get_runtime_output_dir() -> Path:
    """Resolve output directory for local dev or serverless runtime."""
    if os.getenv("VERCEL"):
        return Path(tempfile.gettempdir()) / "attempt-engine-output"
    return OUTPUT_DIR


def build_catalog() -> Catalog:
    if settings.catalog_url:
        return HttpCatalog(settings.catalog_url, timeout=settings.catalog_timeout_seconds)
    logger.warning("CATALOG_URL not set; using an empty in-memory catalog")
    return InMemoryCatalog()


attempt_store = AttemptStore()
catalog = build_catalog()


def get_store() -> AttemptStore:
    return attempt_store


def get_catalog() -> Catalog:
    return catalog


def get_current_user(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    """Caller identity is resolved by the platform gateway and passed in X-User-Id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id.strip()


def get_api_key_header(
    x_gemini_api_key: Optional[str] = Header(default=None, alias="X-Gemini-API-Key"),
) -> Optional[str]:
    return x_gemini_api_key


def get_writing_evaluator(api_key: Optional[str] = Depends(get_api_key_header)) -> WritingEvaluator:
    try:
        client = get_client(api_key)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=f"Configuration error: {str(e)}")
    return GeminiWritingEvaluator(client, max_score=settings.writing_max_score)


# Initialize FastAPI App
app = FastAPI(
    title="Attempt Engine API",
    description="Timed multi-section exam attempts: assembly, progress, and scoring",
    version="1.0.0"
)

# CORS Middleware (Allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AttemptEngineError)
async def attempt_engine_error_handler(request: Request, exc: AttemptEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
async def read_root():
    """Return API status info."""
    return {"message": "Attempt Engine API is running."}


@app.post("/api/attempts", response_model=TestAttempt)
def start_attempt_endpoint(
    payload: StartAttemptRequest,
    response: Response,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Start a test attempt, or resume the caller's in-progress attempt.

    Returns 201 for a new attempt and 200 when resuming.
    """
    attempt, created = start_attempt(store, catalog, user_id, payload.test_template_id)
    response.status_code = 201 if created else 200
    return attempt


@app.post("/api/attempts/{attempt_id}/module-order", response_model=TestAttempt)
def set_module_order_endpoint(
    attempt_id: str,
    payload: ModuleOrderRequest,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
):
    """Set the section order of a choose-your-order exam."""
    return set_module_order(store, attempt_id, user_id, payload.module_order)


@app.get("/api/attempts/{attempt_id}", response_model=AttemptView)
def get_attempt_endpoint(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
):
    """Return the attempt with its questions (redacted until completion)."""
    return get_attempt(store, catalog, attempt_id, user_id)


@app.patch("/api/attempts/{attempt_id}/progress")
def save_progress_endpoint(
    attempt_id: str,
    payload: SaveProgressRequest,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
):
    """Record answers, review flags, timers and navigation state."""
    save_progress(store, attempt_id, user_id, payload)
    return {"status": "success", "message": "Progress saved"}


@app.post("/api/attempts/{attempt_id}/submit", response_model=TestAttempt)
def submit_attempt_endpoint(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
):
    """Score and complete the attempt."""
    return submit_attempt(store, catalog, attempt_id, user_id)


@app.post("/api/attempts/{attempt_id}/evaluate-writing", response_model=TestAttempt)
def evaluate_writing_endpoint(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    evaluator: WritingEvaluator = Depends(get_writing_evaluator),
):
    """Grade essay answers of a completed attempt and recompute its stats."""
    return evaluate_attempt_writing(store, catalog, evaluator, attempt_id, user_id, settings)


@app.get("/api/attempts/{attempt_id}/report")
def download_report(
    attempt_id: str,
    user_id: str = Depends(get_current_user),
    store: AttemptStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Download the score report of a completed attempt.

    Each download renders into its own temporary file, removed once sent.

    Returns:
        File response with the .docx file.
    """
    attempt = store.get(attempt_id, user_id)
    questions = catalog.get_questions(attempt_question_ids(attempt))

    output_filename = f"report_{attempt.id}.docx"
    runtime_output_dir = get_runtime_output_dir()
    runtime_output_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        delete=False, prefix=f"report_{attempt.id}_", suffix=".docx", dir=runtime_output_dir
    ) as buffer:
        output_path = buffer.name

    try:
        generate_report(attempt, questions, output_path)
    except Exception:
        os.remove(output_path)
        raise

    return FileResponse(
        output_path,
        filename=output_filename,
        media_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        background=BackgroundTask(os.remove, output_path),
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Attempt Engine API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
