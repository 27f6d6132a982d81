import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import date
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    Form,
    Header,
    Response,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .catalog import ExamCatalog
from .config import settings
from .exceptions import GenerationError, MalformedQuestionError
from .generator import QuestionSource
from .llm_client import LLMClient
from .models import ActionKind, Difficulty, SessionConfig, StudyMode, UserAction
from .redis_session import redis_client
from .scoring import summarize_history
from .service import SessionManager, result_view, session_view
from .store import RegistrationStore, StudySessionStore

# --- Logging Setup ---
logger = logging.getLogger("examprep")
logger.setLevel(logging.INFO)

if not os.path.exists(settings.LOG_DIR):
    os.makedirs(settings.LOG_DIR)
log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
file_handler.setFormatter(
    logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
)
logger.addHandler(file_handler)


# --- Services ---
catalog = ExamCatalog(settings.CATALOG_FILE)
registrations = RegistrationStore(redis_client)
history = StudySessionStore(redis_client)
manager = SessionManager(QuestionSource(LLMClient()), history)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    catalog.load()
    yield
    manager.shutdown()


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)


# --- Dependencies ---
def get_manager() -> SessionManager:
    return manager


def get_registrations() -> RegistrationStore:
    return registrations


def get_history() -> StudySessionStore:
    return history


def get_client_id(
    client_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return client_id


def get_user_id(
    user_id: Optional[str] = Header(None, alias=settings.USER_HEADER),
) -> Optional[str]:
    return user_id


def _no_session():
    return JSONResponse({"error": "Session invalid"}, status_code=401)


def _set_client_cookie(response: Response, client_id: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=client_id,
        httponly=True,
        samesite="Lax",
    )


def _generation_failed(error: Exception, client_id: Optional[str] = None):
    logger.warning(f"Generation failed: {error}")
    response = JSONResponse(
        {"error": "Failed to generate questions. Please try again.", "retry": True},
        status_code=502,
    )
    # The session stays registered so the client can retry it through restart
    if client_id:
        _set_client_cookie(response, client_id)
    return response


# --- Routes ---
@app.get("/api/catalog")
async def get_catalog():
    return catalog.get_categories()


@app.post("/api/sessions")
async def start_study_session(
    response: Response,
    registration_id: str = Form(...),
    mode: StudyMode = Form(...),
    difficulty: Difficulty = Form(...),
    client_id: Optional[str] = Depends(get_client_id),
    user_id: Optional[str] = Depends(get_user_id),
    sessions: SessionManager = Depends(get_manager),
    registration_store: RegistrationStore = Depends(get_registrations),
):
    if not user_id:
        return JSONResponse({"error": "Not signed in"}, status_code=401)
    registration = await run_in_threadpool(registration_store.get, registration_id, user_id)
    if registration is None:
        return JSONResponse({"error": "Registration not found"}, status_code=404)

    client_id = client_id or str(uuid.uuid4())
    config = SessionConfig(
        exam_type=registration.exam_type,
        category=registration.exam_category,
        difficulty=difficulty,
        mode=mode,
    )
    session = sessions.create(client_id, config, user_id, registration.id)
    logger.info(
        f"New session: {session.session_id} [Exam: {config.exam_type}, "
        f"Mode: {mode.value}, Difficulty: {difficulty.value}]"
    )
    _set_client_cookie(response, client_id)

    try:
        session = await sessions.start(client_id)
    except (GenerationError, MalformedQuestionError) as e:
        return _generation_failed(e, client_id)
    return session_view(session)


@app.get("/api/session")
async def get_session_state(
    client_id: Optional[str] = Depends(get_client_id),
    sessions: SessionManager = Depends(get_manager),
):
    session = sessions.get(client_id) if client_id else None
    if session is None:
        return _no_session()
    return session_view(session)


@app.post("/api/session/action")
async def submit_action(
    kind: ActionKind = Form(...),
    value: Optional[str] = Form(None),
    client_id: Optional[str] = Depends(get_client_id),
    sessions: SessionManager = Depends(get_manager),
):
    session = sessions.get(client_id) if client_id else None
    if session is None:
        return _no_session()
    accepted = sessions.act(client_id, UserAction(kind=kind, value=value))
    await sessions.flush()
    return {"accepted": accepted, "session": session_view(session)}


@app.post("/api/session/end")
async def end_session(
    client_id: Optional[str] = Depends(get_client_id),
    sessions: SessionManager = Depends(get_manager),
):
    session = sessions.get(client_id) if client_id else None
    if session is None:
        return _no_session()
    sessions.act(client_id, UserAction(kind=ActionKind.END))
    await sessions.flush()
    return session_view(session)


@app.post("/api/session/restart")
async def restart_session(
    client_id: Optional[str] = Depends(get_client_id),
    sessions: SessionManager = Depends(get_manager),
):
    if not client_id or sessions.restart(client_id) is None:
        return _no_session()
    try:
        session = await sessions.start(client_id)
    except (GenerationError, MalformedQuestionError) as e:
        return _generation_failed(e, client_id)
    return session_view(session)


@app.get("/api/result")
async def get_result_data(
    client_id: Optional[str] = Depends(get_client_id),
    sessions: SessionManager = Depends(get_manager),
):
    session = sessions.get(client_id) if client_id else None
    if session is None:
        return _no_session()
    if session.result is None:
        return JSONResponse({"error": "Session not complete"}, status_code=404)
    return result_view(session.result)


@app.post("/api/reset")
async def reset_session(
    response: Response,
    client_id: Optional[str] = Depends(get_client_id),
    sessions: SessionManager = Depends(get_manager),
):
    if client_id:
        sessions.teardown(client_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


@app.get("/api/registrations/{registration_id}/dashboard")
def get_dashboard(
    registration_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    registration_store: RegistrationStore = Depends(get_registrations),
    history_store: StudySessionStore = Depends(get_history),
):
    if not user_id:
        return JSONResponse({"error": "Not signed in"}, status_code=401)
    registration = registration_store.get(registration_id, user_id)
    if registration is None:
        return JSONResponse({"error": "Registration not found"}, status_code=404)
    records = history_store.recent(registration.id, settings.HISTORY_LIMIT)
    return summarize_history(records, registration.exam_date, date.today())


if __name__ == "__main__":
    uvicorn.run("examprep.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
