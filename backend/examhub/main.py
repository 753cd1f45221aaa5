"""FastAPI application entrypoint and HTTP controllers.

This module wires the ExamHub API: middleware, exception handlers, the
authentication endpoints and the resource routers from `routers`.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses.

Endpoints implemented here:
- POST /register, POST /login (public, throttled)
- POST /logout, POST /refresh-token, GET /user (bearer token)
- GET /health (public)

Resource CRUD lives under /users, /roles, /institutes, /exams,
/user-exams, /institute-exams and /exam-results.
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from . import models, services
from .auth import get_current_token, get_current_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import install_exception_handlers
from .routers import USER_INCLUDES, resource_routers, user_detail
from .schemas import AuthOut, LoginIn, MessageOut, TokenOut, UserCreate, UserOut
from .utils.rate_limit import InMemoryRateLimiter

app = FastAPI(title="ExamHub API")
logger = logging.getLogger("examhub.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)
auth_rate_limiter = InMemoryRateLimiter(
    max_requests=lambda: settings.AUTH_RATE_LIMIT_PER_MIN,
    window_seconds=lambda: settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
)

# dev frontends run on other origins
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Total-Count", "X-Request-ID"],
    )

install_exception_handlers(app)
create_db_and_tables()


def _request_log_line(request: Request, req_id: str, started: float, status_code: Optional[int] = None) -> str:
    entry = {
        "request_id": req_id,
        "method": request.method,
        "path": request.url.path,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        entry["status_code"] = status_code
    return json.dumps(entry, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag each request with an id and write one JSON log line for it."""
    req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", _request_log_line(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    logger.info("request_done %s", _request_log_line(request, req_id, started, response.status_code))
    return response


def throttle_auth(request: Request) -> None:
    """Apply the per-client limit for the public auth endpoints."""
    client = request.client.host if request.client else "unknown"
    auth_rate_limiter.hit(f"{client}:{request.url.path}")


@app.post('/register', response_model=AuthOut, status_code=201, dependencies=[Depends(throttle_auth)])
def register(payload: UserCreate, db: Session = Depends(get_session)):
    """Register a new user and return it with a bearer token.

    The role defaults to "User" (id 4) when `role_id` is omitted and
    `is_active` defaults to true. A taken email yields 422.
    """
    user, token = services.AuthService(db).register(payload)
    return {'message': 'User registered successfully', 'user': UserOut.model_validate(user), 'token': token}


@app.post('/login', response_model=AuthOut, dependencies=[Depends(throttle_auth)])
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate with email and password and return a new bearer token.

    Unknown emails and wrong passwords get the same 401 response.
    """
    user, token = services.AuthService(db).login(payload.email, payload.password)
    return {'message': 'Login successful', 'user': UserOut.model_validate(user), 'token': token}


@app.post('/logout', response_model=MessageOut)
def logout(token: models.AccessToken = Depends(get_current_token), db: Session = Depends(get_session)):
    """Revoke the token used for this request."""
    services.AuthService(db).logout(token)
    return {'message': 'Logged out successfully'}


@app.post('/refresh-token', response_model=TokenOut)
def refresh_token(
    token: models.AccessToken = Depends(get_current_token),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    """Revoke the current token and return a fresh one."""
    new_token = services.AuthService(db).refresh(user, token)
    return {'message': 'Token refreshed successfully', 'token': new_token}


@app.get('/user')
def profile(user: models.User = Depends(get_current_user)):
    """Return the authenticated user with role and institute attached."""
    return user_detail(user, USER_INCLUDES)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


for _router in resource_routers():
    app.include_router(_router)
