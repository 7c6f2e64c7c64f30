from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

import requests
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from imvu_lookup.config import Settings
from imvu_lookup.lookup import AvatarLookup
from imvu_lookup.session import AuthError, ImvuSession

logger = logging.getLogger(__name__)

MISSING_QUERY_MESSAGE = "Query parameter is required"
NOT_FOUND_MESSAGE = "Avatar not found"
INTERNAL_ERROR_MESSAGE = "Internal server error"


class AvatarQuery(BaseModel):
  query: str | None = None


def connect_session(session: ImvuSession, settings: Settings) -> bool:
  """Bring the session up at startup without ever raising.

  Saved cookies are tried first; configured credentials are used when they
  do not work. Without either, the process keeps running unauthenticated.
  """
  if session.resume():
    return True

  if not settings.has_credentials:
    logger.warning(
      "IMVU credentials not configured. Set IMVU_USERNAME and IMVU_PASSWORD; "
      "some API features may not work without authentication.",
    )
    return False

  try:
    session.login(settings.imvu_username or "", settings.imvu_password or "")
  except (AuthError, requests.RequestException) as exc:
    logger.error("Failed to authenticate with IMVU API: %s", exc)
    logger.warning("Some API features may not work without authentication.")
    return False
  return True


def _error(status_code: int, message: str) -> JSONResponse:
  return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(
  settings: Settings | None = None,
  *,
  session: ImvuSession | None = None,
  connect_on_startup: bool = True,
) -> FastAPI:
  runtime_settings = settings or Settings.load()
  imvu_session = session or ImvuSession(runtime_settings)
  lookup = AvatarLookup(imvu_session)

  @asynccontextmanager
  async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if connect_on_startup:
      await run_in_threadpool(connect_session, imvu_session, runtime_settings)
    yield

  app = FastAPI(title="IMVU avatar lookup", lifespan=lifespan)
  app.state.settings = runtime_settings
  app.state.session = imvu_session
  app.state.lookup = lookup

  app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
  )

  @app.exception_handler(RequestValidationError)
  async def invalid_body(_: Request, exc: RequestValidationError) -> JSONResponse:
    # A missing body or a non-string query counts as no query at all.
    logger.debug("Rejected avatar request body: %s", exc.errors())
    return _error(400, MISSING_QUERY_MESSAGE)

  @app.post("/api/avatar")
  def search_avatar(body: AvatarQuery) -> JSONResponse:
    query = (body.query or "").strip()
    if not query:
      return _error(400, MISSING_QUERY_MESSAGE)

    logger.info("Searching for avatar: %s", query)
    try:
      result = lookup.get_user_data(query)
    except Exception:
      logger.exception("Error fetching avatar data for %s", query)
      return _error(500, INTERNAL_ERROR_MESSAGE)

    if result is None:
      return _error(404, NOT_FOUND_MESSAGE)
    return JSONResponse(content={"success": True, "data": result.to_dict()})

  @app.get("/api/health")
  def health_check() -> dict:
    return {
      "status": "OK",
      "authenticated": imvu_session.is_authenticated,
      "timestamp": datetime.now(timezone.utc).isoformat(),
    }

  if runtime_settings.static_dir.is_dir():
    app.mount("/", StaticFiles(directory=runtime_settings.static_dir, html=True), name="static")
  else:
    logger.info("Static directory %s not found; front end disabled", runtime_settings.static_dir)

  return app
