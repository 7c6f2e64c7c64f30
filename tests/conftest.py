from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import pytest
from requests import PreparedRequest, Response
from requests.adapters import BaseAdapter

from imvu_lookup.config import Settings
from imvu_lookup.session import ImvuSession

BASE_URL = "https://api.imvu.com"


def envelope(key: str, data: Any, **resources: Any) -> dict[str, Any]:
  """Build a denormalized payload whose root entry is ``key``."""
  denormalized = {key: {"data": data}}
  for extra_key, extra_data in resources.items():
    denormalized[extra_key.replace("_", "-")] = {"data": extra_data}
  return {"denormalized": denormalized, "id": key}


class FakeImvuApi(BaseAdapter):
  """Transport adapter answering canned JSON per (method, path)."""

  def __init__(self) -> None:
    super().__init__()
    self.routes: dict[tuple[str, str], Any] = {}
    self.calls: list[tuple[PreparedRequest, dict[str, Any]]] = []
    self.hooks: dict[tuple[str, str], Callable[[], None]] = {}

  def add(self, method: str, path: str, body: Any = None, *, status: int = 200) -> None:
    self.routes[(method.upper(), path)] = (status, body)

  def fail(self, method: str, path: str, exc: Exception) -> None:
    self.routes[(method.upper(), path)] = exc

  def on(self, method: str, path: str, callback: Callable[[], None]) -> None:
    """Run ``callback`` on the transport thread before answering the route."""
    self.hooks[(method.upper(), path)] = callback

  def paths(self) -> list[str]:
    return [urlsplit(request.url).path for request, _ in self.calls]

  def query(self, index: int) -> dict[str, list[str]]:
    return parse_qs(urlsplit(self.calls[index][0].url).query)

  def send(self, request: PreparedRequest, **kwargs: Any) -> Response:
    self.calls.append((request, kwargs))
    key = (request.method, urlsplit(request.url).path)
    hook = self.hooks.get(key)
    if hook is not None:
      hook()
    route = self.routes.get(key)
    if isinstance(route, Exception):
      raise route
    status, body = route or (404, {"status": "failure", "message": "no such route"})

    response = Response()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Error"
    response.url = request.url
    response.request = request
    response.encoding = "utf-8"
    if isinstance(body, (bytes, str)):
      response._content = body.encode("utf-8") if isinstance(body, str) else body
      response.headers["Content-Type"] = "text/html"
    else:
      response._content = json.dumps(body).encode("utf-8")
      response.headers["Content-Type"] = "application/json"
    return response

  def close(self) -> None:
    pass


@pytest.fixture
def isolated_env(monkeypatch):
  monkeypatch.setattr(os, "environ", dict(os.environ))
  for name in (
    "IMVU_LOOKUP_ENV_FILE",
    "IMVU_USERNAME",
    "IMVU_PASSWORD",
    "IMVU_BASE_URL",
    "IMVU_COOKIE_FILE",
    "IMVU_TIMEOUT",
    "HOST",
    "PORT",
    "STATIC_DIR",
    "LOG_LEVEL",
    "DEBUG",
  ):
    os.environ.pop(name, None)
  return os.environ


def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
  values: dict[str, Any] = {
    "loaded_env_files": [],
    "env_file": tmp_path / ".env",
    "imvu_username": "tester",
    "imvu_password": "secret",
    "imvu_base_url": BASE_URL,
    "cookie_file": tmp_path / "cookies.json",
    "request_timeout": 10.0,
    "host": "127.0.0.1",
    "port": 3000,
    "static_dir": tmp_path / "static",
    "log_level": "INFO",
    "debug": False,
  }
  values.update(overrides)
  return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
  return make_settings(tmp_path)


@pytest.fixture
def api() -> FakeImvuApi:
  return FakeImvuApi()


@pytest.fixture
def session(settings, api) -> ImvuSession:
  client = ImvuSession(settings)
  client.http.mount(BASE_URL, api)
  return client


@pytest.fixture
def logged_in_api(api) -> FakeImvuApi:
  api.add("POST", "/login", {"status": "success"})
  api.add("GET", "/login/me", envelope("login-me", {"sauce": "s4uce"}))
  return api
