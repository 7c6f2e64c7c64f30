from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from imvu_lookup.config import Settings
from imvu_lookup.cookie_store import FileCookieStore
from imvu_lookup.envelope import Envelope

logger = logging.getLogger(__name__)

USER_AGENT = (
  "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
  "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
SAUCE_HEADER = "x-imvu-sauce"
APPLICATION_HEADER = "x-imvu-application"
APPLICATION_ID = "imvu-web"
FAILURE_STATUS = "failure"


class ImvuError(RuntimeError):
  """Base class for IMVU client errors."""


class AuthError(ImvuError):
  """Raised when the login handshake is rejected or no token can be obtained."""


class SessionExpiredError(AuthError):
  """Raised when upstream rejects the current session with HTTP 401."""


class ApiError(ImvuError):
  """Raised when an upstream response carries a failure marker."""

  def __init__(self, message: str, *, code: str | None = None, status: int | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.code = code
    self.status = status


def _is_failure(payload: Any) -> bool:
  return isinstance(payload, dict) and payload.get("status") == FAILURE_STATUS


def _failure_message(payload: dict[str, Any]) -> str:
  message = payload.get("message")
  return str(message) if message else "unknown error"


@dataclass
class SessionState:
  sauce: str = ""
  authenticated: bool = False


class ImvuSession:
  """One authenticated session against the IMVU API.

  Cookies live in a file-backed store so a restarted process can call
  :meth:`resume` instead of sending credentials again. The sauce token is
  kept in memory only and re-derived from the cookies on resume.
  """

  def __init__(
    self,
    settings: Settings,
    *,
    http: requests.Session | None = None,
    cookie_store: FileCookieStore | None = None,
  ) -> None:
    self._base_url = settings.imvu_base_url.rstrip("/")
    self._timeout = settings.request_timeout
    self._cookie_store = cookie_store or FileCookieStore(settings.cookie_file)
    self._state = SessionState()

    self.http = http or requests.Session()
    self.http.headers["User-Agent"] = USER_AGENT
    self.http.cookies.update(self._cookie_store.load())

  @property
  def is_authenticated(self) -> bool:
    return self._state.authenticated

  @property
  def sauce(self) -> str:
    return self._state.sauce

  @property
  def has_saved_cookies(self) -> bool:
    return len(self.http.cookies) > 0

  def _url(self, path: str) -> str:
    if not path.startswith("/"):
      path = f"/{path}"
    return f"{self._base_url}{path}"

  def _reset(self) -> None:
    self._state = SessionState()
    self.http.headers.pop(SAUCE_HEADER, None)
    self.http.headers.pop(APPLICATION_HEADER, None)

  def _authenticate(self, sauce: str) -> None:
    self._state = SessionState(sauce=sauce, authenticated=True)
    self.http.headers[SAUCE_HEADER] = sauce
    self.http.headers[APPLICATION_HEADER] = APPLICATION_ID
    self._cookie_store.save(self.http.cookies)

  def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
    return self.http.request(method, self._url(path), timeout=self._timeout, **kwargs)

  @staticmethod
  def _json_or_none(response: requests.Response) -> Any:
    try:
      return response.json()
    except ValueError:
      return None

  def _fetch_sauce(self) -> str:
    response = self._send("GET", "/login/me")
    payload = self._json_or_none(response)
    if _is_failure(payload):
      logger.debug("Token request rejected: %s", _failure_message(payload))
      raise AuthError("token acquisition failed")

    envelope = Envelope.from_payload(payload)
    sauce = envelope.root_data().get("sauce")
    if not isinstance(sauce, str) or not sauce:
      raise AuthError("token acquisition failed")
    return sauce

  def login(self, username: str, password: str) -> bool:
    logger.info("Logging in to IMVU as %s", username)
    try:
      response = self._send("POST", "/login", json={"username": username, "password": password})
      payload = self._json_or_none(response)
      if _is_failure(payload):
        raise AuthError(f"credentials rejected: {_failure_message(payload)}")
      self._authenticate(self._fetch_sauce())
    except Exception:
      self._reset()
      raise

    logger.info("Authenticated with IMVU API")
    return True

  def resume(self) -> bool:
    """Re-acquire the token from saved cookies; False when they no longer work."""
    if not self.has_saved_cookies:
      return False
    try:
      self._authenticate(self._fetch_sauce())
    except (AuthError, requests.RequestException) as exc:
      self._reset()
      logger.info("Saved IMVU session could not be resumed: %s", exc)
      return False

    logger.info("Resumed IMVU session from saved cookies")
    return True

  def logout(self) -> None:
    self._reset()
    self.http.cookies.clear()
    self._cookie_store.clear()
    logger.info("IMVU session cleared")

  def request(
    self,
    path: str,
    *,
    method: str = "GET",
    params: dict[str, Any] | None = None,
    json: Any = None,
  ) -> dict[str, Any]:
    response = self._send(method, path, params=params, json=json)
    payload = self._json_or_none(response)

    if response.status_code == 401:
      raise SessionExpiredError(f"IMVU session rejected for {path}")
    if _is_failure(payload):
      raise ApiError(
        f"API error: {_failure_message(payload)}",
        code=payload.get("error"),
        status=response.status_code,
      )
    if not 200 <= response.status_code < 300:
      raise ApiError(f"IMVU HTTP {response.status_code}", status=response.status_code)
    if not isinstance(payload, dict):
      raise ApiError("IMVU returned a non-JSON response", status=response.status_code)
    return payload
