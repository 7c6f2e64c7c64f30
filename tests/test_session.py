import json

import pytest
import requests

from imvu_lookup.session import (
  APPLICATION_HEADER,
  SAUCE_HEADER,
  USER_AGENT,
  ApiError,
  AuthError,
  ImvuSession,
  SessionExpiredError,
)

from conftest import BASE_URL, envelope


def test_login_sets_token_headers_and_persists_cookies(session, logged_in_api, settings):
  session.http.cookies.set("osCsid", "cookie-1", domain="api.imvu.com", path="/")

  assert session.login("tester", "secret") is True

  assert session.is_authenticated
  assert session.sauce == "s4uce"
  assert session.http.headers[SAUCE_HEADER] == "s4uce"
  assert session.http.headers[APPLICATION_HEADER] == "imvu-web"
  assert logged_in_api.paths() == ["/login", "/login/me"]

  login_request = logged_in_api.calls[0][0]
  assert login_request.method == "POST"
  assert json.loads(login_request.body) == {"username": "tester", "password": "secret"}

  saved = json.loads(settings.cookie_file.read_text(encoding="utf-8"))
  assert [record["name"] for record in saved] == ["osCsid"]


def test_login_rejected_credentials_clears_previous_token(session, logged_in_api):
  session.login("tester", "secret")
  logged_in_api.add("POST", "/login", {"status": "failure", "message": "bad password"})

  with pytest.raises(AuthError, match="credentials rejected: bad password"):
    session.login("tester", "wrong")

  assert not session.is_authenticated
  assert session.sauce == ""
  assert SAUCE_HEADER not in session.http.headers
  assert APPLICATION_HEADER not in session.http.headers


def test_login_fails_when_token_request_fails(session, api):
  api.add("POST", "/login", {"status": "success"})
  api.add("GET", "/login/me", {"status": "failure", "message": "nope"})

  with pytest.raises(AuthError, match="token acquisition failed"):
    session.login("tester", "secret")
  assert not session.is_authenticated


def test_login_fails_when_sauce_missing(session, api):
  api.add("POST", "/login", {"status": "success"})
  api.add("GET", "/login/me", envelope("login-me", {"sauce": ""}))

  with pytest.raises(AuthError, match="token acquisition failed"):
    session.login("tester", "secret")
  assert not session.is_authenticated


def test_login_transport_error_resets_state(session, logged_in_api):
  session.login("tester", "secret")
  logged_in_api.fail("POST", "/login", requests.ConnectionError("down"))

  with pytest.raises(requests.ConnectionError):
    session.login("tester", "secret")

  assert not session.is_authenticated
  assert session.sauce == ""


def test_requests_carry_user_agent_and_timeout(session, api):
  api.add("GET", "/user/user-1", envelope("user-1", {"id": "1"}))

  session.request("/user/user-1")

  request, kwargs = api.calls[0]
  assert request.headers["User-Agent"] == USER_AGENT
  assert kwargs["timeout"] == 10.0


def test_request_sends_auth_headers_after_login(session, logged_in_api):
  logged_in_api.add("GET", "/avatar/avatar-1", envelope("avatar-1", {}))
  session.login("tester", "secret")

  session.request("/avatar/avatar-1")

  request = logged_in_api.calls[-1][0]
  assert request.headers["x-imvu-sauce"] == "s4uce"
  assert request.headers["x-imvu-application"] == "imvu-web"


def test_request_failure_marker_raises_api_error(session, api):
  api.add("GET", "/user/user-1", {"status": "failure", "message": "Not allowed", "error": "E-42"})

  with pytest.raises(ApiError) as excinfo:
    session.request("/user/user-1")

  assert excinfo.value.code == "E-42"
  assert excinfo.value.status == 200
  assert "Not allowed" in str(excinfo.value)


def test_request_failure_marker_in_error_status(session, api):
  api.add("GET", "/user/user-1", {"status": "failure", "message": "gone"}, status=404)

  with pytest.raises(ApiError, match="gone") as excinfo:
    session.request("/user/user-1")
  assert excinfo.value.status == 404


def test_request_error_status_without_marker(session, api):
  api.add("GET", "/user/user-1", {"detail": "oops"}, status=503)

  with pytest.raises(ApiError, match="HTTP 503"):
    session.request("/user/user-1")


def test_request_non_json_body(session, api):
  api.add("GET", "/user/user-1", "<html>maintenance</html>")

  with pytest.raises(ApiError, match="non-JSON"):
    session.request("/user/user-1")


def test_unauthorized_response_keeps_session_state(session, logged_in_api):
  session.login("tester", "secret")
  logged_in_api.add("GET", "/user/user-1", {"status": "failure", "message": "auth"}, status=401)

  with pytest.raises(SessionExpiredError):
    session.request("/user/user-1")

  assert session.is_authenticated
  assert session.sauce == "s4uce"
  assert session.http.headers[SAUCE_HEADER] == "s4uce"


def test_transport_errors_propagate_unchanged(session, api):
  api.fail("GET", "/user/user-1", requests.Timeout("slow"))

  with pytest.raises(requests.Timeout):
    session.request("/user/user-1")


def test_resume_uses_saved_cookies(settings, logged_in_api):
  first = ImvuSession(settings)
  first.http.mount(BASE_URL, logged_in_api)
  first.http.cookies.set("osCsid", "cookie-1", domain="api.imvu.com", path="/")
  first.login("tester", "secret")

  restarted = ImvuSession(settings)
  restarted.http.mount(BASE_URL, logged_in_api)

  assert restarted.has_saved_cookies
  assert restarted.resume() is True
  assert restarted.sauce == "s4uce"
  assert logged_in_api.paths()[-1] == "/login/me"
  assert logged_in_api.calls[-1][0].headers["Cookie"] == "osCsid=cookie-1"


def test_resume_without_cookies_does_nothing(session, api):
  assert session.resume() is False
  assert api.calls == []


def test_resume_with_stale_cookies_returns_false(session, api):
  session.http.cookies.set("osCsid", "old", domain="api.imvu.com", path="/")
  api.add("GET", "/login/me", {"status": "failure", "message": "expired"})

  assert session.resume() is False
  assert not session.is_authenticated


def test_logout_clears_cookies_and_file(session, logged_in_api, settings):
  session.http.cookies.set("osCsid", "cookie-1", domain="api.imvu.com", path="/")
  session.login("tester", "secret")
  assert settings.cookie_file.exists()

  session.logout()

  assert not session.is_authenticated
  assert len(session.http.cookies) == 0
  assert not settings.cookie_file.exists()
