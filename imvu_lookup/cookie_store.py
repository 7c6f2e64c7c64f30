from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from requests.cookies import RequestsCookieJar, create_cookie

logger = logging.getLogger(__name__)


def _cookie_record(cookie: Any) -> dict[str, Any]:
  return {
    "name": cookie.name,
    "value": cookie.value,
    "domain": cookie.domain,
    "path": cookie.path,
    "secure": bool(cookie.secure),
    "expires": cookie.expires,
    "rest": dict(getattr(cookie, "_rest", {}) or {}),
  }


class FileCookieStore:
  """Keeps a cookie jar on disk as a plain JSON list of cookie records."""

  def __init__(self, path: Path) -> None:
    self.path = Path(path)

  def load(self) -> RequestsCookieJar:
    jar = RequestsCookieJar()
    if not self.path.exists():
      return jar

    try:
      records = json.loads(self.path.read_text(encoding="utf-8") or "[]")
    except (OSError, ValueError) as exc:
      logger.warning("Ignoring unreadable cookie file %s: %s", self.path, exc)
      return jar

    if not isinstance(records, list):
      logger.warning("Ignoring cookie file %s: expected a list of cookies", self.path)
      return jar

    for record in records:
      if not isinstance(record, dict) or not record.get("name"):
        continue
      jar.set_cookie(
        create_cookie(
          name=str(record["name"]),
          value=str(record.get("value") or ""),
          domain=str(record.get("domain") or ""),
          path=str(record.get("path") or "/"),
          secure=bool(record.get("secure")),
          expires=record.get("expires"),
          rest=record.get("rest") if isinstance(record.get("rest"), dict) else {},
        ),
      )
    logger.debug("Loaded %d cookies from %s", len(jar), self.path)
    return jar

  def save(self, jar: RequestsCookieJar) -> None:
    records = [_cookie_record(cookie) for cookie in jar]
    self.path.parent.mkdir(parents=True, exist_ok=True)
    self.path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
    logger.debug("Saved %d cookies to %s", len(records), self.path)

  def clear(self) -> None:
    if self.path.exists():
      self.path.unlink()
