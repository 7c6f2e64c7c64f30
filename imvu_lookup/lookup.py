from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

from imvu_lookup.envelope import Envelope, resource_path
from imvu_lookup.normalize import (
  AvatarRecord,
  CombinedResult,
  ProfileRecord,
  UserRecord,
  parse_avatar,
  parse_profile,
  parse_user,
)
from imvu_lookup.session import AuthError, ImvuSession

logger = logging.getLogger(__name__)

QUERY_ID = "id"
QUERY_USERNAME = "username"

_NUMERIC_QUERY = re.compile(r"[0-9]+")

T = TypeVar("T")


def normalize_query(query: str) -> str:
  return query.strip().lstrip("@").strip()


def classify_query(query: str) -> str:
  """Digits only means an account id, anything else a username.

  An all-digit username cannot be told apart from an id and is looked up
  as an id.
  """
  return QUERY_ID if _NUMERIC_QUERY.fullmatch(query) else QUERY_USERNAME


def _search_target(envelope: Envelope) -> tuple[str | None, bool]:
  """Return the envelope key holding the user and whether the search matched."""
  items = envelope.root_data().get("items")
  if not isinstance(items, list):
    return envelope.root_key, True
  if not items:
    return None, False

  first = items[0]
  if isinstance(first, dict):
    first = first.get("id")
  return (first if isinstance(first, str) else None), True


class AvatarLookup:
  def __init__(self, session: ImvuSession, *, max_workers: int = 2) -> None:
    self._session = session
    self._max_workers = max(2, max_workers)

  def get_user_by_id(self, user_id: str) -> UserRecord | None:
    try:
      envelope = Envelope.from_payload(self._session.request(resource_path("user", user_id)))
      if envelope.is_empty:
        return None
      return parse_user(envelope.root(), resource_key=envelope.root_key)
    except AuthError:
      raise
    except Exception as exc:
      logger.warning("Error fetching user by id %s: %s", user_id, exc)
      return None

  def get_user_by_username(self, username: str) -> UserRecord | None:
    try:
      envelope = Envelope.from_payload(
        self._session.request("/user", params={"username": username}),
      )
      if envelope.is_empty:
        return None

      target_key, matched = _search_target(envelope)
      if not matched:
        logger.info("No IMVU account matches username %s", username)
        return None
      return parse_user(envelope.dereference(target_key), resource_key=target_key)
    except AuthError:
      raise
    except Exception as exc:
      logger.warning("Error fetching user by username %s: %s", username, exc)
      return None

  def get_avatar(self, user_id: str) -> AvatarRecord | None:
    envelope = Envelope.from_payload(self._session.request(resource_path("avatar", user_id)))
    return parse_avatar(envelope.root())

  def get_profile(self, user_id: str) -> ProfileRecord | None:
    envelope = Envelope.from_payload(
      self._session.request(resource_path("profile", user_id, by_user=True)),
    )
    return parse_profile(envelope.root())

  @staticmethod
  def _optional(label: str, user_id: str, fetch: Callable[[str], T | None]) -> T | None:
    try:
      return fetch(user_id)
    except Exception as exc:
      logger.warning("Error fetching %s for user %s: %s", label, user_id, exc)
      return None

  def resolve_user(self, query: str) -> UserRecord | None:
    if classify_query(query) == QUERY_ID:
      return self.get_user_by_id(query)
    return self.get_user_by_username(query)

  def get_user_data(self, query: str) -> CombinedResult | None:
    """Resolve ``query`` to a user plus avatar and profile.

    Returns ``None`` when no account matches. Avatar and profile are fetched
    in parallel and each degrades to ``None`` on its own failure.
    ``AuthError`` from the session propagates.
    """
    normalized = normalize_query(query)
    if not normalized:
      return None

    user = self.resolve_user(normalized)
    if user is None:
      return None

    with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
      avatar_future = pool.submit(self._optional, "avatar", user.id, self.get_avatar)
      profile_future = pool.submit(self._optional, "profile", user.id, self.get_profile)
      avatar = avatar_future.result()
      profile = profile_future.result()

    return CombinedResult(user=user, avatar=avatar, profile=profile)
