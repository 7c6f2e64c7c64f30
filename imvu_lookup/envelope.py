from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

USER_KEY_MARKER = "user-"


def resource_path(collection: str, resource_id: Any, *, by_user: bool = False) -> str:
  """Build an upstream resource path.

  ``resource_path("user", 42)`` gives ``/user/user-42`` and
  ``resource_path("profile", 42, by_user=True)`` gives
  ``/profile/profile-user-42``.
  """
  infix = "user-" if by_user else ""
  return f"/{collection}/{collection}-{infix}{resource_id}"


def recover_id(keys: Iterable[Any], marker: str = USER_KEY_MARKER) -> str | None:
  """Return the text after ``marker`` in the first key that contains it."""
  for key in keys:
    if not isinstance(key, str) or marker not in key:
      continue
    candidate = key.rsplit(marker, 1)[1].strip("/")
    if candidate:
      return candidate
  return None


@dataclass(frozen=True)
class Envelope:
  """Denormalized upstream response: a table of resources plus a root pointer."""

  resources: dict[str, Any] = field(default_factory=dict)
  root_key: str | None = None

  @classmethod
  def from_payload(cls, payload: Any) -> "Envelope":
    if not isinstance(payload, dict):
      return cls()
    resources = payload.get("denormalized")
    root_key = payload.get("id")
    return cls(
      resources=resources if isinstance(resources, dict) else {},
      root_key=root_key if isinstance(root_key, str) and root_key else None,
    )

  @property
  def is_empty(self) -> bool:
    return not self.resources or self.root_key is None

  def dereference(self, key: Any) -> dict[str, Any] | None:
    if not isinstance(key, str):
      return None
    resource = self.resources.get(key)
    return resource if isinstance(resource, dict) else None

  def root(self) -> dict[str, Any] | None:
    return self.dereference(self.root_key)

  def root_data(self) -> dict[str, Any]:
    resource = self.root() or {}
    data = resource.get("data")
    return data if isinstance(data, dict) else {}
