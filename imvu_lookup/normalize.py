from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from imvu_lookup.envelope import recover_id

# Candidate keys per canonical field, tried in order. Upstream has shipped
# both snake_case and camelCase spellings, sometimes mixed in one record.
USER_FIELDS: dict[str, tuple[str, ...]] = {
  "id": ("id", "_id"),
  "username": ("username", "avatarname"),
  "display_name": ("display_name", "displayName"),
  "gender": ("gender",),
  "age": ("age",),
  "country": ("country",),
  "state": ("state",),
  "avatar_image_url": ("avatar_image", "avatarImage"),
  "avatar_portrait_image_url": ("avatar_portrait_image", "avatarPortraitImage"),
  "created_at": ("created", "created_datetime", "createdDatetime"),
  "registered_at": ("registered", "registered_datetime", "registeredDatetime"),
}

FLAG_FIELDS: dict[str, tuple[str, ...]] = {
  "is_vip": ("is_vip", "isVip"),
  "is_creator": ("is_creator", "isCreator"),
  "is_ambassador_program": ("is_ap", "isAp"),
  "is_staff": ("is_staff", "isStaff"),
  "is_adult": ("is_adult", "isAdult"),
  "is_age_verified": ("is_ageverified", "isAgeVerified"),
}

AVATAR_FIELDS: dict[str, tuple[str, ...]] = {
  "look_url": ("look_url", "lookUrl"),
  "asset_url": ("asset_url", "assetUrl"),
  "gender": ("gender",),
  "products": ("products",),
}

PROFILE_FIELDS: dict[str, tuple[str, ...]] = {
  "image_url": ("image",),
  "is_online": ("online", "isOnline"),
  "username": ("avatar_name", "avatarName"),
  "display_name": ("title",),
  "following_count": ("approx_following_count", "followingCount"),
  "follower_count": ("approx_follower_count", "followerCount"),
}


def _pick(data: dict[str, Any], keys: Iterable[str]) -> Any:
  for key in keys:
    value = data.get(key)
    if value is None or value == "":
      continue
    return value
  return None


def _as_str(value: Any) -> str:
  if value is None:
    return ""
  return value.strip() if isinstance(value, str) else str(value)


def _as_bool(value: Any) -> bool:
  if isinstance(value, str):
    return value.strip().lower() in {"1", "true", "yes"}
  return bool(value)


def _as_count(value: Any) -> int:
  try:
    return max(0, int(float(value)))
  except (TypeError, ValueError, OverflowError):
    return 0


def _as_optional_int(value: Any) -> int | None:
  try:
    number = int(float(value))
  except (TypeError, ValueError, OverflowError):
    return None
  return number or None


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _timestamp(value: Any) -> str:
  if value is None:
    return _now_iso()
  return _as_str(value)


def _resource_data(resource: Any) -> dict[str, Any] | None:
  if not isinstance(resource, dict):
    return None
  data = resource.get("data")
  return data if isinstance(data, dict) else None


@dataclass(frozen=True)
class UserFlags:
  is_vip: bool = False
  is_creator: bool = False
  is_ambassador_program: bool = False
  is_staff: bool = False
  is_adult: bool = False
  is_age_verified: bool = False

  def to_dict(self) -> dict[str, bool]:
    return {
      "isVip": self.is_vip,
      "isCreator": self.is_creator,
      "isAmbassadorProgram": self.is_ambassador_program,
      "isStaff": self.is_staff,
      "isAdult": self.is_adult,
      "isAgeVerified": self.is_age_verified,
    }


@dataclass(frozen=True)
class UserRecord:
  id: str
  username: str = ""
  display_name: str = ""
  gender: str = ""
  age: int | None = None
  country: str = ""
  state: str = ""
  avatar_image_url: str = ""
  avatar_portrait_image_url: str = ""
  flags: UserFlags = field(default_factory=UserFlags)
  created_at: str = field(default_factory=_now_iso)
  registered_at: str = field(default_factory=_now_iso)

  def to_dict(self) -> dict[str, Any]:
    return {
      "id": self.id,
      "username": self.username,
      "displayName": self.display_name,
      "gender": self.gender,
      "age": self.age,
      "country": self.country,
      "state": self.state,
      "avatarImageUrl": self.avatar_image_url,
      "avatarPortraitImageUrl": self.avatar_portrait_image_url,
      "flags": self.flags.to_dict(),
      "createdAt": self.created_at,
      "registeredAt": self.registered_at,
    }


@dataclass(frozen=True)
class AvatarRecord:
  look_url: str = ""
  asset_url: str = ""
  gender: str = ""
  products: tuple[Any, ...] = ()

  def to_dict(self) -> dict[str, Any]:
    return {
      "lookUrl": self.look_url,
      "assetUrl": self.asset_url,
      "gender": self.gender,
      "products": list(self.products),
    }


@dataclass(frozen=True)
class ProfileRecord:
  image_url: str = ""
  is_online: bool = False
  username: str = ""
  display_name: str = ""
  following_count: int = 0
  follower_count: int = 0

  def to_dict(self) -> dict[str, Any]:
    return {
      "imageUrl": self.image_url,
      "isOnline": self.is_online,
      "username": self.username,
      "displayName": self.display_name,
      "followingCount": self.following_count,
      "followerCount": self.follower_count,
    }


@dataclass(frozen=True)
class CombinedResult:
  user: UserRecord
  avatar: AvatarRecord | None = None
  profile: ProfileRecord | None = None

  def to_dict(self) -> dict[str, Any]:
    return {
      "user": self.user.to_dict(),
      "avatar": self.avatar.to_dict() if self.avatar is not None else None,
      "profile": self.profile.to_dict() if self.profile is not None else None,
    }


def parse_user(resource: Any, *, resource_key: str | None = None) -> UserRecord | None:
  """Normalize a ``user`` resource; ``None`` when it carries no data object.

  When the payload has no identifier, the id is recovered from the
  resource's own keys or from ``resource_key`` (the envelope key it was
  found under), e.g. ``.../user/user-123`` gives ``"123"``.
  """
  data = _resource_data(resource)
  if data is None:
    return None

  user_id = _pick(data, USER_FIELDS["id"])
  if user_id is None:
    candidates = list(resource.keys())
    if resource_key:
      candidates.append(resource_key)
    user_id = recover_id(candidates)

  flags = UserFlags(
    **{name: _as_bool(_pick(data, keys)) for name, keys in FLAG_FIELDS.items()},
  )
  return UserRecord(
    id=_as_str(user_id) or "unknown",
    username=_as_str(_pick(data, USER_FIELDS["username"])),
    display_name=_as_str(_pick(data, USER_FIELDS["display_name"])),
    gender=_as_str(_pick(data, USER_FIELDS["gender"])),
    age=_as_optional_int(_pick(data, USER_FIELDS["age"])),
    country=_as_str(_pick(data, USER_FIELDS["country"])),
    state=_as_str(_pick(data, USER_FIELDS["state"])),
    avatar_image_url=_as_str(_pick(data, USER_FIELDS["avatar_image_url"])),
    avatar_portrait_image_url=_as_str(_pick(data, USER_FIELDS["avatar_portrait_image_url"])),
    flags=flags,
    created_at=_timestamp(_pick(data, USER_FIELDS["created_at"])),
    registered_at=_timestamp(_pick(data, USER_FIELDS["registered_at"])),
  )


def parse_avatar(resource: Any) -> AvatarRecord | None:
  data = _resource_data(resource)
  if data is None:
    return None

  products = _pick(data, AVATAR_FIELDS["products"])
  return AvatarRecord(
    look_url=_as_str(_pick(data, AVATAR_FIELDS["look_url"])),
    asset_url=_as_str(_pick(data, AVATAR_FIELDS["asset_url"])),
    gender=_as_str(_pick(data, AVATAR_FIELDS["gender"])),
    products=tuple(products) if isinstance(products, list) else (),
  )


def parse_profile(resource: Any) -> ProfileRecord | None:
  data = _resource_data(resource)
  if data is None:
    return None

  return ProfileRecord(
    image_url=_as_str(_pick(data, PROFILE_FIELDS["image_url"])),
    is_online=_as_bool(_pick(data, PROFILE_FIELDS["is_online"])),
    username=_as_str(_pick(data, PROFILE_FIELDS["username"])),
    display_name=_as_str(_pick(data, PROFILE_FIELDS["display_name"])),
    following_count=_as_count(_pick(data, PROFILE_FIELDS["following_count"])),
    follower_count=_as_count(_pick(data, PROFILE_FIELDS["follower_count"])),
  )
