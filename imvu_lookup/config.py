from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PLACEHOLDER_USERNAME = "your_username"
PLACEHOLDER_PASSWORD = "your_password"


def _env_bool(name: str, default: bool = False) -> bool:
  raw = os.getenv(name)
  if raw is None:
    return default
  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
  raw = os.getenv(name)
  if raw is None or not raw.strip():
    return default
  try:
    return int(raw.strip())
  except ValueError:
    return default


def _env_float(name: str, default: float) -> float:
  raw = os.getenv(name)
  if raw is None or not raw.strip():
    return default
  try:
    return float(raw.strip())
  except ValueError:
    return default


def get_project_root() -> Path:
  return Path(__file__).resolve().parent.parent


def get_env_file_path() -> Path:
  override = os.getenv("IMVU_LOOKUP_ENV_FILE")
  if override:
    return Path(override).expanduser().resolve()
  return (get_project_root() / ".env").resolve()


def load_env_file() -> list[Path]:
  env_path = get_env_file_path()
  loaded: list[Path] = []
  if env_path.exists():
    # Real process env wins over .env so containers can override it.
    load_dotenv(env_path, override=False)
    loaded.append(env_path)
  return loaded


def _resolve_path(raw: str | None, default: Path) -> Path:
  if not raw:
    return default
  path = Path(raw).expanduser()
  if not path.is_absolute():
    path = get_project_root() / path
  return path.resolve()


def _quote_env_value(value: str) -> str:
  if re.fullmatch(r"[A-Za-z0-9_./:@+\-]+", value):
    return value
  escaped = value.replace("\\", "\\\\").replace('"', '\\"')
  return f'"{escaped}"'


def upsert_env_values(env_path: Path, values: dict[str, str]) -> None:
  env_path.parent.mkdir(parents=True, exist_ok=True)

  existing_lines: list[str] = []
  if env_path.exists():
    existing_lines = env_path.read_text(encoding="utf-8").splitlines()

  key_pattern = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=")
  line_index_by_key: dict[str, int] = {}
  for idx, line in enumerate(existing_lines):
    match = key_pattern.match(line)
    if match:
      line_index_by_key[match.group(1)] = idx

  for key, value in values.items():
    rendered = f"{key}={_quote_env_value(value)}"
    if key in line_index_by_key:
      existing_lines[line_index_by_key[key]] = rendered
    else:
      existing_lines.append(rendered)

  env_path.write_text("\n".join(existing_lines).strip() + "\n", encoding="utf-8")


@dataclass
class Settings:
  loaded_env_files: list[Path]
  env_file: Path

  imvu_username: str | None
  imvu_password: str | None
  imvu_base_url: str
  cookie_file: Path
  request_timeout: float

  host: str
  port: int
  static_dir: Path

  log_level: str
  debug: bool

  @property
  def has_credentials(self) -> bool:
    username = (self.imvu_username or "").strip()
    password = (self.imvu_password or "").strip()
    if not username or not password:
      return False
    return username != PLACEHOLDER_USERNAME and password != PLACEHOLDER_PASSWORD

  @property
  def effective_log_level(self) -> str:
    return "DEBUG" if self.debug else self.log_level.upper()

  @classmethod
  def load(cls) -> "Settings":
    loaded_env_files = load_env_file()
    env_file = get_env_file_path()
    root = get_project_root()
    return cls(
      loaded_env_files=loaded_env_files,
      env_file=env_file,
      imvu_username=os.getenv("IMVU_USERNAME"),
      imvu_password=os.getenv("IMVU_PASSWORD"),
      imvu_base_url=os.getenv("IMVU_BASE_URL", "https://api.imvu.com"),
      cookie_file=_resolve_path(os.getenv("IMVU_COOKIE_FILE"), root / "cookies.json"),
      request_timeout=_env_float("IMVU_TIMEOUT", 10.0),
      host=os.getenv("HOST", "0.0.0.0"),
      port=_env_int("PORT", 3000),
      static_dir=_resolve_path(os.getenv("STATIC_DIR"), root / "static"),
      log_level=os.getenv("LOG_LEVEL", "INFO"),
      debug=_env_bool("DEBUG", default=False),
    )
