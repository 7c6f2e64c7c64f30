from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from typing import Any

import requests
import uvicorn
from rich.console import Console
from rich.table import Table

from imvu_lookup.config import Settings, upsert_env_values
from imvu_lookup.logging_config import setup_logging
from imvu_lookup.lookup import AvatarLookup
from imvu_lookup.normalize import CombinedResult
from imvu_lookup.server import connect_session, create_app
from imvu_lookup.session import AuthError, ImvuSession

logger = logging.getLogger(__name__)

_CONSOLE = Console()


def _build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="imvu-lookup",
    description="Look up IMVU users, avatars and profiles by username or id.",
  )
  commands = parser.add_subparsers(dest="command", required=True)

  serve = commands.add_parser("serve", help="Run the HTTP API and static front end.")
  serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0).")
  serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000).")

  lookup = commands.add_parser("lookup", help="Resolve one username or id and print it.")
  lookup.add_argument("query", help="IMVU username or numeric account id.")
  lookup.add_argument("--json", action="store_true", help="Print raw JSON instead of a table.")

  commands.add_parser("login", help="Log in with the configured credentials and save cookies.")
  commands.add_parser("setup", help="Store IMVU credentials in the local .env file.")
  return parser


def _prompt_required(label: str, *, secret: bool = False) -> str:
  while True:
    try:
      value = getpass.getpass(f"{label}: ") if secret else input(f"{label}: ")
    except (KeyboardInterrupt, EOFError):
      print("\nSetup cancelled.")
      raise SystemExit(1)
    value = value.strip()
    if value:
      return value
    print("Value is required.")


def _run_setup(settings: Settings) -> int:
  if not sys.stdin.isatty():
    print(f"No interactive stdin. Fill {settings.env_file} with IMVU_USERNAME and IMVU_PASSWORD.")
    return 1

  print(f"Config file: {settings.env_file}")
  values = {
    "IMVU_USERNAME": _prompt_required("IMVU username"),
    "IMVU_PASSWORD": _prompt_required("IMVU password", secret=True),
  }
  upsert_env_values(settings.env_file, values)
  print("Credentials saved.")
  return 0


def _run_login(settings: Settings) -> int:
  if not settings.has_credentials:
    logger.error("IMVU_USERNAME and IMVU_PASSWORD are not configured; run `imvu-lookup setup`.")
    return 1
  session = ImvuSession(settings)
  try:
    session.login(settings.imvu_username or "", settings.imvu_password or "")
  except (AuthError, requests.RequestException) as exc:
    logger.error("Login failed: %s", exc)
    return 1
  print(f"Logged in. Cookies saved to {settings.cookie_file}")
  return 0


def _cell(value: Any) -> str:
  if value is None or value == "":
    return "-"
  if isinstance(value, bool):
    return "yes" if value else "no"
  return str(value)


def _print_result(result: CombinedResult) -> None:
  data = result.to_dict()
  table = Table(title=f"IMVU user {result.user.id}", show_header=False)
  table.add_column("field", style="bold")
  table.add_column("value")

  user = dict(data["user"])
  flags = user.pop("flags")
  for key, value in user.items():
    table.add_row(key, _cell(value))
  active_flags = [name for name, enabled in flags.items() if enabled]
  table.add_row("flags", ", ".join(active_flags) or "-")

  for section in ("avatar", "profile"):
    values = data[section]
    if values is None:
      table.add_row(section, "unavailable")
      continue
    for key, value in values.items():
      if key == "products":
        value = len(value)
      table.add_row(f"{section}.{key}", _cell(value))

  _CONSOLE.print(table)


def _run_lookup(settings: Settings, query: str, *, as_json: bool) -> int:
  session = ImvuSession(settings)
  connect_session(session, settings)
  try:
    result = AvatarLookup(session).get_user_data(query)
  except AuthError as exc:
    logger.error("Lookup failed, IMVU session rejected: %s", exc)
    return 1
  except Exception:
    logger.exception("Lookup failed for %s", query)
    return 1
  if result is None:
    print(f"No IMVU account found for {query!r}.")
    return 1

  if as_json:
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
  else:
    _print_result(result)
  return 0


def _run_server(settings: Settings, host: str | None, port: int | None) -> int:
  app = create_app(settings)
  bind_host = host or settings.host
  bind_port = port or settings.port
  logger.info("Server running at http://localhost:%s (API under /api)", bind_port)
  uvicorn.run(app, host=bind_host, port=bind_port, log_config=None)
  return 0


def main(argv: list[str] | None = None) -> int:
  parser = _build_parser()
  args = parser.parse_args(argv)

  settings = Settings.load()
  setup_logging(settings.effective_log_level)

  if args.command == "setup":
    return _run_setup(settings)
  if args.command == "login":
    return _run_login(settings)
  if args.command == "lookup":
    return _run_lookup(settings, args.query, as_json=args.json)
  return _run_server(settings, args.host, args.port)


if __name__ == "__main__":
  raise SystemExit(main())
