"""Root logger setup shared by the CLI and the HTTP server."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

_CONFIGURED = False


def setup_logging(level: str = "INFO") -> logging.Logger:
  global _CONFIGURED

  root_logger = logging.getLogger()
  root_logger.setLevel(level)

  if not _CONFIGURED:
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s - %(message)s", datefmt="[%X]"))
    root_logger.addHandler(handler)
    _CONFIGURED = True

  logging.getLogger("requests").setLevel(logging.WARNING)
  logging.getLogger("urllib3").setLevel(logging.WARNING)

  return logging.getLogger("imvu_lookup")
