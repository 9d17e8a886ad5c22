"""Structured JSON logging for the ad library pipeline."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

UTC = getattr(datetime, "UTC", timezone.utc)
_LOGGER_NAME = "scraper"
_configured = False
_base_context: dict[str, Any] = {}
_context_stack: list[dict[str, Any]] = []


def configure_logging(level: int = logging.INFO) -> None:
    """Install the line formatter once per process."""

    global _configured
    if _configured:
        return
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    _configured = True


def set_global_context(**fields: Any) -> None:
    """Attach fields (app name, version, ...) to every record emitted afterwards."""

    _base_context.update({k: v for k, v in fields.items() if v is not None})


@contextmanager
def logging_context(**fields: Any) -> Iterator[None]:
    """Scope extra fields, e.g. the keyword/country of a run, to a ``with`` block."""

    ctx = {k: v for k, v in fields.items() if v is not None}
    _context_stack.append(ctx)
    try:
        yield
    finally:
        _context_stack.pop()


def _merged_context() -> dict[str, Any]:
    merged: dict[str, Any] = dict(_base_context)
    for ctx in _context_stack:
        merged.update(ctx)
    return merged


def jlog(level: str, /, **fields: Any) -> None:
    """Emit one JSON payload on the ``scraper`` logger."""

    log = logging.getLogger(_LOGGER_NAME)
    record = {"ts": datetime.now(UTC).isoformat(), **_merged_context(), **fields}
    getattr(log, level.lower())(json.dumps(record, ensure_ascii=False, sort_keys=True, default=str))


def adlog(event: str, *, ad_id: str, publisher_id: str, url: str | None, level: str = "info", **kw: Any) -> None:
    """Ad-scoped shortcut around :func:`jlog`."""

    jlog(level, event=event, ad_id=ad_id, publisher_id=publisher_id, url=url, **kw)


__all__ = ["adlog", "configure_logging", "jlog", "logging_context", "set_global_context"]
