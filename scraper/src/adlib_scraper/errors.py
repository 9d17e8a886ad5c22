"""Exception types raised by the pipeline."""

from __future__ import annotations


class ScraperError(Exception):
    """Base class for failures that end a run."""


class ConfigError(ScraperError, ValueError):
    """Missing credential or required query parameter; raised before any work starts."""


class CatalogError(ScraperError, RuntimeError):
    """The catalog API failed or returned something unusable."""

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        return f"{base} (status={self.status})"


__all__ = ["CatalogError", "ConfigError", "ScraperError"]
