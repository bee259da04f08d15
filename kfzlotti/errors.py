"""Typed failures raised by the dataset loaders and the fallback tier."""

from __future__ import annotations

from typing import Optional


class KfzDataError(RuntimeError):
    """Base class for dataset loading failures."""


class DataFetchError(KfzDataError):
    """Raised when a dataset endpoint is unreachable or answers with a non-2xx status."""

    def __init__(self, url: str, status_code: Optional[int], reason: str) -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is None:
            message = f"Failed to fetch {url}: {reason}"
        else:
            message = f"Failed to fetch {url}: {status_code} {reason}"
        super().__init__(message)

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


class InvalidDataError(KfzDataError):
    """Raised when a fetched payload fails its structural validator."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        self.detail = detail
        super().__init__(f"Invalid data structure from {url}: {detail}")


class FallbackUnavailableError(KfzDataError):
    """Raised when the embedded fallback index is missing or corrupt."""


__all__ = [
    "DataFetchError",
    "FallbackUnavailableError",
    "InvalidDataError",
    "KfzDataError",
]
