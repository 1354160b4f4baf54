"""Shared plumbing for vendor HTTP clients."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

import requests

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class SoftResult(Generic[T]):
    """Outcome of a best-effort call: either ``value`` or a captured ``error``.

    Callers decide explicitly whether a failure is logged and skipped or
    re-raised.
    """

    value: T | None = None
    error: UpstreamError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def capture(cls, func: Callable[..., T], *args: Any, **kwargs: Any) -> "SoftResult[T]":
        try:
            return cls(value=func(*args, **kwargs))
        except UpstreamError as exc:
            return cls(error=exc)


class JsonHttpClient:
    """Small wrapper around :class:`requests.Session` with bounded timeouts."""

    provider: str = "http"

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._headers = headers or {}

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = getattr(exc.response, "status_code", None)
            logger.warning("%s %s %s failed with status %s", self.provider, method, path, status)
            raise UpstreamError(
                f"{self.provider} API returned {status}", provider=self.provider, status=status
            ) from exc
        except requests.RequestException as exc:
            logger.warning("%s %s %s failed: %s", self.provider, method, path, exc)
            raise UpstreamError(
                f"{self.provider} API request failed: {exc}", provider=self.provider
            ) from exc
        return response

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{self.provider} API returned invalid JSON", provider=self.provider
            ) from exc


__all__ = ["JsonHttpClient", "SoftResult"]
