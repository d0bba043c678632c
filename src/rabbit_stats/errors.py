"""Errors raised by the management API clients."""

from __future__ import annotations

from typing import Optional

import httpx


class ManagementAPIError(Exception):
    """A management API request failed.

    Raised for transport failures (``status_code`` is ``None``) and, when the
    client has ``raise_for_status`` enabled, for 4xx/5xx responses. The
    underlying ``httpx`` exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        method: str,
        url: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        reason = self.status_code if self.status_code is not None else self.message
        return f"{self.method} {self.url} failed: {reason}"

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ManagementAPIError":
        request = response.request
        return cls(
            response.reason_phrase or "HTTP error",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            body=response.text,
        )

    @classmethod
    def from_transport(cls, exc: httpx.HTTPError, method: str, url: str) -> "ManagementAPIError":
        return cls(str(exc) or type(exc).__name__, method=method, url=url)
