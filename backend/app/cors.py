"""CORS handling that leaves provider-facing endpoints to their own routes."""
from __future__ import annotations

from typing import Iterable, Tuple

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class PathExemptCORSMiddleware(CORSMiddleware):
    """``CORSMiddleware`` that passes requests under ``exempt_paths`` straight through.

    The payment provider posts IPN messages and preflights from origins outside
    the browser allow-list; those routes answer CORS themselves.
    """

    def __init__(self, app: ASGIApp, *, exempt_paths: Iterable[str] = (), **options) -> None:
        super().__init__(app, **options)
        self.exempt_paths: Tuple[str, ...] = tuple(path.rstrip("/") for path in exempt_paths)

    def is_exempt(self, path: str) -> bool:
        normalized = path.rstrip("/")
        return any(normalized == exempt or normalized.startswith(exempt + "/") for exempt in self.exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.is_exempt(scope.get("path", "")):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


__all__ = ["PathExemptCORSMiddleware"]
