"""
CORS middleware for the generation API.

Every response carries the allow-origin/headers/methods headers, and any
OPTIONS pre-flight is answered directly with 204 and no body. The origin
defaults to "*"; set ALLOWED_ORIGIN to the frontend's origin in production.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


class CORSMiddleware(BaseHTTPMiddleware):
    ALLOW_HEADERS = "Content-Type"

    # Read-only endpoints (/api/quota, /health, /metrics) answer GET
    DEFAULT_METHODS = "GET, OPTIONS"
    PATH_METHODS = {"/api/generate": "POST, OPTIONS"}

    def __init__(self, app, allowed_origin: str = "*"):
        super().__init__(app)
        self.allowed_origin = allowed_origin

    def _cors_headers(self, path: str) -> dict:
        return {
            "Access-Control-Allow-Origin": self.allowed_origin,
            "Access-Control-Allow-Headers": self.ALLOW_HEADERS,
            "Access-Control-Allow-Methods": self.PATH_METHODS.get(path.rstrip("/") or "/", self.DEFAULT_METHODS),
        }

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=self._cors_headers(request.url.path))

        response = await call_next(request)
        response.headers.update(self._cors_headers(request.url.path))
        return response
