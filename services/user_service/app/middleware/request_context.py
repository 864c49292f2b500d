"""Per-request context: correlation ID and locale."""

import uuid
from typing import Callable, Sequence

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shared.utils.logging import set_correlation_id, set_request_locale


def resolve_locale(
    accept_language: str | None,
    supported: Sequence[str],
    default: str,
) -> str:
    """Pick the best supported language from an Accept-Language header.

    Region subtags are ignored ("vi-VN" matches "vi"). Entries with q=0 are
    skipped; ties keep header order.
    """
    if not accept_language:
        return default

    candidates: list[tuple[float, int, str]] = []
    for position, part in enumerate(accept_language.split(",")):
        pieces = [p.strip() for p in part.split(";")]
        tag = pieces[0].lower()
        if not tag:
            continue
        quality = 1.0
        for param in pieces[1:]:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        if quality <= 0:
            continue
        candidates.append((-quality, position, tag.split("-")[0]))

    supported_set = {s.lower() for s in supported}
    for _, _, language in sorted(candidates):
        if language in supported_set:
            return language
    return default


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID and the resolved locale to each request."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    def __init__(self, app, supported_locales: Sequence[str], default_locale: str):
        super().__init__(app)
        self.supported_locales = list(supported_locales)
        self.default_locale = default_locale

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        locale = resolve_locale(
            request.headers.get("accept-language"),
            self.supported_locales,
            self.default_locale,
        )
        set_request_locale(locale)
        request.state.locale = locale

        response = await call_next(request)

        response.headers[self.CORRELATION_ID_HEADER] = correlation_id
        response.headers["Content-Language"] = locale
        return response
