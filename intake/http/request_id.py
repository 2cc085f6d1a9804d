"""Request ID middleware.

Assigns a stable X-Request-Id header to each response when absent and
exposes the id to handlers via `scope["state"]`.
"""

from __future__ import annotations

import uuid


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        header_bytes = self.header_name.lower().encode("latin-1")
        incoming = None
        for key, value in scope.get("headers") or []:
            if key.lower() == header_bytes:
                incoming = value.decode("latin-1")
                break
        request_id = incoming or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = list(message.get("headers") or [])
                present = [k.lower() for k, _ in headers]
                if header_bytes not in present:
                    headers.append((self.header_name.encode("latin-1"), request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_wrapper)


__all__ = ["RequestIdMiddleware"]
