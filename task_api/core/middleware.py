"""
ASGI middleware capping the size of image upload requests.

The image route only sees the file after the whole multipart body has been
spooled to disk, so oversized bodies are cut off here while they stream in.
"""
import logging
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Room for multipart boundaries and part headers around the file itself
MULTIPART_OVERHEAD = 64 * 1024


class _BodyTooLarge(Exception):
    pass


class UploadSizeLimitMiddleware:
    """Reject ``POST .../image`` bodies larger than ``max_body_size``."""

    def __init__(self, app: ASGIApp, max_body_size: int):
        self.app = app
        self.max_body_size = max_body_size

    def _applies(self, scope: Scope) -> bool:
        return (
            scope["type"] == "http"
            and scope["method"] == "POST"
            and scope["path"].rstrip("/").endswith("/image")
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self._applies(scope):
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
            logger.warning(f"Rejected upload to {scope['path']}: Content-Length {content_length}")
            await self._reject(scope, receive, send)
            return

        # Chunked or understated bodies are counted as they arrive
        received = 0
        exceeded = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    exceeded = True
                    raise _BodyTooLarge()
            return message

        async def guarded_send(message: Message) -> None:
            # Whatever the app answers after the cut-off is replaced below
            if not exceeded:
                await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except _BodyTooLarge:
            pass

        if exceeded:
            logger.warning(f"Rejected upload to {scope['path']}: body over {self.max_body_size} bytes")
            await self._reject(scope, receive, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(status_code=400, content={"error": "File too large"})
        await response(scope, receive, send)
