# MIT License
#
# Copyright (c) 2025 Timothy J Fontaine
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Error types raised by the completion proxy and their JSON rendering.

Every failure of a chat turn is reported to the browser the same way: a
server-error status and an ErrorReply body. The subclasses only exist so the
logs and tests can tell the failures apart.
"""

from typing import Optional

from aiohttp import web

from chatweb.logging_config import get_loggers
from chatweb.server.models import ErrorReply

app_logger, _, _ = get_loggers()

ERROR_PREFIX = "Error while talking to the AI: "


class ChatProxyError(Exception):
    """Base class for failures of a single chat turn."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidChatRequestError(ChatProxyError):
    """The request body is missing, not JSON, or fails validation."""


class UnknownModelError(ChatProxyError):
    """The model id is not in the catalog and strict matching is enabled."""


class ProviderUnavailableError(ChatProxyError):
    """The provider for the requested model has no credentials configured."""


class UpstreamError(ChatProxyError):
    """The provider call failed (network, auth, quota, bad status)."""


class EmptyCompletionError(ChatProxyError):
    """The provider answered without any choice content."""


def error_response(
    message: str, details: Optional[str] = None, status_code: int = 500
) -> web.Response:
    """
    Builds the JSON error body returned to the chat view.

    Args:
        message: A human-readable reason, prefixed with ERROR_PREFIX.
        details: Optional technical detail (validation errors, upstream text).
        status_code: The HTTP status, a server error by default.

    Returns:
        An aiohttp JSON response.
    """
    body = ErrorReply(error=ERROR_PREFIX + message, details=details)
    return web.json_response(
        body.model_dump(exclude_none=True),
        status=status_code,
    )


def proxy_error_response(exc: ChatProxyError) -> web.Response:
    """Renders a ChatProxyError as the JSON error body."""
    app_logger.debug(
        "Rendering proxy error",
        extra={"error_type": type(exc).__name__, "status": exc.status_code},
    )
    return error_response(exc.message, exc.details, exc.status_code)
