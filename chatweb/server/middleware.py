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
Middleware module for aiohttp application.

This module provides middlewares for:
- Access logging (request timing, model, provider, token usage)
- Error handling (ChatProxyError and unexpected exceptions as JSON errors)
"""

import time
from typing import Awaitable, Callable

from aiohttp import web

from ..logging_config import get_loggers
from .errors import ChatProxyError, error_response, proxy_error_response

# Get loggers for consistent logging throughout the application
app_logger, access_logger, _ = get_loggers()


def logging_and_metrics_middleware():
    """
    Middleware factory for logging requests.

    Handles:
    - Request timing (total duration, upstream duration)
    - Token counts reported by the provider
    - Final structured access log line
    """

    @web.middleware
    async def middleware(
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        start_time = time.perf_counter()
        client_address_str = f"{request.remote}"
        request["client_address_str"] = client_address_str
        access_logger.debug(
            f"[{client_address_str}] Incoming: {request.method} {request.path_qs}"
        )

        try:
            response = await handler(request)
        except web.HTTPException as e:
            access_logger.info(
                f"[{client_address_str}] {request.method} {request.path_qs} {e.status}"
            )
            raise

        duration = time.perf_counter() - start_time
        upstream_duration = request.get("upstream_duration")
        upstream_str = f"{upstream_duration:.3f}s" if upstream_duration else "N/A"
        prompt_tokens = request.get("prompt_tokens", 0)
        completion_tokens = request.get("completion_tokens", 0)

        log_msg_final = f"[{client_address_str}] {request.method} {request.path_qs} "
        log_msg_final += f"{response.status}. TotalDur: {duration:.3f}s, "
        log_msg_final += f"UpstreamDur: {upstream_str}"
        if request.get("chat_model"):
            log_msg_final += (
                f", Model: {request['chat_model']} ({request.get('chat_provider')}), "
                f"PToken: {prompt_tokens}, CToken: {completion_tokens}"
            )
        if request.get("error_indicator"):
            log_msg_final += f" [{request['error_indicator']}]"

        access_logger.info(
            log_msg_final,
            extra={
                "remote_address": client_address_str,
                "http_method": request.method,
                "http_path_qs": request.path_qs,
                "status": response.status,
                "total_duration_seconds": round(duration, 3),
            },
        )
        return response

    return middleware


def error_handling_middleware():
    """
    Middleware factory for error handling.

    Wraps the handler call in a try/except block and turns failures into
    the JSON error body the chat view understands.
    """

    @web.middleware
    async def middleware(
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        client_address_str = request.get("client_address_str", "Unknown Client")

        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except ChatProxyError as e:
            app_logger.warning(
                f"[{client_address_str}] Chat turn failed: {e.message}",
                extra={"error_type": type(e).__name__},
            )
            request["error_indicator"] = type(e).__name__
            return proxy_error_response(e)
        except Exception as e:
            app_logger.exception(
                f"[{client_address_str}] Unhandled exception in request handler: {e}"
            )
            request["error_indicator"] = "UNHANDLED_EXCEPTION"
            return error_response(f"An unexpected error occurred: {e}")

    return middleware
