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
Request handlers for the chat server.

Cross-cutting concerns (access logging, error rendering) are handled by
middleware, so each handler only does its own work: the chat handler
validates the body and delegates to the CompletionProxy stored on the app.
"""

import json
import os

import jinja2
from aiohttp import web
from pydantic import ValidationError

from chatweb.client.history import HISTORY_STORAGE_KEY
from chatweb.server.errors import InvalidChatRequestError
from chatweb.server.models import ChatReply, ChatRequest

jinja_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(os.path.join(os.path.dirname(__file__), "templates")),
    autoescape=jinja2.select_autoescape(["html", "xml"]),
)


async def parse_chat_request(request: web.Request) -> ChatRequest:
    """
    Reads and validates the JSON body of a chat request.

    Raises:
        InvalidChatRequestError: If the body is not JSON or fails validation.
    """
    try:
        payload = await request.json()
    except json.JSONDecodeError as e:
        raise InvalidChatRequestError("Request body is not valid JSON", details=str(e))

    if not isinstance(payload, dict):
        raise InvalidChatRequestError("Request body must be a JSON object")

    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        raise InvalidChatRequestError(
            "Invalid chat request",
            details="; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ),
        )


async def handle_chat(request: web.Request) -> web.Response:
    """POST /api/chat: forward the conversation and return the reply text."""
    chat_request = await parse_chat_request(request)
    proxy = request.app["proxy"]

    completion = await proxy.complete(chat_request)

    # Picked up by the access log middleware
    request["chat_model"] = completion.model
    request["chat_provider"] = completion.provider.value
    request["prompt_tokens"] = completion.prompt_tokens
    request["completion_tokens"] = completion.completion_tokens
    request["upstream_duration"] = completion.duration

    return web.json_response(ChatReply(message=completion.text).model_dump())


async def handle_models(request: web.Request) -> web.Response:
    """GET /api/models: the model catalog for the selector."""
    config = request.app["config"]
    catalog = request.app["registry"].catalog(config.default_model)
    return web.json_response(catalog.model_dump())


async def handle_index(request: web.Request) -> web.Response:
    """GET /: the chat page."""
    config = request.app["config"]
    catalog = request.app["registry"].catalog(config.default_model)
    template = jinja_env.get_template("index.html")
    body = template.render(
        catalog=catalog,
        reveal_interval_ms=config.reveal_interval_ms,
        title_max_chars=config.title_max_chars,
        storage_key=HISTORY_STORAGE_KEY,
    )
    return web.Response(text=body, content_type="text/html", charset="utf-8")


async def handle_health_check(request: web.Request) -> web.Response:
    return web.Response(
        text="OK",
        status=200,
        content_type="text/plain",
        headers={"Cache-Control": "no-cache"},
    )
