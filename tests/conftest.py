import os
import sys

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from chatweb.config import Config
from chatweb.server.web_resource import WebServer


def completion_body(content, model="claude-3-5-sonnet-20241022", choices=None):
    """An OpenAI chat.completion response body."""
    if choices is None:
        choices = [{
            "index": 0,
            "message": {
                "role": "assistant",
                "content": content
            },
            "finish_reason": "stop"
        }]
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1677652288,
        "model": model,
        "choices": choices,
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": 5,
            "total_tokens": 15
        }
    }


class MockOpenAIServer:
    """Mock OpenAI-compatible Chat Completions API for testing"""

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_post('/v1/chat/completions', self._handle_chat_completions)
        self.app.router.add_post('/chat/completions', self._handle_chat_completions)
        self.requests = []
        self.reply = "Hello, world!"
        self.status = 200
        self.error_body = None
        self.raw_response = None
        self.base_url = ""

    @property
    def last_request(self):
        return self.requests[-1]

    async def _handle_chat_completions(self, request):
        """Record the request, then answer with the scripted reply or failure"""
        data = await request.json()
        self.requests.append({
            "authorization": request.headers.get("Authorization"),
            "body": data,
        })

        if self.status != 200:
            body = self.error_body or {
                "error": {
                    "message": "Invalid API key",
                    "type": "authentication_error",
                }
            }
            return web.json_response(body, status=self.status)

        if self.raw_response is not None:
            return web.json_response(self.raw_response)

        return web.json_response(completion_body(self.reply, data.get("model")))


@pytest_asyncio.fixture
async def mock_upstream():
    """Start the mock OpenAI API server"""
    mock_server = MockOpenAIServer()
    async with TestServer(mock_server.app) as server:
        mock_server.base_url = str(server.make_url("/v1"))
        yield mock_server


@pytest.fixture
def make_config(mock_upstream, tmp_path):
    """Build a Config pointing both providers at the mock server"""

    def _make(**overrides):
        values = dict(
            anthropic_api_key="anthropic-test-key",
            anthropic_base_url=mock_upstream.base_url,
            deepseek_api_key="deepseek-test-key",
            deepseek_base_url=mock_upstream.base_url,
            history_file=str(tmp_path / "local_storage.json"),
            reveal_interval_ms=0,
        )
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest_asyncio.fixture
async def make_client(aiohttp_client):
    """Create a test client for a given Config"""

    async def _make(config):
        server = WebServer(config)
        return await aiohttp_client(server.setup())

    return _make


@pytest_asyncio.fixture
async def client(make_client, config):
    """Create test client with mock OpenAI server"""
    return await make_client(config)
