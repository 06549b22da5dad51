"""Tests for per-route middleware composition."""

import pytest
from starlette.requests import Request

from bedrock.middleware.chain import chain
from bedrock.responses import JSONResponse


def make_request(path: str = "/") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
    }
    return Request(scope)


def recording_middleware(name: str, calls: list[str]):
    def middleware(next_handler):
        async def handler(request):
            calls.append(f"{name}:before")
            response = await next_handler(request)
            calls.append(f"{name}:after")
            return response

        return handler

    return middleware


class TestChain:
    """Tests for chain()."""

    @pytest.mark.asyncio
    async def test_no_middleware_returns_handler_result(self):
        async def handler(request):
            return JSONResponse(200, {"ok": True})

        response = await chain(handler)(make_request())
        assert response.status_code == 200
        assert response.data == {"ok": True}

    @pytest.mark.asyncio
    async def test_middlewares_run_in_supplied_order(self):
        """The first middleware sees the request first and the response last."""
        calls: list[str] = []

        async def handler(request):
            calls.append("handler")
            return JSONResponse(200, {})

        wrapped = chain(
            handler,
            recording_middleware("a", calls),
            recording_middleware("b", calls),
            recording_middleware("c", calls),
        )
        await wrapped(make_request())

        assert calls == [
            "a:before",
            "b:before",
            "c:before",
            "handler",
            "c:after",
            "b:after",
            "a:after",
        ]

    @pytest.mark.asyncio
    async def test_short_circuit_skips_rest_of_chain(self):
        calls: list[str] = []

        def deny(next_handler):
            async def handler(request):
                return JSONResponse(403, {"denied": True})

            return handler

        async def handler(request):
            calls.append("handler")
            return JSONResponse(200, {})

        wrapped = chain(handler, recording_middleware("a", calls), deny)
        response = await wrapped(make_request())

        assert response.status_code == 403
        assert calls == ["a:before", "a:after"]

    @pytest.mark.asyncio
    async def test_middleware_can_set_request_state(self):
        def tag(next_handler):
            async def handler(request):
                request.state.tag = "tagged"
                return await next_handler(request)

            return handler

        async def handler(request):
            return JSONResponse(200, {"tag": request.state.tag})

        response = await chain(handler, tag)(make_request())
        assert response.data == {"tag": "tagged"}
