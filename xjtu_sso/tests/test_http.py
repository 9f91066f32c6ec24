"""
Redirecting HTTP Client Tests

Tests cookie absorption, per-request Cookie composition and bounded
redirect following.
"""

import httpx
import pytest

from conftest import respond
from xjtu_sso.services.http import RedirectingHttpClient


BASE = "https://svc.example.edu"


def make_client(backend, **kwargs) -> RedirectingHttpClient:
    return RedirectingHttpClient("test-agent/1.0", transport=backend.transport, **kwargs)


def redirect(location: str, *cookies: str):
    headers = [("Location", location)] + [("Set-Cookie", c) for c in cookies]

    def handler(request):
        return httpx.Response(302, headers=headers)
    return handler


def set_cookies(*cookies: str, status_code: int = 200):
    def handler(request):
        return httpx.Response(
            status_code, headers=[("Set-Cookie", c) for c in cookies], json={}
        )
    return handler


class TestCookieJar:
    """Test suite for cookie accumulation"""

    @pytest.mark.asyncio
    async def test_cookies_accumulate_across_responses(self, backend):
        backend.add("GET", "/a", set_cookies("a=1; Path=/; HttpOnly"))
        backend.add("GET", "/b", set_cookies("b=2; Domain=.example.edu"))
        backend.add("GET", "/c", respond(200, json={}))
        client = make_client(backend)

        await client.get(f"{BASE}/a")
        await client.get(f"{BASE}/b")
        await client.get(f"{BASE}/c")

        assert client.get_cookies() == {"a": "1", "b": "2"}
        (request,) = backend.calls("GET", "/c")
        assert request.headers.get_list("cookie") == ["a=1; b=2"]

    @pytest.mark.asyncio
    async def test_last_write_wins(self, backend):
        backend.add("GET", "/a", set_cookies("sid=old"), set_cookies("sid=new"))
        client = make_client(backend)

        await client.get(f"{BASE}/a")
        await client.get(f"{BASE}/a")

        assert client.cookies == {"sid": "new"}

    @pytest.mark.asyncio
    async def test_value_containing_equals_sign(self, backend):
        backend.add("GET", "/a", set_cookies("token=abc==; Path=/"))
        client = make_client(backend)

        await client.get(f"{BASE}/a")

        assert client.cookies["token"] == "abc=="

    @pytest.mark.asyncio
    async def test_multiple_cookies_in_one_response(self, backend):
        backend.add("GET", "/a", set_cookies("x=1", "y=2"))
        client = make_client(backend)

        await client.get(f"{BASE}/a")

        assert client.cookies == {"x": "1", "y": "2"}

    @pytest.mark.asyncio
    async def test_no_cookie_header_when_jar_empty(self, backend):
        backend.add("GET", "/a", respond(200, json={}))
        client = make_client(backend)

        await client.get(f"{BASE}/a")

        (request,) = backend.calls("GET", "/a")
        assert "cookie" not in request.headers
        assert request.headers["user-agent"] == "test-agent/1.0"

    @pytest.mark.asyncio
    async def test_set_cookies_replaces_jar(self, backend):
        backend.add("GET", "/a", respond(200, json={}))
        client = make_client(backend)
        client.update_cookies({"stale": "1"})

        client.set_cookies({"fresh": "2"})
        await client.get(f"{BASE}/a")

        (request,) = backend.calls("GET", "/a")
        assert request.headers["cookie"] == "fresh=2"

    def test_get_cookies_returns_copy(self, backend):
        client = make_client(backend)
        client.update_cookies({"a": "1"})

        snapshot = client.get_cookies()
        snapshot["b"] = "2"

        assert client.cookies == {"a": "1"}


class TestRedirects:
    """Test suite for bounded 302 following"""

    @pytest.mark.asyncio
    async def test_single_hop_followed_with_get(self, backend):
        backend.add("POST", "/start", redirect("/x"))
        backend.add("GET", "/x", respond(200, json={"ok": True}))
        client = make_client(backend)

        response = await client.post(f"{BASE}/start", json={"a": 1})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        (follow,) = backend.calls("GET", "/x")
        assert str(follow.url) == f"{BASE}/x"
        assert [r.status_code for r in response.history] == [302]

    @pytest.mark.asyncio
    async def test_location_relative_to_current_path(self, backend):
        backend.add("GET", "/app/start", redirect("next"))
        backend.add("GET", "/app/next", respond(200, json={}))
        client = make_client(backend)

        response = await client.get(f"{BASE}/app/start")

        assert response.status_code == 200
        (follow,) = backend.calls("GET", "/app/next")
        assert str(follow.url) == f"{BASE}/app/next"

    @pytest.mark.asyncio
    async def test_default_follows_only_one_hop(self, backend):
        backend.add("GET", "/start", redirect("/x"))
        backend.add("GET", "/x", redirect("/y"))
        backend.add("GET", "/y", respond(200, json={}))
        client = make_client(backend)

        response = await client.get(f"{BASE}/start")

        assert response.status_code == 302
        assert response.headers["location"] == "/y"
        assert backend.calls("GET", "/y") == []

    @pytest.mark.asyncio
    async def test_zero_hops_returns_redirect(self, backend):
        backend.add("GET", "/start", redirect("/x"))
        client = make_client(backend, max_redirect_hops=0)

        response = await client.get(f"{BASE}/start")

        assert response.status_code == 302
        assert backend.calls("GET", "/x") == []
        assert response.history == []

    @pytest.mark.asyncio
    async def test_two_hops_configured(self, backend):
        backend.add("GET", "/start", redirect("/x"))
        backend.add("GET", "/x", redirect("https://other.example.edu/y"))
        backend.add("GET", "/y", respond(200, json={}))
        client = make_client(backend, max_redirect_hops=2)

        response = await client.get(f"{BASE}/start")

        assert response.status_code == 200
        (final,) = backend.calls("GET", "/y")
        assert final.url.host == "other.example.edu"
        assert len(response.history) == 2

    @pytest.mark.asyncio
    async def test_redirect_cookies_sent_to_target(self, backend):
        backend.add("GET", "/start", redirect("/x", "session=abc; Path=/"))
        backend.add("GET", "/x", respond(200, json={}))
        client = make_client(backend)

        await client.get(f"{BASE}/start")

        (follow,) = backend.calls("GET", "/x")
        assert follow.headers["cookie"] == "session=abc"

    @pytest.mark.asyncio
    async def test_request_headers_not_resent_on_redirect(self, backend):
        backend.add("GET", "/start", redirect("/x"))
        backend.add("GET", "/x", respond(200, json={}))
        client = make_client(backend)

        await client.get(f"{BASE}/start", headers={"x-id-token": "tok"})

        (first,) = backend.calls("GET", "/start")
        (follow,) = backend.calls("GET", "/x")
        assert first.headers["x-id-token"] == "tok"
        assert "x-id-token" not in follow.headers

    @pytest.mark.asyncio
    async def test_permanent_redirect_not_followed(self, backend):
        backend.add("GET", "/start", lambda request: httpx.Response(301, headers={"Location": "/x"}))
        client = make_client(backend)

        response = await client.get(f"{BASE}/start")

        assert response.status_code == 301
        assert backend.calls("GET", "/x") == []

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, backend):
        def fail(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        backend.add("GET", "/start", fail)

        async with make_client(backend) as client:
            with pytest.raises(httpx.ConnectTimeout):
                await client.get(f"{BASE}/start")
