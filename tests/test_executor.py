import asyncio
import json
import time
import unittest

import aiohttp
from aiohttp import test_utils, web

from custom_actions_mcp.engine.executor import ActionExecutor, is_transient_status
from custom_actions_mcp.engine.models import ExecutionPolicy, HTTPMethod, SynthesizedRequest


class RecordingSession:
    """Wraps a ClientSession and records the keyword arguments of each request"""

    def __init__(self, session):
        self.session = session
        self.calls = []

    def request(self, *args, **kwargs):
        self.calls.append(kwargs)
        return self.session.request(*args, **kwargs)


class TestActionExecutor(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.calls = {}
        self.arrivals = []
        app = web.Application()
        app.router.add_get("/flaky", self.flaky)
        app.router.add_get("/unstable", self.unstable)
        app.router.add_get("/missing", self.missing)
        app.router.add_get("/slow", self.slow)
        app.router.add_get("/redirect", self.redirect)
        app.router.add_get("/ok", self.ok)
        app.router.add_post("/echo", self.echo)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.executor = ActionExecutor()

    async def asyncTearDown(self):
        await self.server.close()

    def _count(self, name: str) -> int:
        self.calls[name] = self.calls.get(name, 0) + 1
        return self.calls[name]

    async def flaky(self, request):
        if self._count("flaky") <= 2:
            await asyncio.sleep(0.3)
            return web.json_response({"error": "unavailable"}, status=503)
        return web.json_response({"ok": True})

    async def unstable(self, request):
        self.arrivals.append(time.monotonic())
        if len(self.arrivals) <= 2:
            return web.json_response({"error": "unavailable"}, status=503)
        return web.json_response({"ok": True})

    async def missing(self, request):
        self._count("missing")
        return web.json_response({"error": "not found"}, status=404)

    async def slow(self, request):
        self._count("slow")
        await asyncio.sleep(1.0)
        return web.json_response({"ok": True})

    async def redirect(self, request):
        raise web.HTTPFound("/ok")

    async def ok(self, request):
        return web.json_response({"ok": True})

    async def echo(self, request):
        return web.json_response({
            "headers": {"authorization": request.headers.get("Authorization")},
            "body": await request.json(),
        })

    def request(self, path: str, method: HTTPMethod = HTTPMethod.GET, body=None, headers=None) -> SynthesizedRequest:
        return SynthesizedRequest(
            method=method,
            url=str(self.server.make_url(path)),
            headers=headers or {},
            body=body,
        )

    async def test_retry_until_success(self):
        """503 twice then 200 with two retries succeeds on the third attempt."""
        result = await self.executor.execute(self.request("/flaky"), ExecutionPolicy(retry_count=2))

        self.assertTrue(result.success)
        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(self.calls["flaky"], 3)
        # timing covers the last (fast) attempt only
        self.assertLess(result.response_time, 300)

    async def test_retries_exhausted(self):
        result = await self.executor.execute(self.request("/flaky"), ExecutionPolicy(retry_count=1))

        self.assertFalse(result.success)
        self.assertEqual(result.status_code, 503)
        self.assertEqual(result.attempts, 2)
        self.assertIn("503", result.error)
        self.assertIn("unavailable", result.response_body)

    async def test_no_retry_on_4xx(self):
        result = await self.executor.execute(self.request("/missing"), ExecutionPolicy(retry_count=3))

        self.assertFalse(result.success)
        self.assertEqual(result.status_code, 404)
        self.assertEqual(self.calls["missing"], 1)

    async def test_success_codes(self):
        policy = ExecutionPolicy(success_codes=[200, 404])
        result = await self.executor.execute(self.request("/missing"), policy)
        self.assertTrue(result.success)

    async def test_timeout(self):
        result = await self.executor.execute(self.request("/slow"), ExecutionPolicy(timeout_seconds=0.2))

        self.assertFalse(result.success)
        self.assertIsNone(result.status_code)
        self.assertIn("timed out", result.error)

    async def test_timeout_is_retried(self):
        policy = ExecutionPolicy(timeout_seconds=0.2, retry_count=1)
        result = await self.executor.execute(self.request("/slow"), policy)
        self.assertEqual(result.attempts, 2)
        self.assertEqual(self.calls["slow"], 2)

    async def test_redirects(self):
        followed = await self.executor.execute(self.request("/redirect"), ExecutionPolicy())
        self.assertTrue(followed.success)

        not_followed = await self.executor.execute(
            self.request("/redirect"), ExecutionPolicy(follow_redirects=False)
        )
        self.assertFalse(not_followed.success)
        self.assertEqual(not_followed.status_code, 302)

    async def test_connection_error(self):
        self.executor = ActionExecutor()
        request = SynthesizedRequest(method=HTTPMethod.GET, url="http://127.0.0.1:1/nothing", headers={})
        result = await self.executor.execute(request, ExecutionPolicy(retry_count=1))

        self.assertFalse(result.success)
        self.assertEqual(result.attempts, 2)
        self.assertIn("Error calling API", result.error)

    async def test_sends_headers_and_json_body(self):
        request = self.request(
            "/echo",
            method=HTTPMethod.POST,
            body={"order": {"qty": 3}},
            headers={"Authorization": "Bearer tok", "Content-Type": "application/json"},
        )
        result = await self.executor.execute(request, ExecutionPolicy())

        echoed = json.loads(result.response_body)
        self.assertEqual(echoed["headers"]["authorization"], "Bearer tok")
        self.assertEqual(echoed["body"], {"order": {"qty": 3}})
        self.assertEqual(result.request_url, request.url)

    async def test_backoff_between_retries(self):
        """Delays grow exponentially and the retry still succeeds."""
        policy = ExecutionPolicy(retry_count=2, backoff_seconds=0.2)
        result = await self.executor.execute(self.request("/unstable"), policy)

        self.assertTrue(result.success)
        self.assertEqual(result.attempts, 3)
        first, second, third = self.arrivals
        self.assertGreaterEqual(second - first, 0.19)
        self.assertGreaterEqual(third - second, 0.39)
        self.assertGreater(third - second, second - first)

    async def test_verify_ssl_forwarded(self):
        async with aiohttp.ClientSession() as session:
            recording = RecordingSession(session)
            result = await ActionExecutor(recording).execute(
                self.request("/ok"), ExecutionPolicy(verify_ssl=False)
            )

        self.assertTrue(result.success)
        self.assertIs(recording.calls[0]["ssl"], False)

    async def test_refused_header_not_retried(self):
        """A header value with CR/LF is reported as a failure, not raised."""
        request = self.request("/ok", headers={"X-Q": "a\r\nInjected: 1"})
        result = await self.executor.execute(request, ExecutionPolicy(retry_count=2))

        self.assertFalse(result.success)
        self.assertIsNone(result.status_code)
        self.assertEqual(result.attempts, 1)
        self.assertIn("Invalid request", result.error)


class TestTransientStatus(unittest.TestCase):

    def test_classification(self):
        policy = ExecutionPolicy(retry_on_codes=[429, 404])
        self.assertTrue(is_transient_status(503, policy))
        self.assertFalse(is_transient_status(404, policy))
        self.assertFalse(is_transient_status(429, policy))
        self.assertFalse(is_transient_status(200, ExecutionPolicy()))
        self.assertTrue(is_transient_status(302, ExecutionPolicy(retry_on_codes=[302])))


if __name__ == '__main__':
    unittest.main()
