"""
Integration test fixtures.

These fixtures run in-process fakes of the beaconcha.in API and a Discord
webhook with aiohttp.web, so whole check cycles can run over real HTTP
without touching the network.
"""
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer



class FakeServices:
    """State and handlers behind the fake API and webhook."""

    def __init__(self):
        # validator_id -> (status, body)
        self.validators = {}
        self.webhook_status = 204
        self.webhook_messages = []
        self.api_requests = []

    def set_stake(self, validator_id, node_wei, min_wei):
        self.validators[validator_id] = (200, {
            "status": "OK",
            "data": {
                "node_rpl_stake": str(node_wei),
                "node_min_rpl_stake": str(min_wei),
            },
        })

    def set_not_enrolled(self, validator_id):
        self.validators[validator_id] = (200, {"status": "OK", "data": {}})

    def set_error(self, validator_id, status):
        self.validators[validator_id] = (status, {"status": "ERROR: test failure", "data": None})

    async def validator(self, request):
        self.api_requests.append(
            (request.match_info["validator_id"], request.headers.get("apikey"))
        )
        status, body = self.validators.get(
            request.match_info["validator_id"],
            (200, {"status": "OK", "data": {}}),
        )
        return web.json_response(body, status=status)

    async def webhook(self, request):
        payload = await request.json()
        if self.webhook_status >= 300:
            return web.json_response({"message": "rejected"}, status=self.webhook_status)
        self.webhook_messages.append(payload["content"])
        return web.Response(status=self.webhook_status)


@pytest.fixture
def services():
    return FakeServices()


@pytest.fixture
async def server(services):
    app = web.Application()
    app.router.add_get("/api/v1/rocketpool/validator/{validator_id}", services.validator)
    app.router.add_post("/webhook", services.webhook)

    test_server = TestServer(app)
    await test_server.start_server()

    yield test_server

    await test_server.close()


@pytest.fixture
def base_url(server):
    return str(server.make_url("/")).rstrip("/")
