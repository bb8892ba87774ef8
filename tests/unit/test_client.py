import asyncio

import aiohttp
import pytest

from deskpy import __version__
from deskpy.client import DeskClient
from deskpy.config import ClientConfig
from deskpy.exceptions import ApiResponseError, AuthError, ConfigError, DeskClientError
from deskpy.pagination import SinglePageStrategy
from deskpy.resources import TicketFields, Views
from deskpy.retry import ExponentialBackoffRetryPolicy, NoRetryPolicy

API_URL = "https://acme.zendesk.com:443/api/v2/"


@pytest.fixture
def client_factory(logger, mock_client_session):
    """Build a DeskClient on a mocked session that never retries."""

    def _create(response=None, side_effect=None, **kwargs):
        session = mock_client_session(response=response, side_effect=side_effect)
        kwargs.setdefault("subdomain", "acme")
        kwargs.setdefault("retry_policy", "none")
        return DeskClient(session=session, logger=logger, **kwargs)

    return _create


class TestClientConfiguration:
    def test_flat_settings_build_config(self, logger):
        client = DeskClient(subdomain="acme", username="agent@acme.test", logger=logger)

        assert client.get_api_url() == API_URL
        assert client.get_subdomain() == "acme"
        assert client.client_config.username == "agent@acme.test"

    def test_explicit_config(self, logger):
        config = ClientConfig(hostname="desk.internal", scheme="http", port=8080, api_version="v3")
        client = DeskClient(client_config=config, logger=logger)

        assert client.get_api_url() == "http://desk.internal:8080/api/v3/"

    def test_invalid_settings_raise_config_error(self, logger):
        with pytest.raises(ConfigError):
            DeskClient(subdomain="acme", port=0, logger=logger)

        with pytest.raises(ConfigError):
            DeskClient(subdomain="acme", scheme="ftp", logger=logger)

        with pytest.raises(ConfigError):
            DeskClient(subdomain="acme", timeout=-1, logger=logger)

    def test_default_headers_merge(self, logger):
        client = DeskClient(subdomain="acme", logger=logger, headers={"X-Trace": "1"})

        assert client.headers["User-Agent"] == f"deskpy/{__version__}"
        assert client.headers["Accept"] == "application/json"
        assert client.headers["X-Trace"] == "1"

    def test_default_retry_policy(self, logger):
        client = DeskClient(subdomain="acme", logger=logger)
        assert isinstance(client.retry_policy, ExponentialBackoffRetryPolicy)

    def test_named_retry_policy(self, logger):
        client = DeskClient(subdomain="acme", logger=logger, retry_policy="none")
        assert isinstance(client.retry_policy, NoRetryPolicy)

    def test_builtin_managers(self, logger):
        client = DeskClient(subdomain="acme", logger=logger)

        assert client.get_pagination_manager().get_default_strategy_name() == "cursor"
        assert client.get_retry_manager().get_default_policy_name() == "exponential_backoff"

    def test_single_page_accessors(self, logger):
        client = DeskClient(subdomain="acme", logger=logger)

        assert isinstance(client.views, Views)
        assert isinstance(client.views.strategy_for(), SinglePageStrategy)
        assert isinstance(client.ticket_fields, TicketFields)


class TestClientAuth:
    def test_set_basic_auth(self, logger):
        client = DeskClient(subdomain="acme", logger=logger)
        client.set_auth("basic", {"username": "agent@acme.test", "token": "t0k3n"})

        assert client.get_auth_strategy() == "basic"
        assert client.get_auth_options() == {"username": "agent@acme.test", "token": "t0k3n"}

    def test_invalid_auth(self, logger):
        client = DeskClient(subdomain="acme", logger=logger)

        with pytest.raises(AuthError):
            client.set_auth("digest", {})
        assert client.get_auth_strategy() is None

    async def test_auth_header_is_sent_and_redacted_in_debug(self, client_factory, mock_response_factory):
        client = client_factory(mock_response_factory(json_data={"tickets": []}))
        client.set_auth("oauth", {"token": "secret-token"})

        async with client:
            await client.get("tickets.json")

        sent_headers = client.session.request.call_args.kwargs["headers"]
        assert sent_headers["Authorization"] == "Bearer secret-token"
        assert client.get_debug().last_request_headers["Authorization"] == "[REDACTED]"


class TestSend:
    async def test_get_builds_request(self, client_factory, mock_response_factory):
        response = mock_response_factory(json_data={"tickets": [{"id": 1}]})
        client = client_factory(response)

        async with client:
            result = await client.get("tickets.json", {"per_page": 5, "active": True, "ids": [1, 2]})

        assert result == {"tickets": [{"id": 1}]}
        kwargs = client.session.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == API_URL + "tickets.json"
        assert kwargs["params"] == {"per_page": 5, "active": "true", "ids": "1,2"}

    async def test_post_sends_json_body(self, client_factory, mock_response_factory):
        client = client_factory(mock_response_factory(status=201, json_data={"ticket": {"id": 9}}))

        async with client:
            result = await client.post("tickets.json", {"ticket": {"subject": "Help"}})

        assert result == {"ticket": {"id": 9}}
        kwargs = client.session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["json"] == {"ticket": {"subject": "Help"}}

    async def test_delete_no_content(self, client_factory, mock_response_factory):
        client = client_factory(mock_response_factory(status=204))

        async with client:
            assert await client.delete("tickets/9.json") is None

    async def test_error_status_raises_api_response_error(self, client_factory, mock_response_factory):
        body = {"error": "RecordNotFound", "description": "Not found"}
        client = client_factory(mock_response_factory(status=404, json_data=body))

        async with client:
            with pytest.raises(ApiResponseError) as exc_info:
                await client.get("tickets/404.json")

        assert exc_info.value.status == 404
        assert exc_info.value.details == body
        assert "Not found" in str(exc_info.value)
        assert client.get_debug().last_response_code == 404

    async def test_transport_error_propagates(self, client_factory):
        error = aiohttp.ClientConnectionError("refused")
        client = client_factory(side_effect=error)

        async with client:
            with pytest.raises(aiohttp.ClientConnectionError):
                await client.get("tickets.json")

        assert client.get_debug().last_response_error == "refused"

    async def test_timeout_is_recorded(self, client_factory):
        client = client_factory(side_effect=asyncio.TimeoutError())

        async with client:
            with pytest.raises(asyncio.TimeoutError):
                await client.get("tickets.json")

        assert client.get_debug().last_response_error == "TimeoutError"
        messages = [call.args[0] for call in client.logger.error.call_args_list]
        assert any(message.startswith("GET ") and "failed" in message for message in messages)

    async def test_send_without_session(self, logger):
        client = DeskClient(subdomain="acme", logger=logger)

        with pytest.raises(DeskClientError, match="Session not initialized"):
            await client.send("tickets.json")

    async def test_invalid_method(self, client_factory):
        async with client_factory() as client:
            with pytest.raises(DeskClientError, match="Invalid HTTP method"):
                await client.send("tickets.json", method="TRACE")

    async def test_debug_records_request(self, client_factory, mock_response_factory):
        client = client_factory(
            mock_response_factory(json_data={}, headers={"X-Rate-Limit-Remaining": "99"})
        )

        async with client:
            await client.put("users/1.json", {"user": {"name": "Ada"}})

        debug = client.get_debug()
        assert debug.last_request_body == {"user": {"name": "Ada"}}
        assert debug.last_response_code == 200
        assert debug.last_response_headers["X-Rate-Limit-Remaining"] == "99"
        assert debug.last_response_error is None

    async def test_response_headers_ignore_case(self, client_factory, mock_response_factory):
        client = client_factory(
            mock_response_factory(json_data={}, headers={"x-rate-limit-remaining": "42"})
        )

        async with client:
            await client.get("tickets.json")

        headers = client.get_debug().last_response_headers
        assert headers.get("X-Rate-Limit-Remaining") == "42"

    async def test_external_session_is_kept(self, client_factory):
        client = client_factory()
        session = client.session

        async with client:
            pass

        assert client.session is session


class TestSideload:
    async def test_client_sideload_is_sent_once(self, client_factory, mock_response_factory):
        client = client_factory(mock_response_factory(json_data={"tickets": []}))
        client.set_sideload(["users", "groups"])

        async with client:
            await client.get("tickets.json")
            assert client.session.request.call_args.kwargs["params"] == {"include": "users,groups"}
            assert client.sideload is None

            await client.get("tickets.json")
            assert client.session.request.call_args.kwargs["params"] == {}

    async def test_param_sideload_wins(self, client_factory, mock_response_factory):
        client = client_factory(mock_response_factory(json_data={"tickets": []}))
        client.set_sideload(["groups"])

        async with client:
            await client.get("tickets.json", {"sideload": ["users"]})

        assert client.session.request.call_args.kwargs["params"] == {"include": "users"}

    async def test_sideload_cleared_after_failure(self, client_factory, mock_response_factory):
        client = client_factory(mock_response_factory(status=500, json_data={"error": "Boom"}))
        client.set_sideload(["users"])

        async with client:
            with pytest.raises(ApiResponseError):
                await client.get("tickets.json")

        assert client.sideload is None

    def test_get_sideload(self, logger):
        client = DeskClient(subdomain="acme", logger=logger).set_sideload(["users"])

        assert client.get_sideload() == ["users"]
        assert client.get_sideload({"sideload": ["groups"]}) == ["groups"]
        assert client.get_sideload({"sideload": "groups"}) == ["users"]

    async def test_client_sideload_spans_traversal(self, client_factory, mock_response_factory):
        pages = [
            mock_response_factory(json_data={"tickets": [{"id": 1}, {"id": 2}]}),
            mock_response_factory(json_data={"tickets": [{"id": 3}]}),
        ]
        client = client_factory(side_effect=pages)
        client.set_sideload(["users"])

        async with client:
            items = await client.tickets.collect({"per_page": 2})

        assert len(items) == 3
        calls = client.session.request.call_args_list
        assert [call.kwargs["params"]["include"] for call in calls] == ["users", "users"]
        assert client.sideload is None


class TestClientTraversal:
    async def test_iterate_through_dispatcher(self, client_factory, mock_response_factory):
        pages = [
            mock_response_factory(
                json_data={"tickets": [{"id": 1}, {"id": 2}], "meta": {"has_more": True, "after_cursor": "n1"}}
            ),
            mock_response_factory(json_data={"tickets": [{"id": 3}], "meta": {"has_more": False}}),
        ]
        client = client_factory(side_effect=pages)

        async with client:
            ids = [ticket["id"] async for ticket in client.tickets.iterate({"page[size]": 2})]

        assert ids == [1, 2, 3]
        calls = client.session.request.call_args_list
        assert calls[0].kwargs["params"] == {"page[size]": 2}
        assert calls[1].kwargs["params"] == {"page[size]": 2, "page[after]": "n1"}

    async def test_api_error_mid_traversal(self, client_factory, mock_response_factory):
        pages = [
            mock_response_factory(json_data={"users": [{"id": 1}, {"id": 2}]}),
            mock_response_factory(status=503, json_data={"error": "Unavailable"}),
        ]
        client = client_factory(side_effect=pages)
        received = []

        async with client:
            with pytest.raises(ApiResponseError) as exc_info:
                async for user in client.users.iterate({"per_page": 2}):
                    received.append(user)

        assert exc_info.value.status == 503
        assert received == [{"id": 1}, {"id": 2}]
        assert client.session.request.await_count == 2
