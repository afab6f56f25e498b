"""
Test suite for single-request execution.
"""

import pytest

from batchclient.core.dispatcher import Dispatcher
from batchclient.core.message import Request
from batchclient.exceptions import TransportFailure
from batchclient.transport.interface import Option

from helpers import make_url


class TestExecute:
    """Tests for running one request on its own handle."""

    def test_execute_returns_response(self, test_config, fake_transport):
        fake_transport.reply(
            make_url("a"),
            status=200,
            reason="OK",
            headers=[("Content-Type", "application/json"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")],
            body=b'{"ok": true}',
        )
        dispatcher = Dispatcher(fake_transport, test_config)

        response = dispatcher.execute(Request("GET", make_url("a")))

        assert response.status_code == 200
        assert response.reason_phrase == "OK"
        assert response.headers.get("content-type") == "application/json"
        assert response.headers.get_all("set-cookie") == ["a=1", "b=2"]
        assert response.content == b'{"ok": true}'

    def test_execute_does_not_use_multiplexer(self, test_config, fake_transport):
        dispatcher = Dispatcher(fake_transport, test_config)

        dispatcher.execute(Request("GET", make_url("a")))

        assert fake_transport.multiplexers == []
        assert fake_transport.performed == [make_url("a")]

    def test_headers_are_flattened_to_lines(self, test_config, fake_transport):
        """Test that every header value becomes its own line."""
        request = Request(
            "GET",
            make_url("a"),
            headers=[("Accept", "text/html"), ("Accept", "application/json"), ("X-Id", "1")],
        )
        dispatcher = Dispatcher(fake_transport, test_config)

        dispatcher.execute(request)

        assert fake_transport.handles[0].options[Option.HEADERS] == [
            "Accept: text/html",
            "Accept: application/json",
            "X-Id: 1",
        ]

    def test_empty_body_sets_no_body_option(self, test_config, fake_transport):
        dispatcher = Dispatcher(fake_transport, test_config)

        dispatcher.execute(Request("POST", make_url("a")))

        options = fake_transport.handles[0].options
        assert Option.BODY not in options
        assert Option.HEADERS not in options

    def test_body_is_sent(self, test_config, fake_transport):
        dispatcher = Dispatcher(fake_transport, test_config)

        dispatcher.execute(Request("POST", make_url("a"), body="{}"))

        assert fake_transport.handles[0].options[Option.BODY] == b"{}"

    def test_header_callback_is_bound(self, test_config, fake_transport):
        dispatcher = Dispatcher(fake_transport, test_config)

        dispatcher.execute(Request("GET", make_url("a")))

        callback = fake_transport.handles[0].options[Option.HEADER_FUNCTION]
        assert callback.__self__.handle_id == fake_transport.handles[0].handle_id

    def test_failure_raises_and_releases_handle(self, test_config, fake_transport):
        fake_transport.reply(make_url("a"), error="Could not resolve host: api.test")
        dispatcher = Dispatcher(fake_transport, test_config)
        request = Request("GET", make_url("a"))

        with pytest.raises(TransportFailure) as exc_info:
            dispatcher.execute(request)

        assert exc_info.value.message == "Could not resolve host: api.test"
        assert exc_info.value.request is request
        assert fake_transport.handles[0].closed

    def test_success_releases_handle(self, test_config, fake_transport):
        dispatcher = Dispatcher(fake_transport, test_config)

        dispatcher.execute(Request("GET", make_url("a")))

        assert fake_transport.handles[0].closed
