"""
Test suite for effective option computation.
"""

import pytest

from batchclient.config import ClientConfig
from batchclient.core.dispatcher import Dispatcher
from batchclient.core.message import Request
from batchclient.core.options import (
    clamp_timeouts,
    merge_options,
    normalize_options,
    request_options,
)
from batchclient.transport.interface import Option

from helpers import make_url


class TestRequestOptions:
    """Tests for request-derived defaults."""

    def test_defaults_from_request_and_config(self, test_config):
        options = request_options(Request("PATCH", make_url("a")), test_config)

        assert options[Option.URL] == make_url("a")
        assert options[Option.METHOD] == "PATCH"
        assert options[Option.RETURN_CONTENT] is True
        assert options[Option.FOLLOW_REDIRECTS] is True
        assert options[Option.INCLUDE_HEADERS] is False
        assert options[Option.TIMEOUT] == 5.0

    def test_headers_and_body_are_not_defaults(self, test_config):
        request = Request("POST", make_url("a"), headers={"A": "1"}, body=b"x")

        options = request_options(request, test_config)

        assert Option.HEADERS not in options
        assert Option.BODY not in options


class TestMergeOptions:
    """Tests for layering global extra options over defaults."""

    def test_extra_options_win(self, test_config):
        """Test that a global override replaces the request's own method."""
        defaults = request_options(Request("GET", make_url("a")), test_config)

        merged = merge_options({"method": "DELETE", Option.FOLLOW_REDIRECTS: False}, defaults)

        assert merged[Option.METHOD] == "DELETE"
        assert merged[Option.FOLLOW_REDIRECTS] is False
        assert merged[Option.URL] == make_url("a")

    def test_defaults_untouched(self, test_config):
        defaults = request_options(Request("GET", make_url("a")), test_config)

        merge_options({"method": "DELETE"}, defaults)

        assert defaults[Option.METHOD] == "GET"

    def test_no_extra_options(self, test_config):
        defaults = request_options(Request("GET", make_url("a")), test_config)

        assert merge_options(None, defaults) == defaults

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown transport option"):
            normalize_options({"no_such_option": 1})

    def test_dispatcher_applies_precedence(self, test_config, fake_transport):
        """Test that a global override reaches the transport handle."""
        dispatcher = Dispatcher(fake_transport, test_config, extra_options={"method": "HEAD"})

        dispatcher.execute(Request("GET", make_url("a")))

        assert fake_transport.handles[0].options[Option.METHOD] == "HEAD"

    def test_extra_options_from_config(self, fake_transport):
        config = ClientConfig(_env_file=None, extra_options={"verify": False})
        dispatcher = Dispatcher(fake_transport, config)

        assert dispatcher.extra_options == {Option.VERIFY: False}
        assert dispatcher.effective_options(Request("GET", make_url("a")))[Option.VERIFY] is False


class TestClampTimeouts:
    """Tests for capping timeouts to a deadline."""

    def test_caps_timeouts(self):
        options = {Option.TIMEOUT: 30.0, Option.CONNECT_TIMEOUT: 10.0}

        clamp_timeouts(options, 2.5)

        assert options == {Option.TIMEOUT: 2.5, Option.CONNECT_TIMEOUT: 2.5}

    def test_keeps_shorter_timeouts(self):
        options = {Option.TIMEOUT: 1.0, Option.CONNECT_TIMEOUT: None}

        clamp_timeouts(options, 2.5)

        assert options == {Option.TIMEOUT: 1.0, Option.CONNECT_TIMEOUT: None}

    def test_bounds_unbounded_timeout(self):
        options = {Option.TIMEOUT: None}

        clamp_timeouts(options, 4.0)

        assert options[Option.TIMEOUT] == 4.0
