"""
Test suite for the command-line interface.
"""

import argparse

import pytest

from batchclient.cli import create_parser, parse_header, parse_options, run_fetch
from batchclient.client import HttpClient
from batchclient.transport.interface import Option

from helpers import make_url


def fetch_args(*argv: str) -> argparse.Namespace:
    return create_parser().parse_args(["fetch", *argv])


class TestArgumentParsing:
    """Tests for argument helpers."""

    def test_parse_header(self):
        assert parse_header("Content-Type: application/json") == ("Content-Type", "application/json")
        assert parse_header("X-Time:12:30") == ("X-Time", "12:30")

    def test_parse_header_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_header("no-colon")

    def test_parse_options_decodes_json(self):
        options = parse_options(["timeout=2.5", "verify=false", "method=PUT"])

        assert options == {"timeout": 2.5, "verify": False, "method": "PUT"}

    def test_parse_options_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_options(["novalue"])

    def test_fetch_defaults(self):
        args = fetch_args(make_url("a"))

        assert args.method == "GET"
        assert args.header == []
        assert args.batch_size is None
        assert args.include is False


class TestRunFetch:
    """Tests for the fetch command."""

    def test_single_url(self, test_config, fake_transport, capsys):
        fake_transport.reply(make_url("a"), status=200, reason="OK", body=b"hello")
        client = HttpClient(test_config, transport=fake_transport)

        exit_code = run_fetch(fetch_args(make_url("a"), "--include"), client=client)

        out = capsys.readouterr().out
        assert exit_code == 0
        assert out.startswith(f"200 OK  {make_url('a')}")
        assert "hello" in out
        assert fake_transport.multiplexers == []

    def test_many_urls_keep_order(self, test_config, fake_transport, capsys):
        client = HttpClient(test_config, transport=fake_transport)
        urls = [make_url(name) for name in "abc"]

        exit_code = run_fetch(fetch_args(*urls), client=client)

        lines = capsys.readouterr().out.splitlines()
        assert exit_code == 0
        assert [line.split()[-1] for line in lines] == urls
        assert len(fake_transport.multiplexers) == 2

    def test_request_parts_and_options(self, test_config, fake_transport):
        client = HttpClient(test_config, transport=fake_transport)

        run_fetch(
            fetch_args(
                make_url("a"),
                "-X", "POST",
                "-H", "Content-Type: application/json",
                "-d", "{}",
                "--option", "timeout=2",
            ),
            client=client,
        )

        options = fake_transport.handles[0].options
        assert options[Option.METHOD] == "POST"
        assert options[Option.HEADERS] == ["Content-Type: application/json"]
        assert options[Option.BODY] == b"{}"
        assert options[Option.TIMEOUT] == 2

    def test_failure_exit_code(self, test_config, fake_transport, capsys):
        fake_transport.reply(make_url("a"), error="Connection refused")
        client = HttpClient(test_config, transport=fake_transport)

        exit_code = run_fetch(fetch_args(make_url("a")), client=client)

        assert exit_code == 1
        assert "Connection refused" in capsys.readouterr().err

    def test_partial_failure_in_batch(self, test_config, fake_transport, capsys):
        fake_transport.reply(make_url("b"), error="timed out")
        client = HttpClient(test_config, transport=fake_transport)

        exit_code = run_fetch(fetch_args(make_url("a"), make_url("b")), client=client)

        lines = capsys.readouterr().out.splitlines()
        assert exit_code == 1
        assert lines[0].startswith("200")
        assert lines[1].startswith("ERR timed out")
