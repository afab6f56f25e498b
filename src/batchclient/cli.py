"""
Command-line interface for the batch client.

Fetches one or more URLs, concurrently in batches when several are given.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from batchclient import __version__
from batchclient.client import HttpClient
from batchclient.config import ClientConfig, set_config
from batchclient.core.message import Request, Response
from batchclient.exceptions import DispatchError, TransportFailure


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="batchclient",
        description="Send HTTP requests, concurrently in bounded batches",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch one or more URLs")
    fetch_parser.add_argument(
        "urls",
        nargs="+",
        metavar="URL",
        help="URLs to fetch; responses are printed in this order",
    )
    fetch_parser.add_argument(
        "-X", "--method",
        default="GET",
        help="Request method (default: GET)",
    )
    fetch_parser.add_argument(
        "-H", "--header",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Request header, may be repeated",
    )
    fetch_parser.add_argument(
        "-d", "--data",
        help="Request body",
    )
    fetch_parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Requests per concurrent batch (default: 10)",
    )
    fetch_parser.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Global transport option override (value parsed as JSON if possible)",
    )
    fetch_parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Seconds allowed for the whole batch run",
    )
    fetch_parser.add_argument(
        "-i", "--include",
        action="store_true",
        help="Print response headers and body",
    )
    fetch_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    fetch_parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )

    return parser


def parse_header(raw: str) -> Tuple[str, str]:
    """Split a ``Name: value`` argument."""
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Invalid header {raw!r}, expected 'Name: value'")
    return name.strip(), value.strip()


def parse_options(raw_options: Sequence[str]) -> Dict[str, Any]:
    """Parse ``key=value`` overrides, decoding JSON values when possible."""
    options: Dict[str, Any] = {}
    for raw in raw_options:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Invalid option {raw!r}, expected KEY=VALUE")
        try:
            options[key] = json.loads(value)
        except json.JSONDecodeError:
            options[key] = value
    return options


def build_requests(args: argparse.Namespace) -> List[Request]:
    """Build one request per URL from the parsed arguments."""
    requests = []
    for url in args.urls:
        request = Request(args.method, url)
        for name, value in (parse_header(h) for h in args.header):
            request = request.with_added_header(name, value)
        if args.data is not None:
            request = request.with_body(args.data)
        requests.append(request)
    return requests


def print_response(url: str, response: Response, include: bool) -> None:
    print(f"{response.status_code} {response.reason_phrase}  {url}")
    if not include:
        return
    for line in response.headers.lines():
        print(f"  {line}")
    print()
    print(response.text)


def print_failure(url: str, failure: TransportFailure) -> None:
    print(f"ERR {failure.message}  {url}")


def run_fetch(args: argparse.Namespace, client: Optional[HttpClient] = None) -> int:
    """Fetch the requested URLs and print the results."""
    requests = build_requests(args)

    if client is None:
        config = ClientConfig(log_level=args.log_level, log_json=args.log_json)
        set_config(config)
        client = HttpClient(config)
    client.set_extra_options(parse_options(args.option))

    try:
        if len(requests) == 1:
            results = [client.send_request(requests[0])]
        else:
            results = client.send_requests(
                requests,
                batch_size=args.batch_size,
                return_exceptions=True,
                deadline=args.deadline,
            )
    except DispatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    exit_code = 0
    for request, result in zip(requests, results):
        if isinstance(result, TransportFailure):
            print_failure(request.uri, result)
            exit_code = 1
        else:
            print_response(request.uri, result, args.include)
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Setup logging
    setup_logging(args.log_level, args.log_json)

    try:
        if args.command == "fetch":
            sys.exit(run_fetch(args))
    except (argparse.ArgumentTypeError, ValueError) as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
