"""
Effective option computation.

Every operation gets a fresh option mapping built from two layers: the
request-derived defaults and the client's global extra options.

PRECEDENCE: the global extra options WIN. A key present in both layers
takes the extra option's value, so a global override can replace the
per-request method, URL or redirect behaviour of every request.
"""

from typing import Any, Dict, Mapping, Optional

from batchclient.config import ClientConfig
from batchclient.core.message import Request
from batchclient.transport.interface import Option, OptionKey


def normalize_options(options: Optional[Mapping[OptionKey, Any]]) -> Dict[Option, Any]:
    """
    Convert option keys to Option members.

    Args:
        options: Mapping keyed by Option members or their string values

    Returns:
        New mapping keyed by Option

    Raises:
        ValueError: If a key is not a known option
    """
    normalized: Dict[Option, Any] = {}
    for key, value in (options or {}).items():
        try:
            option = Option(key)
        except ValueError:
            raise ValueError(f"Unknown transport option: {key!r}") from None
        normalized[option] = value
    return normalized


def request_options(request: Request, config: ClientConfig) -> Dict[Option, Any]:
    """Build the request-derived default options for one operation."""
    return {
        Option.URL: request.uri,
        Option.METHOD: request.method,
        Option.RETURN_CONTENT: True,
        Option.FOLLOW_REDIRECTS: config.follow_redirects,
        Option.INCLUDE_HEADERS: False,
        Option.TIMEOUT: config.timeout,
        Option.CONNECT_TIMEOUT: config.connect_timeout,
        Option.VERIFY: config.verify_tls,
        Option.MAX_REDIRECTS: config.max_redirects,
    }


def merge_options(
    extra_options: Optional[Mapping[OptionKey, Any]],
    defaults: Mapping[Option, Any],
) -> Dict[Option, Any]:
    """
    Merge the global extra options over request-derived defaults.

    Args:
        extra_options: Global overrides set on the client
        defaults: Request-derived defaults

    Returns:
        The effective options; on a key collision the extra option wins
    """
    merged = dict(defaults)
    merged.update(normalize_options(extra_options))
    return merged


def clamp_timeouts(options: Dict[Option, Any], remaining: float) -> Dict[Option, Any]:
    """
    Cap the operation timeouts to the time left before a deadline.

    An unbounded timeout becomes ``remaining``; a connect timeout left unset
    keeps following the overall timeout.
    """
    timeout = options.get(Option.TIMEOUT)
    options[Option.TIMEOUT] = remaining if timeout is None else min(timeout, remaining)

    connect = options.get(Option.CONNECT_TIMEOUT)
    if connect is not None:
        options[Option.CONNECT_TIMEOUT] = min(connect, remaining)
    return options
