"""
HTTP message model.

Immutable Request and Response value types, the Headers multimap they carry
and the Stream wrapper around byte content. Mutating operations on requests
and responses return new instances.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

HeaderValue = Union[str, int, float, Sequence[str]]
HeaderSource = Union[
    "Headers",
    Mapping[str, HeaderValue],
    Iterable[Tuple[str, str]],
    None,
]


class Headers:
    """
    Order-preserving, case-insensitive header multimap.

    Each name maps to an ordered list of values. Lookups ignore case; the
    casing of the first occurrence of a name is kept for output. Repeated
    names are never collapsed: ``add`` appends, ``set`` replaces.

    Headers attached to a Request or Response are frozen: mutators raise
    TypeError and ``copy()`` returns a mutable copy.
    """

    __slots__ = ("_names", "_values", "_frozen")

    def __init__(self, headers: HeaderSource = None):
        self._names: Dict[str, str] = {}
        self._values: Dict[str, List[str]] = {}
        self._frozen = False

        if headers is None:
            return
        if isinstance(headers, Headers):
            for name, value in headers.items():
                self.add(name, value)
        elif isinstance(headers, Mapping):
            for name, value in headers.items():
                self.set(name, value)
        else:
            for name, value in headers:
                self.add(name, value)

    def add(self, name: str, value: HeaderValue) -> None:
        """Append one or more values to a header, keeping existing ones."""
        self._check_mutable()
        key = name.lower()
        if key not in self._names:
            self._names[key] = name
            self._values[key] = []
        self._values[key].extend(_as_values(value))

    def set(self, name: str, value: HeaderValue) -> None:
        """Replace all values of a header."""
        self.remove(name)
        self.add(name, value)

    def remove(self, name: str) -> bool:
        """
        Remove a header and all of its values.

        Returns:
            True if the header was present
        """
        self._check_mutable()
        key = name.lower()
        if key not in self._names:
            return False
        del self._names[key]
        del self._values[key]
        return True

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value of a header."""
        values = self._values.get(name.lower())
        if not values:
            return default
        return values[0]

    def get_all(self, name: str) -> List[str]:
        """Get every value of a header in arrival order."""
        return list(self._values.get(name.lower(), []))

    def get_line(self, name: str) -> str:
        """Get the values of a header joined with commas."""
        return ", ".join(self._values.get(name.lower(), []))

    def names(self) -> List[str]:
        """Header names in first-seen order and casing."""
        return list(self._names.values())

    def items(self) -> List[Tuple[str, str]]:
        """Flattened (name, value) pairs, one per value."""
        return [
            (self._names[key], value)
            for key, values in self._values.items()
            for value in values
        ]

    def lines(self) -> List[str]:
        """Render as ``Name: value`` lines, one per value."""
        return [f"{name}: {value}" for name, value in self.items()]

    def to_dict(self) -> Dict[str, List[str]]:
        """Convert to a plain mapping of name to value list."""
        return {self._names[key]: list(values) for key, values in self._values.items()}

    def copy(self) -> "Headers":
        return Headers(self)

    def freeze(self) -> "Headers":
        """Make these headers read-only and return them."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TypeError("Headers of a request or response are read-only; use a with_* method")

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._names

    def __getitem__(self, name: str) -> List[str]:
        key = name.lower()
        if key not in self._values:
            raise KeyError(name)
        return list(self._values[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._names)

    def __bool__(self) -> bool:
        return bool(self._names)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self.to_dict() == other.to_dict()
        return NotImplemented

    def __hash__(self) -> int:
        if not self._frozen:
            raise TypeError("unhashable type: mutable Headers")
        return hash(tuple((key, tuple(values)) for key, values in self._values.items()))

    def __repr__(self) -> str:
        return f"Headers({self.items()!r})"


def _as_values(value: HeaderValue) -> List[str]:
    if isinstance(value, (str, bytes, int, float)):
        return [_as_text(value)]
    return [_as_text(v) for v in value]


def _as_text(value: Union[str, bytes, int, float]) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


class Stream:
    """
    Readable stream over in-memory byte content.

    ``read`` advances a cursor; ``getvalue``, ``bytes()`` and ``str()``
    always return the whole content.
    """

    __slots__ = ("_content", "_position")

    def __init__(self, content: Union[bytes, bytearray, str, None] = b""):
        if content is None:
            content = b""
        elif isinstance(content, str):
            content = content.encode("utf-8")
        self._content = bytes(content)
        self._position = 0

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes from the cursor (everything if negative)."""
        if size is None or size < 0:
            end = len(self._content)
        else:
            end = min(self._position + size, len(self._content))
        chunk = self._content[self._position:end]
        self._position = end
        return chunk

    def rewind(self) -> None:
        self._position = 0

    def tell(self) -> int:
        return self._position

    def eof(self) -> bool:
        return self._position >= len(self._content)

    def getvalue(self) -> bytes:
        return self._content

    def text(self, encoding: str = "utf-8", errors: str = "replace") -> str:
        """Decode the whole content."""
        return self._content.decode(encoding, errors)

    @property
    def is_empty(self) -> bool:
        return not self._content

    def __len__(self) -> int:
        return len(self._content)

    def __bytes__(self) -> bytes:
        return self._content

    def __str__(self) -> str:
        return self.text()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Stream):
            return self._content == other._content
        if isinstance(other, (bytes, bytearray)):
            return self._content == bytes(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._content)

    def __repr__(self) -> str:
        preview = self._content[:32]
        suffix = "..." if len(self._content) > 32 else ""
        return f"Stream({preview!r}{suffix}, size={len(self._content)})"


def _coerce_headers(headers: HeaderSource) -> Headers:
    if isinstance(headers, Headers) and headers.frozen:
        return headers
    return Headers(headers).freeze()


def _coerce_stream(body: Union[Stream, bytes, str, None]) -> Stream:
    if isinstance(body, Stream):
        return body
    return Stream(body)


@dataclass(frozen=True)
class Request:
    """
    An HTTP request to be dispatched.

    Attributes:
        method: Request method, sent as given
        uri: Target URI
        headers: Request headers
        body: Request body (empty for no body)
    """

    method: str
    uri: str
    headers: Headers = field(default_factory=Headers)
    body: Stream = field(default_factory=Stream)

    def __post_init__(self):
        object.__setattr__(self, "uri", str(self.uri))
        object.__setattr__(self, "headers", _coerce_headers(self.headers))
        object.__setattr__(self, "body", _coerce_stream(self.body))

    def with_method(self, method: str) -> "Request":
        return replace(self, method=method)

    def with_uri(self, uri: str) -> "Request":
        return replace(self, uri=uri)

    def with_header(self, name: str, value: HeaderValue) -> "Request":
        """Return a copy with the header replaced."""
        headers = self.headers.copy()
        headers.set(name, value)
        return replace(self, headers=headers)

    def with_added_header(self, name: str, value: HeaderValue) -> "Request":
        """Return a copy with the value(s) appended to the header."""
        headers = self.headers.copy()
        headers.add(name, value)
        return replace(self, headers=headers)

    def without_header(self, name: str) -> "Request":
        headers = self.headers.copy()
        headers.remove(name)
        return replace(self, headers=headers)

    def with_body(self, body: Union[Stream, bytes, str]) -> "Request":
        return replace(self, body=_coerce_stream(body))

    def __repr__(self) -> str:
        return f"Request({self.method} {self.uri})"


@dataclass(frozen=True)
class Response:
    """
    An HTTP response assembled by the dispatcher.

    Built incrementally: created with a status code, then headers are added
    one at a time in arrival order, then the body is attached.
    Its headers are read-only once built.

    Attributes:
        status_code: HTTP status code
        reason_phrase: Reason phrase (may be empty)
        headers: Response headers
        body: Response body
    """

    status_code: int
    reason_phrase: str = ""
    headers: Headers = field(default_factory=Headers)
    body: Stream = field(default_factory=Stream)

    def __post_init__(self):
        object.__setattr__(self, "status_code", int(self.status_code))
        object.__setattr__(self, "reason_phrase", self.reason_phrase or "")
        object.__setattr__(self, "headers", _coerce_headers(self.headers))
        object.__setattr__(self, "body", _coerce_stream(self.body))

    @classmethod
    def create(cls, status_code: int = 200, reason_phrase: str = "") -> "Response":
        """Create an empty response with the given status."""
        return cls(status_code=status_code, reason_phrase=reason_phrase)

    def with_status(self, status_code: int, reason_phrase: str = "") -> "Response":
        return replace(self, status_code=status_code, reason_phrase=reason_phrase)

    def with_header(self, name: str, value: HeaderValue) -> "Response":
        headers = self.headers.copy()
        headers.set(name, value)
        return replace(self, headers=headers)

    def with_added_header(self, name: str, value: HeaderValue) -> "Response":
        """Return a copy with the value(s) appended, never overwriting."""
        headers = self.headers.copy()
        headers.add(name, value)
        return replace(self, headers=headers)

    def with_body(self, body: Union[Stream, bytes, str]) -> "Response":
        return replace(self, body=_coerce_stream(body))

    @property
    def content(self) -> bytes:
        return self.body.getvalue()

    @property
    def text(self) -> str:
        return self.body.text()

    def __repr__(self) -> str:
        return f"Response({self.status_code} {self.reason_phrase}, body={len(self.body)} bytes)"
