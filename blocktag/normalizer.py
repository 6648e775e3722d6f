"""URL and domain normalization.

Turns arbitrary blocklist lines and lookup candidates into the canonical keys
used by the domain and URL indices. Inputs without a scheme
(``example.com/path``) are retried with ``https://`` prepended.
"""

import ipaddress
import re
from typing import NamedTuple, Optional
from urllib.parse import SplitResult, quote, urlsplit, urlunsplit

from blocktag.errors import MalformedInputError, NoHostnameError

# Schemes that cannot exist without a host
SPECIAL_SCHEMES = {"http", "https", "ws", "wss", "ftp"}

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
}

FALLBACK_PREFIX = "https://"

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")

# Input that already names a scheme and authority is never retried
_AUTHORITY_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+\-]*://")

# "localhost:8080/x" is a host and port, not a "localhost" scheme
_HOST_PORT_RE = re.compile(r"^([a-zA-Z0-9.\-]+):(\d+)(?:[/?#]|$)")

# Schemes whose path is commonly all digits ("tel:5551234")
OPAQUE_SCHEMES = {"tel", "sms", "fax", "urn"}

MAX_PORT = 65535

_FORBIDDEN_HOST_CHARS = set(" #%/:<>?@[\\]^|\x7f")

# Characters left as-is in a canonical path; everything else is percent-encoded
_PATH_SAFE = "/%!$&'()*+,;=:@-._~[]|^"


class ParsedURL(NamedTuple):
    """A parsed URL with its host already canonicalized."""

    parts: SplitResult
    scheme: str
    host: Optional[str]
    port: Optional[int]


def _canonical_host(hostname: str) -> Optional[str]:
    """Lower-case, punycode and validate a host. Returns None when invalid."""
    if ":" in hostname:
        # Only bracketed IPv6 literals keep a colon after urlsplit
        try:
            return f"[{ipaddress.IPv6Address(hostname).compressed}]"
        except ValueError:
            return None

    if any(ch in _FORBIDDEN_HOST_CHARS or ord(ch) < 0x20 for ch in hostname):
        return None

    host = hostname.lower()
    if not host.isascii():
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError:
            return None

    host = host.rstrip(".")
    return host or None


def _is_host_and_port(text: str) -> bool:
    match = _HOST_PORT_RE.match(text)
    if match is None:
        return False
    return match.group(1).lower() not in OPAQUE_SCHEMES and int(match.group(2)) <= MAX_PORT


def _try_parse(text: str) -> Optional[ParsedURL]:
    """Parse text as an absolute URL, or return None."""
    match = _SCHEME_RE.match(text)
    if match is None or "." in match.group(1) or _is_host_and_port(text):
        return None

    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    host = None
    if parts.hostname:
        host = _canonical_host(parts.hostname)
        if host is None:
            return None

    if scheme in SPECIAL_SCHEMES and host is None:
        return None

    return ParsedURL(parts=parts, scheme=scheme, host=host, port=port)


def parse(candidate: str) -> ParsedURL:
    """Parse a candidate as-is, then with https:// prepended.

    The retry only applies to input without a "scheme://" prefix, so
    "https://bad<host/" does not turn into a URL whose host is "https".
    Scheme-relative input ("//example.com/x") keeps its authority.

    Raises:
        MalformedInputError: If neither attempt yields a valid URL
    """
    text = candidate.strip()
    if not text:
        raise MalformedInputError(candidate)

    parsed = _try_parse(text)
    if parsed is None and not _AUTHORITY_RE.match(text):
        relative = text[2:] if text.startswith("//") else text
        parsed = _try_parse(FALLBACK_PREFIX + relative)
    if parsed is None:
        raise MalformedInputError(candidate)
    return parsed


def _canonical_path(path: str) -> str:
    """Resolve dot segments and percent-encode a hierarchical path."""
    if not path:
        return "/"

    segments = path.split("/")[1:]
    resolved: list[str] = []
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        if segment == "..":
            if resolved:
                resolved.pop()
            if last:
                resolved.append("")
        elif segment == ".":
            if last:
                resolved.append("")
        else:
            resolved.append(segment)

    return quote("/" + "/".join(resolved), safe=_PATH_SAFE)


def normalize_domain(candidate: str) -> str:
    """Return the canonical host of a candidate URL or domain.

    Args:
        candidate: Domain or URL, scheme optional (e.g. "Foo.Example.com/x")

    Returns:
        Lower-cased host without port or trailing dot (e.g. "foo.example.com")

    Raises:
        MalformedInputError: If the candidate cannot be parsed
        NoHostnameError: If the parsed URL has no host
    """
    parsed = parse(candidate)
    if parsed.host is None:
        raise NoHostnameError(parsed.parts.geturl())
    return parsed.host


def normalize_url(candidate: str) -> str:
    """Return the canonical scheme-through-path form of a candidate URL.

    Query string, fragment and user info are dropped; default ports are
    removed. ``example.com/path?x=1#y`` becomes ``https://example.com/path``.

    Raises:
        MalformedInputError: If the candidate cannot be parsed or its path
            cannot be encoded as UTF-8 (lone surrogates)
    """
    parsed = parse(candidate)
    path = parsed.parts.path

    try:
        if parsed.host is None:
            if path.startswith("/"):
                path = _canonical_path(path)
            return urlunsplit((parsed.scheme, "", path, "", ""))

        netloc = parsed.host
        if parsed.port is not None and parsed.port != DEFAULT_PORTS.get(parsed.scheme):
            netloc = f"{netloc}:{parsed.port}"

        return urlunsplit((parsed.scheme, netloc, _canonical_path(path), "", ""))
    except UnicodeEncodeError as e:
        raise MalformedInputError(candidate) from e
