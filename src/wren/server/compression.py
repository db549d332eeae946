"""Response body compression — br, gzip, deflate, or a custom handler.

Applied by the finalizer at the very end of an invocation, after the
outgoing middleware have seen the uncompressed body.

Only non-empty ``str`` and ``bytes`` bodies are compressed, only when the
request carries ``Accept-Encoding``, and only for content types on the
compressible allow-list. 204 and 304 responses are never compressed.
"""

from __future__ import annotations

import gzip
import re
import zlib
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

import brotli

from wren._internal.invoke import invoke
from wren._internal.types import LogFn
from wren.errors import ConfigurationError
from wren.http.response import ResponseDescriptor, find_header, set_header

# Default preference order when the client accepts several encodings.
DEFAULT_ENCODINGS: tuple[str, ...] = ("br", "gzip", "deflate")

# Responses that must not carry a body (or a content-length for one).
_BODILESS_STATUSES = frozenset({204, 304})

_COMPRESSIBLE_TYPES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^text/(html|css|plain|xml|x-component|javascript)$", re.IGNORECASE),
    re.compile(
        r"^application/(x-javascript|javascript|json|manifest\+json|vnd\.api\+json|xml"
        r"|xhtml\+xml|rss\+xml|atom\+xml|vnd\.ms-fontobject|x-font-ttf|x-font-opentype"
        r"|x-font-truetype)$",
        re.IGNORECASE,
    ),
    re.compile(r"^image/(svg\+xml|x-icon|vnd\.microsoft\.icon)$", re.IGNORECASE),
    re.compile(r"^font/(ttf|eot|otf|opentype)$", re.IGNORECASE),
)


@dataclass(frozen=True, slots=True)
class CompressionLevels:
    """Per-encoding compression levels.

    Brotli quality runs 1–11, gzip and deflate levels run 1–9.
    Out-of-range values raise ``ConfigurationError`` on construction.
    """

    br: int = 11
    gzip: int = 6
    deflate: int = 6

    def __post_init__(self) -> None:
        _validate_level(self.br, 1, 11)
        _validate_level(self.gzip, 1, 9)
        _validate_level(self.deflate, 1, 9)

    @classmethod
    def from_mapping(cls, levels: Mapping[str, int]) -> CompressionLevels:
        """Build levels from a ``{"br": .., "gzip": .., "deflate": ..}`` mapping.

        All three encodings must be present.
        """
        if set(levels) != {"br", "gzip", "deflate"}:
            msg = "Please provide compression level options for all the supported encodings."
            raise ConfigurationError(msg)
        return cls(br=levels["br"], gzip=levels["gzip"], deflate=levels["deflate"])


def _validate_level(level: int, low: int, high: int) -> None:
    if isinstance(level, bool) or not isinstance(level, int) or not low <= level <= high:
        msg = "Invalid compression level provided."
        raise ConfigurationError(msg)


@runtime_checkable
class CompressionHandler(Protocol):
    """A user-supplied compressor.

    ``encodings`` lists the tokens the handler can produce. ``compress``
    receives the raw body and the host logging channels, and may be sync
    or async::

        class Zstd:
            encodings = {"zstd"}

            def compress(self, data, log, error):
                return zstandard.compress(data)
    """

    encodings: set[str] | frozenset[str]

    def compress(
        self,
        data: bytes,
        log: LogFn,
        error: LogFn,
    ) -> bytes | Awaitable[bytes]: ...


CompressionPolicy: TypeAlias = bool | CompressionHandler


def is_compressible(content_type: str | None) -> bool:
    """True if *content_type* is on the compressible allow-list.

    Parameters such as ``; charset=utf-8`` are ignored.
    """
    if not content_type:
        return False
    base = content_type.split(";", 1)[0].strip()
    return any(pattern.match(base) for pattern in _COMPRESSIBLE_TYPES)


def parse_accept_encoding(value: str) -> list[str]:
    """Split an ``Accept-Encoding`` value into tokens, in client order.

    ``"gzip;q=0.8, br"`` -> ``["gzip", "br"]``
    """
    tokens: list[str] = []
    for part in value.split(","):
        token = part.split(";", 1)[0].strip().lower()
        if token:
            tokens.append(token)
    return tokens


def compress_bytes(data: bytes, encoding: str, levels: CompressionLevels) -> bytes:
    """Compress *data* with one of the built-in encodings.

    ``deflate`` produces a zlib stream, which is what HTTP clients expect
    for ``Content-Encoding: deflate``.
    """
    if encoding == "br":
        return brotli.compress(data, quality=levels.br)
    if encoding == "gzip":
        return gzip.compress(data, compresslevel=levels.gzip)
    if encoding == "deflate":
        return zlib.compress(data, levels.deflate)
    msg = f"Unsupported encoding: {encoding!r}"
    raise ValueError(msg)


async def compress_response(
    descriptor: ResponseDescriptor,
    accept_encoding: str | None,
    policy: CompressionPolicy,
    levels: CompressionLevels,
    *,
    log: LogFn,
    error: LogFn,
) -> str | None:
    """Compress *descriptor* in place when the policy and request allow it.

    Returns the applied encoding, or ``None`` when the body passed
    through unchanged.
    """
    if policy is False or not accept_encoding:
        return None
    if descriptor.status_code in _BODILESS_STATUSES:
        return None

    body = descriptor.body
    if isinstance(body, bytes):
        data = body
    elif isinstance(body, str):
        data = body.encode("utf-8")
    else:
        return None
    if not data:
        return None

    if not is_compressible(find_header(descriptor.headers, "content-type")):
        return None

    requested = parse_accept_encoding(accept_encoding)

    if policy is not True:
        supported = set(policy.encodings)
        encoding = next((enc for enc in requested if enc in supported), None)
        if encoding is None:
            return None
        compressed = await invoke(policy.compress, data, log, error)
    else:
        encoding = next((enc for enc in DEFAULT_ENCODINGS if enc in requested), None)
        if encoding is None:
            return None
        compressed = compress_bytes(data, encoding, levels)

    descriptor.body = compressed
    set_header(descriptor.headers, "content-encoding", encoding)
    set_header(descriptor.headers, "content-length", len(compressed))
    return encoding
