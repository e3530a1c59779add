"""Shared msgspec policy and helpers."""

from __future__ import annotations

import re
from typing import Literal

import msgspec


class StructBaseStrict(
    msgspec.Struct,
    frozen=True,
    kw_only=True,
    omit_defaults=True,
    repr_omit_defaults=True,
    forbid_unknown_fields=True,
):
    """Base struct for strict contracts."""


class StructBaseCompat(
    msgspec.Struct,
    frozen=True,
    kw_only=True,
    omit_defaults=True,
    repr_omit_defaults=True,
    forbid_unknown_fields=False,
):
    """Base struct for forward-compatible persisted artifacts."""


_DEFAULT_ORDER: Literal["deterministic"] = "deterministic"

_VALIDATION_RE = re.compile(r"^(?P<summary>.*?)(?:\s+-\s+at\s+`(?P<path>[^`]+)`)?$")


JSON_ENCODER = msgspec.json.Encoder(
    order=_DEFAULT_ORDER,
)
MSGPACK_ENCODER = msgspec.msgpack.Encoder(
    order=_DEFAULT_ORDER,
)


def validation_error_payload(exc: msgspec.ValidationError) -> dict[str, str]:
    """Normalize a msgspec ValidationError for diagnostics.

    Parameters
    ----------
    exc
        ValidationError raised by msgspec decoding/conversion.

    Returns
    -------
    dict[str, str]
        Normalized error payload containing type, summary, and optional path.
    """
    message = str(exc).strip()
    match = _VALIDATION_RE.match(message)
    payload: dict[str, str] = {"type": exc.__class__.__name__}
    if match:
        summary = (match.group("summary") or "").strip()
        if summary:
            payload["summary"] = summary
        path = match.group("path")
        if path:
            payload["path"] = path
        return payload
    payload["summary"] = message
    return payload


def dumps_json(obj: object, *, pretty: bool = False) -> bytes:
    """Serialize an object to JSON bytes.

    Parameters
    ----------
    obj
        Object to serialize.
    pretty
        Whether to format with indentation.

    Returns
    -------
    bytes
        JSON payload.
    """
    raw = JSON_ENCODER.encode(obj)
    if not pretty:
        return raw
    return msgspec.json.format(raw, indent=2)


def loads_json[T](buf: bytes | str, *, target_type: type[T], strict: bool = True) -> T:
    """Deserialize JSON bytes into the requested type.

    Parameters
    ----------
    buf
        JSON payload.
    target_type
        Target type for decoding.
    strict
        Whether to enforce strict decoding.

    Returns
    -------
    T
        Decoded payload.
    """
    decoder = msgspec.json.Decoder(
        type=target_type,
        strict=strict,
    )
    return decoder.decode(buf)


def dumps_msgpack(obj: object) -> bytes:
    """Serialize an object to MessagePack bytes.

    Parameters
    ----------
    obj
        Object to serialize.

    Returns
    -------
    bytes
        MessagePack payload.
    """
    return MSGPACK_ENCODER.encode(obj)


def loads_msgpack[T](buf: bytes, *, target_type: type[T], strict: bool = True) -> T:
    """Deserialize MessagePack bytes into the requested type.

    Parameters
    ----------
    buf
        MessagePack payload.
    target_type
        Target type for decoding.
    strict
        Whether to enforce strict decoding.

    Returns
    -------
    T
        Decoded payload.
    """
    decoder = msgspec.msgpack.Decoder(
        type=target_type,
        strict=strict,
    )
    return decoder.decode(buf)


def to_builtins(obj: object, *, str_keys: bool = True) -> object:
    """Convert an object into builtin JSON-friendly types.

    Parameters
    ----------
    obj
        Object to convert.
    str_keys
        Whether to coerce mapping keys to strings.

    Returns
    -------
    object
        Builtin-friendly representation.
    """
    return msgspec.to_builtins(
        obj,
        order=_DEFAULT_ORDER,
        str_keys=str_keys,
    )


def convert[T](obj: object, *, target_type: type[T], strict: bool = True) -> T:
    """Convert an object into a target type.

    Parameters
    ----------
    obj
        Object to convert.
    target_type
        Target type for conversion.
    strict
        Whether to enforce strict conversion.

    Returns
    -------
    T
        Converted payload.
    """
    return msgspec.convert(
        obj,
        type=target_type,
        strict=strict,
    )


__all__ = [
    "JSON_ENCODER",
    "MSGPACK_ENCODER",
    "StructBaseCompat",
    "StructBaseStrict",
    "convert",
    "dumps_json",
    "dumps_msgpack",
    "loads_json",
    "loads_msgpack",
    "to_builtins",
    "validation_error_payload",
]
