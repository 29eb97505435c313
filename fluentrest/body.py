"""Content-type driven request body encoding.

The content type selects one of a closed set of encodings:

    application/json                   -> JSON text (strings pass through)
    application/x-www-form-urlencoded  -> form-encoded text (strings pass through)
    multipart/form-data                -> multipart bytes; string values naming an
                                          existing file are attached as files
    anything else                      -> payload passed through untouched;
                                          streams are read into bytes

Media type matching ignores parameters and case, so
"application/json; charset=utf-8" encodes as JSON.
"""

from __future__ import annotations

import json
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Iterator, Mapping
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from fluentrest.models import BodyKind, EncodedBody

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
MULTIPART_CONTENT_TYPE = "multipart/form-data"

_KIND_BY_MEDIA_TYPE = {
    JSON_CONTENT_TYPE: BodyKind.JSON,
    FORM_CONTENT_TYPE: BodyKind.FORM,
    MULTIPART_CONTENT_TYPE: BodyKind.MULTIPART,
}


def body_kind(content_type: str) -> BodyKind:
    """Classify a Content-Type value into a body encoding."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return _KIND_BY_MEDIA_TYPE.get(media_type, BodyKind.RAW)


def encode_body(payload: Any, content_type: str = JSON_CONTENT_TYPE) -> EncodedBody:
    """Encode a payload for the given content type.

    Multipart bodies carry their own Content-Type header (with boundary) in
    EncodedBody.headers; the other kinds leave headers empty and the
    builder sets Content-Type to content_type verbatim.
    """
    kind = body_kind(content_type)

    if kind is BodyKind.JSON:
        return EncodedBody(kind=kind, content_type=content_type, content=encode_json(payload))
    if kind is BodyKind.FORM:
        return EncodedBody(kind=kind, content_type=content_type, content=encode_form(payload))
    if kind is BodyKind.MULTIPART:
        content, headers = encode_multipart(payload)
        return EncodedBody(
            kind=kind, content_type=content_type, content=content, headers=headers
        )
    if kind is BodyKind.RAW:
        return EncodedBody(kind=kind, content_type=content_type, content=read_raw(payload))

    raise ValueError(f"Unhandled body kind: {kind}")


def read_raw(payload: Any) -> Any:
    """Materialize stream payloads so the encoded body can be copied and resent.

    File-like objects are read from their current position (the caller keeps
    ownership and closes them); byte iterators are joined. Anything else is
    returned unchanged.
    """
    if hasattr(payload, "read"):
        data = payload.read()
        return data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if isinstance(payload, (bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, Iterator):
        return b"".join(
            chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)
            for chunk in payload
        )
    return payload


def encode_json(payload: Any) -> str:
    """Serialize to compact JSON text; strings are assumed to be JSON already."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, BaseModel):
        return payload.model_dump_json()
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def encode_form(payload: Any) -> str:
    """Form-encode a mapping; strings pass through.

    Nested mappings and lists use bracket keys (a[b]=1, a[0]=x). Booleans
    render as true/false and None as an empty value.
    """
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, Mapping):
        raise TypeError(
            f"Form body must be a mapping or string, got {type(payload).__name__}"
        )
    pairs: list[tuple[str, str]] = []
    for key, value in payload.items():
        _flatten_form_field(str(key), value, pairs)
    return urlencode(pairs)


def _flatten_form_field(key: str, value: Any, pairs: list[tuple[str, str]]) -> None:
    if isinstance(value, Mapping):
        for sub_key, sub_value in value.items():
            _flatten_form_field(f"{key}[{sub_key}]", sub_value, pairs)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten_form_field(f"{key}[{index}]", item, pairs)
    else:
        pairs.append((key, _form_scalar(value)))


def _form_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_multipart(fields: Mapping[str, Any]) -> tuple[bytes, dict[str, str]]:
    """Encode fields as multipart/form-data.

    A string value that names an existing file is attached as that file's
    contents (filename = basename); any other value is sent as a plain
    field. Returns the encoded bytes and the Content-Type header carrying
    the generated boundary.
    """
    if not isinstance(fields, Mapping):
        raise TypeError(
            f"Multipart body must be a mapping, got {type(fields).__name__}"
        )
    if not fields:
        # httpx emits no multipart body (and no boundary) without parts
        raise ValueError("Multipart body needs at least one field")

    with ExitStack() as stack:
        parts: list[tuple[str, tuple[str | None, Any]]] = []
        for name, value in fields.items():
            if isinstance(value, str) and value and Path(value).is_file():
                handle = stack.enter_context(open(value, "rb"))
                parts.append((str(name), (Path(value).name, handle)))
            elif isinstance(value, bytes):
                parts.append((str(name), (None, value)))
            else:
                parts.append((str(name), (None, _form_scalar(value))))

        # httpx only emits multipart when files are present; a part with no
        # filename renders as a plain form field.
        request = httpx.Request("POST", "http://multipart.invalid/", files=parts)
        content = request.read()

    return content, {"Content-Type": request.headers.get("Content-Type", MULTIPART_CONTENT_TYPE)}
