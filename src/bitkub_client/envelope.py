"""
Decoding of the Bitkub response envelope.

Every envelope-style endpoint answers with::

    {"error": <int>, "result": <endpoint specific>, "pagination": {...}?}

``result`` cannot be interpreted without knowing which endpoint produced it,
so each endpoint passes one of the shapes below. A nonzero ``error`` is
raised as ``BitkubAPIError`` before the shape is consulted.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from .errors import BitkubAPIError, BitkubDecodeError
from .models import Pagination, as_int, as_list, as_mapping

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------- shapes ----------
@dataclass(frozen=True)
class Scalar(Generic[T]):
    """``result`` is a bare string or number."""

    convert: Callable[[Any], T]

    def decode(self, result: Any) -> T:
        return self.convert(result)


@dataclass(frozen=True)
class Object(Generic[T]):
    """``result`` is a single named object."""

    factory: Callable[[Any], T]

    def decode(self, result: Any) -> T:
        return self.factory(as_mapping(result, "result"))


@dataclass(frozen=True)
class ObjectList(Generic[T]):
    """``result`` is an array of named objects."""

    factory: Callable[[Any], T]

    def decode(self, result: Any) -> list[T]:
        return [self.factory(item) for item in as_list(result, "result")]


@dataclass(frozen=True)
class ObjectMap(Generic[T]):
    """``result`` maps a key (symbol, currency) to a nested object."""

    factory: Callable[[Any], T]

    def decode(self, result: Any) -> dict[str, T]:
        return {key: self.factory(value) for key, value in as_mapping(result, "result").items()}


@dataclass(frozen=True)
class TupleList(Generic[T]):
    """``result`` is an array of positional rows."""

    factory: Callable[[Any], T]

    def decode(self, result: Any) -> list[T]:
        return [self.factory(row) for row in as_list(result, "result")]


@dataclass(frozen=True)
class KeyedTupleLists(Generic[T]):
    """``result`` maps a side label (bids/asks) to an array of positional rows."""

    factory: Callable[[Any], T]

    def decode(self, result: Any) -> dict[str, list[T]]:
        return {
            key: [self.factory(row) for row in as_list(rows, key)]
            for key, rows in as_mapping(result, "result").items()
        }


@dataclass(frozen=True)
class NoResult:
    """Only the error gate matters (e.g. cancel order)."""

    def decode(self, result: Any) -> None:
        return None


Shape = Union[Scalar, Object, ObjectList, ObjectMap, TupleList, KeyedTupleLists, NoResult]


# ---------- envelope ----------
@dataclass(frozen=True)
class Envelope:
    error: int
    result: Any
    pagination: Any = None


@dataclass(frozen=True)
class Decoded(Generic[T]):
    result: T
    pagination: Pagination | None = None


def _snippet(body: bytes | str) -> str:
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    return text[:300]


def parse_json(body: bytes | str) -> Any:
    try:
        return json.loads(body)
    except ValueError as e:
        raise BitkubDecodeError("Invalid JSON in response", body=_snippet(body), cause=e) from e


def parse_envelope(body: bytes | str) -> Envelope:
    data = parse_json(body)
    if not isinstance(data, dict):
        raise BitkubDecodeError("Unexpected JSON type (expected object)", body=_snippet(body))
    if "error" not in data:
        raise BitkubDecodeError("Envelope has no 'error' field", body=_snippet(body))
    try:
        code = as_int(data["error"], "error")
    except BitkubDecodeError as e:
        raise BitkubDecodeError(str(e), body=_snippet(body), cause=e) from e
    return Envelope(error=code, result=data.get("result"), pagination=data.get("pagination"))


def decode(body: bytes | str, shape: Shape, *, path: str | None = None) -> Decoded[Any]:
    """Parse the envelope, apply the error gate, then reshape ``result``."""
    envelope = parse_envelope(body)

    if envelope.error != 0:
        err = BitkubAPIError(envelope.error, path=path)
        logger.warning("%s returned error %d: %s", path or "request", err.code, err.message)
        raise err

    try:
        result = shape.decode(envelope.result)
        pagination = Pagination.from_dict(envelope.pagination) if envelope.pagination is not None else None
    except BitkubDecodeError as e:
        raise BitkubDecodeError(f"{path or 'response'}: {e}", body=_snippet(body), cause=e) from e

    return Decoded(result=result, pagination=pagination)


def decode_bare(body: bytes | str, shape: Shape, *, path: str | None = None) -> Any:
    """For the few endpoints that answer without an envelope (status, ticker, depth)."""
    data = parse_json(body)
    try:
        return shape.decode(data)
    except BitkubDecodeError as e:
        raise BitkubDecodeError(f"{path or 'response'}: {e}", body=_snippet(body), cause=e) from e
