# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Ordered, duplicate-preserving header composition.

Layers compose by appending: a name present in two layers is sent twice.
Names are normalized to dashed lowercase (``cache_control`` becomes
``cache-control``).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Union

__all__ = (
    "HeaderSet",
    "compose",
    "to_dashed",
    "validate_header",
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

HeaderLayer = Union["HeaderSet", Mapping[str, Any], Iterable[tuple[str, Any]]]


def to_dashed(name: str) -> str:
    """Canonical wire form of a header name.

    Names that already contain a dash are only lowercased, so
    ``X-GitHub-Api-Version`` stays readable.
    """
    if "-" in name:
        return name.lower()
    return _CAMEL_BOUNDARY.sub("-", name).replace("_", "-").lower()


def validate_header(name: str, value: str) -> None:
    """Raise ``ValueError`` for names or values that cannot go on the wire."""
    if not _TOKEN.match(name):
        raise ValueError(f"invalid header name {name!r}")
    if "\r" in value or "\n" in value or "\0" in value:
        raise ValueError(f"invalid value for header {name!r}")


class HeaderSet:
    """Ordered sequence of ``(name, value)`` pairs that allows repeats."""

    __slots__ = ("_items",)

    def __init__(self, items: HeaderLayer | None = None):
        self._items: list[tuple[str, str]] = []
        if items is not None:
            self.extend(items)

    def add(self, name: str, value: Any) -> None:
        name = to_dashed(name)
        value = str(value)
        validate_header(name, value)
        self._items.append((name, value))

    def extend(self, layer: HeaderLayer) -> None:
        if isinstance(layer, HeaderSet):
            self._items.extend(layer._items)
            return
        pairs = layer.items() if isinstance(layer, Mapping) else layer
        for name, value in pairs:
            self.add(name, value)

    def get_all(self, name: str) -> list[str]:
        name = to_dashed(name)
        return [v for k, v in self._items if k == name]

    def get(self, name: str, default: str | None = None) -> str | None:
        values = self.get_all(name)
        return values[0] if values else default

    def items(self) -> list[tuple[str, str]]:
        return list(self._items)

    def copy(self) -> HeaderSet:
        return HeaderSet(self)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        name = to_dashed(name)
        return any(k == name for k, _ in self._items)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderSet):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"HeaderSet({self._items!r})"


def compose(*layers: HeaderLayer | None) -> HeaderSet:
    """Append each layer in order into a fresh :class:`HeaderSet`."""
    headers = HeaderSet()
    for layer in layers:
        if layer is not None:
            headers.extend(layer)
    return headers
