# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Path template scanning, validation and substitution.

Templates use ``{name}`` placeholders. A format-spec suffix such as
``{id:>4}`` is accepted and ignored, and ``{{``/``}}`` stand for literal
braces. No URL escaping happens here.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Mapping
from typing import Any

import msgspec

from .errors import DefinitionError

__all__ = (
    "PLACEHOLDER_PATTERN",
    "PathTemplate",
    "placeholders",
    "compile_path",
    "resolve",
    "to_path_string",
)

PLACEHOLDER_PATTERN = re.compile(
    r"(?P<escape>\{\{|\}\})|\{(?P<name>\w+)(?::[^}]+)?\}"
)


class PathTemplate(msgspec.Struct, frozen=True):
    """A scanned template together with its placeholder names."""

    template: str
    names: frozenset[str]
    explicit: frozenset[str] = frozenset()

    @property
    def implicit(self) -> frozenset[str]:
        """Placeholders filled directly from same-named method parameters."""
        return self.names - self.explicit


def placeholders(template: str) -> frozenset[str]:
    """Return the set of placeholder names in ``template``."""
    return frozenset(
        match["name"]
        for match in PLACEHOLDER_PATTERN.finditer(template)
        if match["name"] is not None
    )


def compile_path(
    template: str,
    *,
    args: Iterable[str] = (),
    parameters: Iterable[str] = (),
) -> PathTemplate:
    """Check that every placeholder resolves and return the compiled template.

    Explicit args take precedence over same-named parameters. Raises
    :class:`DefinitionError` for any placeholder with no source.
    """
    names = placeholders(template)
    explicit = frozenset(args)
    available = explicit | frozenset(parameters)
    for name in sorted(names):
        if name not in available:
            raise DefinitionError(
                f"unresolved path placeholder `{name}`",
                details={"template": template, "placeholder": name},
            )
    return PathTemplate(template=template, names=names, explicit=explicit & names)


def to_path_string(value: Any) -> str:
    """External string form of a path value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return to_path_string(value.value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def resolve(template: PathTemplate | str, values: Mapping[str, Any]) -> str:
    """Substitute every placeholder in ``template`` with its value's string form."""
    raw = template.template if isinstance(template, PathTemplate) else template

    def substitute(match: re.Match[str]) -> str:
        escape = match["escape"]
        if escape is not None:
            return escape[0]
        name = match["name"]
        if name not in values:
            raise DefinitionError(
                f"unresolved path placeholder `{name}`",
                details={"template": raw, "placeholder": name},
            )
        return to_path_string(values[name])

    return PLACEHOLDER_PATTERN.sub(substitute, raw)
