"""
Шаблоны сообщений подписок.

Подстановка только явных {name}; неизвестный плейсхолдер — TemplateError,
а не оставленный в тексте «{name}».
"""

from __future__ import annotations

import string
from collections.abc import Mapping
from dataclasses import dataclass

from volunteer_manager.common.errors import TemplateError

_formatter = string.Formatter()


@dataclass(frozen=True)
class ChannelTemplate:
    body: str
    subject: str | None = None

    def placeholders(self) -> set[str]:
        names = placeholders(self.body)
        if self.subject:
            names |= placeholders(self.subject)
        return names


def _parse(text: str) -> list[tuple[str, str | None]]:
    try:
        parsed = list(_formatter.parse(text))
    except ValueError as e:
        raise TemplateError("Некорректный шаблон", {"err": str(e)}) from e

    parts: list[tuple[str, str | None]] = []
    for literal, field, spec, conversion in parsed:
        if field is not None and (not field.isidentifier() or spec or conversion):
            raise TemplateError("Некорректный плейсхолдер", {"placeholder": field})
        parts.append((literal, field))
    return parts


def placeholders(text: str) -> set[str]:
    return {field for _, field in _parse(text) if field is not None}


def render_template(text: str, values: Mapping[str, object]) -> str:
    out: list[str] = []
    for literal, field in _parse(text):
        out.append(literal)
        if field is None:
            continue
        if field not in values:
            raise TemplateError("Неизвестный плейсхолдер", {"placeholder": field})
        value = values[field]
        out.append("" if value is None else str(value))
    return "".join(out)
