from __future__ import annotations

import pytest

from volunteer_manager.common.errors import TemplateError
from volunteer_manager.subscriptions.templates import (
    ChannelTemplate,
    placeholders,
    render_template,
)


def test_render_substitutes_known_placeholders() -> None:
    text = render_template("Hi {name}, see {link}", {"name": "Ana", "link": "https://x/y"})
    assert text == "Hi Ana, see https://x/y"


def test_render_keeps_escaped_braces() -> None:
    assert render_template("{{literal}} {name}", {"name": "Ana"}) == "{literal} Ana"


def test_unknown_placeholder_is_rejected() -> None:
    with pytest.raises(TemplateError) as exc:
        render_template("Hi {nmae}", {"name": "Ana"})
    assert exc.value.details == {"placeholder": "nmae"}


@pytest.mark.parametrize("text", ["{}", "{0}", "{name!r}", "{name:>10}", "{user.name}", "{oops"])
def test_malformed_placeholders_are_rejected(text: str) -> None:
    with pytest.raises(TemplateError):
        render_template(text, {"name": "Ana", "user": "x"})


def test_placeholders_cover_subject_and_body() -> None:
    template = ChannelTemplate(subject="New {team} application", body="{applicant} applied")
    assert template.placeholders() == {"team", "applicant"}
    assert placeholders("no placeholders") == set()
