from __future__ import annotations

from todosync.content import TemplateContentGenerator
from todosync.keys import KEY_MARKER, embed_key, encode_key, parse_key
from todosync.models import Annotation


def _annotation(content: str = "handle empty input", context: tuple[str, ...] | None = None) -> Annotation:
    return Annotation(
        type="TODO",
        content=content,
        file="pkg/service.py",
        line=42,
        context=context if context is not None else ("def f(x):", f"    # TODO: {content}", "    return x"),
        key=encode_key("pkg/service.py", 42),
    )


def test_title_is_type_and_content():
    assert TemplateContentGenerator().title(_annotation()) == "TODO: handle empty input"


def test_title_truncated_to_width():
    gen = TemplateContentGenerator(title_width=30)
    title = gen.title(_annotation("x" * 100))
    assert len(title) <= 30
    assert title.endswith("...")


def test_title_without_content_names_location():
    assert TemplateContentGenerator().title(_annotation("")) == "TODO in service.py at line 42"


def test_description_embeds_key_last():
    ann = _annotation()
    desc = TemplateContentGenerator().description(ann)
    assert "> handle empty input" in desc
    assert "`pkg/service.py` at line 42" in desc
    assert "```py\n" in desc
    assert desc.rstrip("\n").endswith(embed_key(ann.key))
    assert parse_key(desc) == ann.key


def test_context_with_fences_and_markers_does_not_break_key():
    ann = _annotation(context=("```", KEY_MARKER, "Key: bogus", "```"))
    desc = TemplateContentGenerator().generate(ann).description
    assert "````py" in desc
    assert parse_key(desc) == ann.key
