from __future__ import annotations

from mdx_kb.diagnostics import Diagnostics
from mdx_kb.validity import check_syntax, syntax_issues


def test_well_formed_body_passes() -> None:
    assert check_syntax("# Title\n\n<b>bold</b> and {value}\n")
    assert check_syntax("line<br>")
    assert check_syntax("closing <img src='a.png' />")


def test_brace_imbalance_fails() -> None:
    assert syntax_issues("text {a") == ["unbalanced-braces"]


def test_braces_inside_code_are_ignored() -> None:
    assert check_syntax("use `{` carefully\n\n```js\nif (x) {\n```\n")


def test_trailing_unterminated_tag_fails() -> None:
    assert "unterminated-tag" in syntax_issues("hello <span")
    assert "unterminated-tag" in syntax_issues("Hi <div>")


def test_closing_tag_with_slash_fails() -> None:
    assert syntax_issues("<div>x</div/>") == ["closing-tag-with-slash"]


def test_issues_are_reported_as_warnings() -> None:
    diagnostics = Diagnostics("doc.mdx")
    assert check_syntax("{ <x", diagnostics) is False
    (warning,) = diagnostics.by_level("warning")
    assert warning.stage == "validity"
    assert "unbalanced-braces" in warning.message
