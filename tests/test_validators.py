from utils.validators import (
    DEFAULT_TITLE,
    derive_title,
    validate_message_content,
    validate_password,
)


def test_derive_title_truncates_long_content_with_ellipsis():
    content = "a" * 62
    title = derive_title(content)
    assert title == "a" * 50 + "…"
    assert len(title) == 51


def test_derive_title_keeps_short_content():
    assert derive_title("Hi") == "Hi"
    assert derive_title("  2+2?  ") == "2+2?"


def test_derive_title_exactly_at_limit_is_not_truncated():
    assert derive_title("b" * 50) == "b" * 50


def test_derive_title_defaults_when_empty():
    assert derive_title("") == DEFAULT_TITLE
    assert derive_title("   ") == DEFAULT_TITLE
    assert derive_title(None) == DEFAULT_TITLE


def test_message_content_required_without_file():
    ok, err = validate_message_content("   ")
    assert not ok
    assert "required" in err


def test_message_content_optional_with_file():
    ok, err = validate_message_content("", has_file=True)
    assert ok
    assert err == ""


def test_message_content_length_limit_applies_with_file():
    ok, err = validate_message_content("x" * 10001, has_file=True)
    assert not ok
    assert "too long" in err
    assert validate_message_content("x" * 10000)[0]


def test_password_rules():
    assert validate_password("abc12345") == (True, "")
    assert not validate_password("short1")[0]
    assert not validate_password("allletters")[0]
    assert not validate_password("12345678")[0]
