import pytest

from lumber.durations import format_duration, parse_duration


def test_parse_simple_seconds():
    assert parse_duration("5s") == 5
    assert parse_duration("10s") == 10


def test_parse_bare_zero():
    assert parse_duration("0") == 0


@pytest.mark.parametrize(
    "left, right",
    [
        ("1h", "60m"),
        ("60m", "3600s"),
        ("1.5s", "1500ms"),
        ("1h30m", "90m"),
        ("2us", "2\u00b5s"),
        ("2us", "2\u03bcs"),
        ("1ms", "1000us"),
        ("1us", "1000ns"),
        ("+3s", "3s"),
        (".5s", "500ms"),
        ("5.s", "5s"),
    ],
)
def test_parse_equivalent_forms(left, right):
    assert parse_duration(left) == parse_duration(right)


def test_parse_negative_is_mirror():
    assert parse_duration("-2s") == -parse_duration("2s")
    assert parse_duration("-1h30m") == -parse_duration("1h30m")


@pytest.mark.parametrize("text", ["", "abc", "5", "5x", ".s", "-", "1h-5m", "s"])
def test_parse_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_format_zero():
    assert format_duration(0) == "0s"


def test_format_minutes_and_sub_second():
    assert format_duration(90) == "1m30s"
    assert format_duration(0.0015) == "1.5ms"


@pytest.mark.parametrize(
    "text", ["5s", "10s", "1h30m", "250ms", "1.5s", "-2s", "3h0m7s", "42ns", "17us", "1m0.5s"]
)
def test_format_round_trip(text):
    seconds = parse_duration(text)
    assert parse_duration(format_duration(seconds)) == seconds


def test_format_negative_has_leading_sign():
    rendered = format_duration(-parse_duration("5s"))
    assert rendered.startswith("-")
    assert parse_duration(rendered) == -5