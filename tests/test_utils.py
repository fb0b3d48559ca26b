from app.utils import coerce_bool, coerce_float, coerce_int, parse_extra_segment


def test_parse_extra_segment_keeps_plus_as_and_separator():
    extras = parse_extra_segment("skip=100&genre=Action%2C%20Adventure+Comedy&&yearMin=1990")

    assert extras == {"skip": "100", "genre": "Action, Adventure+Comedy", "yearMin": "1990"}


def test_parse_extra_segment_prefers_query_values():
    extras = parse_extra_segment("skip=100&sort=year", {"skip": "200"})

    assert extras == {"skip": "200", "sort": "year"}
    assert parse_extra_segment(None) == {}


def test_coercion_helpers():
    assert coerce_int("12") == 12
    assert coerce_int("12.9") == 12
    assert coerce_int("x", default=3) == 3
    assert coerce_int("inf") is None
    assert coerce_int("1e999", default=0) == 0
    assert coerce_int(float("-inf"), default=0) == 0
    assert coerce_float("7.5") == 7.5
    assert coerce_float(True) is None
    assert coerce_float("nan") is None
    assert coerce_bool("yes") is True
    assert coerce_bool("off") is False
    assert coerce_bool("maybe") is None
