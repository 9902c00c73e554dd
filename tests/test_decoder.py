import pytest

from deejey.telemetry.decoder import MalformedTelemetry, decode_line


def test_decode_line_returns_readings_in_channel_order() -> None:
    assert decode_line("50|30|0|0") == (50, 30, 0, 0)


@pytest.mark.parametrize("line", ["0", "100|0", "1023|512|0|7|9", "-1|5"])
def test_decode_is_lossless_on_valid_input(line: str) -> None:
    assert "|".join(str(value) for value in decode_line(line)) == line


def test_malformed_field_rejects_whole_line() -> None:
    with pytest.raises(MalformedTelemetry) as excinfo:
        decode_line("10|abc|30")

    assert excinfo.value.field == "abc"
    assert excinfo.value.line == "10|abc|30"


@pytest.mark.parametrize("line", ["", "10||30", "1.5|2", "1_000|2", "�|3"])
def test_non_integer_fields_are_malformed(line: str) -> None:
    with pytest.raises(MalformedTelemetry):
        decode_line(line)


def test_surrounding_whitespace_is_tolerated() -> None:
    assert decode_line(" 10 | 20 ") == (10, 20)


def test_values_are_not_range_checked() -> None:
    assert decode_line("1023|250") == (1023, 250)
