import pytest

from lecture_qa.common.timecode import parse_timecode, to_timecode


def test_to_timecode_minutes_and_hours() -> None:
    assert to_timecode(125) == "02:05"
    assert to_timecode(3725) == "01:02:05"
    assert to_timecode(0) == "00:00"
    assert to_timecode(59.9) == "00:59"


def test_negative_seconds_clamp_to_zero() -> None:
    assert to_timecode(-5) == "00:00"


@pytest.mark.parametrize("seconds", [0, 1, 59, 60, 125, 3599, 3600, 3725, 86399, 100000])
def test_parse_inverts_to_timecode(seconds: int) -> None:
    assert parse_timecode(to_timecode(seconds)) == seconds


@pytest.mark.parametrize("bad", ["", "   ", "aa:bb", "1:-2", "1:2:3:4"])
def test_parse_timecode_rejects_garbage(bad: str) -> None:
    with pytest.raises(ValueError):
        parse_timecode(bad)
