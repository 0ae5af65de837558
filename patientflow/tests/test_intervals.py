from datetime import time

import pytest

from patientflow.exceptions import ValidationError
from patientflow.services.intervals import (
    TimeInterval,
    contains,
    covers,
    duration_minutes,
    overlaps,
    parse_time,
    validate_interval,
)


def iv(start, end):
    return TimeInterval.of(start, end)


@pytest.mark.parametrize('other, expected', [
    (('09:30', '10:30'), True),
    (('08:00', '09:30'), True),
    (('09:15', '09:45'), True),
    (('10:00', '11:00'), False),
    (('08:00', '09:00'), False),
])
def test_overlap_is_half_open(other, expected):
    base = iv('09:00', '10:00')
    assert overlaps(base, iv(*other)) is expected
    assert overlaps(iv(*other), base) is expected


def test_validate_interval_rejects_empty_and_reversed():
    with pytest.raises(ValidationError):
        validate_interval(time(10, 0), time(10, 0))
    with pytest.raises(ValidationError):
        validate_interval(time(11, 0), time(10, 0))
    with pytest.raises(ValidationError):
        validate_interval(None, time(10, 0))
    validate_interval(time(9, 0), time(9, 1))


def test_parse_time_formats():
    assert parse_time('09:30') == time(9, 30)
    assert parse_time(' 14:05:10 ') == time(14, 5, 10)
    assert parse_time(time(8, 0)) == time(8, 0)
    for bad in ('', '25:00', '9h30', None):
        with pytest.raises(ValidationError):
            parse_time(bad)


def test_of_rejects_start_after_end():
    with pytest.raises(ValidationError):
        TimeInterval.of('10:00', '09:00')


def test_covers_includes_start_excludes_end():
    slot = iv('09:00', '10:00')
    assert covers(slot, time(9, 0))
    assert covers(slot, time(9, 59, 59))
    assert not covers(slot, time(10, 0))


def test_contains_and_duration():
    day = iv('08:00', '17:00')
    assert contains(day, iv('09:00', '10:00'))
    assert contains(day, day)
    assert not contains(iv('09:00', '10:00'), day)
    assert duration_minutes(iv('09:15', '10:45')) == 90
    assert str(iv('09:00', '10:00')) == '[09:00, 10:00)'
