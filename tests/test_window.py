from datetime import timedelta

import pytest

from taskminder.services.reminders.window import next_instants

from conftest import NOW


def minutes(n):
    return NOW + timedelta(minutes=n)


def instants(window):
    return [candidate.instant for candidate in window]


def test_deadline_stream_from_offset_to_final():
    window = list(next_instants(minutes(120), 60, 15, end=None, now=NOW, count=10))

    assert [c.instant for c in window] == [minutes(60), minutes(75), minutes(90), minutes(105), minutes(120)]
    assert [c.is_final for c in window] == [False, False, False, False, True]


def test_first_candidate_in_the_past_is_clamped_to_now():
    window = next_instants(minutes(30), 60, 15, end=None, now=NOW, count=10)

    assert instants(window) == [NOW, minutes(15), minutes(30)]


def test_stream_stops_after_end():
    window = next_instants(minutes(120), 60, 15, end=minutes(80), now=NOW, count=10)

    assert instants(window) == [minutes(60), minutes(75)]


def test_count_limits_candidates():
    window = next_instants(minutes(600), 60, 15, end=None, now=NOW, count=3)

    assert instants(window) == [minutes(540), minutes(555), minutes(570)]


def test_continuation_after_materialized_instant():
    window = next_instants(minutes(120), 60, 15, end=None, now=NOW, count=10, after=minutes(75))

    assert instants(window) == [minutes(90), minutes(105), minutes(120)]


def test_continuation_after_final_yields_nothing():
    window = next_instants(minutes(120), 60, 15, end=None, now=NOW, count=10, after=minutes(120))

    assert list(window) == []


def test_final_is_first_step_at_or_past_target():
    window = list(next_instants(minutes(50), 60, 20, end=None, now=NOW, count=10))

    assert [c.instant for c in window] == [NOW, minutes(20), minutes(40), minutes(60)]
    assert window[-1].is_final
    assert not any(c.is_final for c in window[:-1])


def test_window_is_restartable():
    window = next_instants(minutes(120), 60, 15, end=None, now=NOW, count=5)

    assert instants(window) == instants(window)


def test_non_positive_interval_rejected():
    with pytest.raises(ValueError):
        next_instants(minutes(120), 60, 0, end=None, now=NOW, count=5)
