from datetime import datetime, timedelta, timezone

import pytest

from schoolcbt.application.scheduling import availability as av

WINDOW_START = "2024-01-01T09:00:00Z"
WINDOW_END = "2024-01-01T11:00:00Z"


def make_test(test_id=1, status="scheduled", batches=(), subject="Mathematics", class_name="JSS 1"):
    return av.TestSnapshot(
        id=test_id,
        title="Continuous Assessment 1 (CA 1)",
        subject=subject,
        class_name=class_name,
        status=status,
        batches=tuple(batches),
    )


def batch(name="Batch A", start=WINDOW_START, end=WINDOW_END, students=("u1",)):
    return av.BatchSnapshot(name=name, start=start, end=end, students=tuple(students))


class TestIsAvailable:
    def test_student_inside_window(self):
        t = make_test(batches=[batch()])
        assert av.is_available(t, "u1", "2024-01-01T10:00:00Z") is True

    def test_after_window_closes(self):
        t = make_test(batches=[batch()])
        assert av.is_available(t, "u1", "2024-01-01T12:00:00Z") is False
        assert av.resolve_availability(t, "u1", "2024-01-01T12:00:00Z") is av.Availability.CLOSED

    def test_student_not_in_any_batch(self):
        t = make_test(batches=[batch()])
        assert av.is_available(t, "u2", "2024-01-01T10:00:00Z") is False
        assert av.resolve_availability(t, "u2", "2024-01-01T10:00:00Z") is av.Availability.NO_BATCH

    def test_no_batches_is_never_available(self):
        t = make_test(batches=[])
        for now in ("2000-01-01T00:00:00Z", WINDOW_START, "2999-01-01T00:00:00Z"):
            assert av.is_available(t, "u1", now) is False

    @pytest.mark.parametrize("now", [WINDOW_START, WINDOW_END])
    def test_window_bounds_are_inclusive(self, now):
        assert av.is_available(make_test(batches=[batch()]), "u1", now) is True

    def test_before_window_opens(self):
        t = make_test(batches=[batch()])
        assert av.resolve_availability(t, "u1", "2024-01-01T08:59:59Z") is av.Availability.NOT_STARTED

    def test_first_listed_batch_wins(self):
        early = batch("Early", "2024-01-01T07:00:00Z", "2024-01-01T08:00:00Z", students=("u1",))
        late = batch("Late", WINDOW_START, WINDOW_END, students=("u1",))
        t = make_test(batches=[early, late])
        assert av.find_student_batch(t, "u1").name == "Early"
        assert av.is_available(t, "u1", "2024-01-01T10:00:00Z") is False

    def test_unreadable_timestamps_are_unavailable(self):
        t = make_test(batches=[batch(start="not a date")])
        assert av.is_available(t, "u1", "2024-01-01T10:00:00Z") is False
        assert av.resolve_availability(t, "u1", "2024-01-01T10:00:00Z") is av.Availability.INVALID_WINDOW

    def test_unreadable_now_is_unavailable(self):
        assert av.is_available(make_test(batches=[batch()]), "u1", "garbage") is False

    def test_window_at_calendar_limits_is_unavailable(self):
        t = make_test(batches=[batch(end="9999-12-31T23:30:00-01:00")])
        assert av.resolve_availability(t, "u1", "2024-01-01T10:00:00Z") is av.Availability.INVALID_WINDOW
        assert av.is_available(make_test(batches=[batch()]), "u1", "0001-01-01T00:30:00+01:00") is False

    def test_accepts_datetimes_and_treats_naive_as_utc(self):
        t = make_test(batches=[batch(start=datetime(2024, 1, 1, 9), end=datetime(2024, 1, 1, 11))])
        lagos = timezone(timedelta(hours=1))
        assert av.is_available(t, "u1", datetime(2024, 1, 1, 11, 30, tzinfo=lagos)) is True
        assert av.is_available(t, "u1", datetime(2024, 1, 1, 12, 30, tzinfo=lagos)) is False

    def test_repeated_calls_agree(self):
        t = make_test(batches=[batch()])
        answers = {av.is_available(t, "u1", "2024-01-01T10:00:00Z") for _ in range(5)}
        assert answers == {True}

    def test_defaults_to_current_time(self):
        now = datetime.now(timezone.utc)
        t = make_test(batches=[batch(start=now - timedelta(hours=1), end=now + timedelta(hours=1))])
        assert av.is_available(t, "u1") is True


class TestToTimestamp:
    def test_z_suffix(self):
        assert av.to_timestamp("2024-01-01T09:00:00Z") == datetime(2024, 1, 1, 9, tzinfo=timezone.utc)

    def test_offset_is_normalised_to_utc(self):
        parsed = av.to_timestamp("2024-01-01T10:00:00+01:00")
        assert parsed == datetime(2024, 1, 1, 9, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "tomorrow", 12345])
    def test_invalid_values(self, value):
        assert av.to_timestamp(value) is None

    @pytest.mark.parametrize("value", ["0001-01-01T00:30:00+01:00", "9999-12-31T23:30:00-01:00"])
    def test_out_of_range_after_utc_shift(self, value):
        assert av.to_timestamp(value) is None


class TestFilterVisibleTests:
    def test_only_scheduled_tests_with_a_batch_for_the_student(self):
        visible = make_test(1, batches=[batch()])
        draft = make_test(2, status="draft", batches=[batch()])
        approved = make_test(3, status="approved", batches=[batch()])
        other_student = make_test(4, batches=[batch(students=("u2",))])
        no_batches = make_test(5)

        result = av.filter_visible_tests([visible, draft, approved, other_student, no_batches], "u1")
        assert [t.id for t in result] == [1]

    def test_visible_regardless_of_window(self):
        # Listing is about assignment; the window is checked when the test is opened
        closed = make_test(1, batches=[batch(start="2000-01-01T00:00:00Z", end="2000-01-01T01:00:00Z")])
        assert av.filter_visible_tests([closed], "u1") == [closed]

    def test_preserves_input_order(self):
        tests = [make_test(i, batches=[batch()]) for i in (5, 2, 9, 1)]
        assert [t.id for t in av.filter_visible_tests(tests, "u1")] == [5, 2, 9, 1]

    def test_subject_and_class_filters(self):
        maths = make_test(1, batches=[batch()])
        english = make_test(2, subject="English", batches=[batch()])
        jss2 = make_test(3, class_name="JSS 2", batches=[batch()])
        tests = [maths, english, jss2]

        assert [t.id for t in av.filter_visible_tests(tests, "u1", subject_filter="English")] == [2]
        assert [t.id for t in av.filter_visible_tests(tests, "u1", class_filter="JSS 2")] == [3]
        assert [
            t.id for t in av.filter_visible_tests(tests, "u1", "Mathematics", "JSS 1")
        ] == [1]
        assert av.filter_visible_tests(tests, "u1", "Physics", "") == []

    def test_empty_filters_match_everything(self):
        tests = [make_test(1, batches=[batch()]), make_test(2, subject="English", batches=[batch()])]
        assert len(av.filter_visible_tests(tests, "u1", "", "")) == 2
