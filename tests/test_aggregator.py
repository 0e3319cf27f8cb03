"""Unit tests for the metrics aggregation functions."""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import InvalidArgument
from app.domain.metrics import MetricObservation
from app.services.aggregator import (
    headline_values,
    latest_by_type,
    summarize_activity,
    trend,
)


def _obs(metric_type, value, date, obs_id=None):
    return MetricObservation(
        id=obs_id, metric_type=metric_type, value=value, calculation_date=date,
        class_id="class_4b", user_id="student_101"
    )


def _daily_progress(days):
    """Progress observations for consecutive days, newest first."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [_obs("progress", 10 * i, start + timedelta(days=i)) for i in range(days)]
    return list(reversed(rows))


class TestLatestByType:
    """Test latest_by_type function."""

    def test_empty_input(self):
        assert latest_by_type([]) == {}
        assert latest_by_type(None) == {}

    @pytest.mark.parametrize("order", [(0, 1, 2), (2, 1, 0), (1, 0, 2), (1, 2, 0)])
    def test_latest_date_wins_regardless_of_order(self, order):
        rows = [
            {"metric_type": "engagement", "calculation_date": "2024-01-01", "value": 50},
            {"metric_type": "engagement", "calculation_date": "2024-01-03", "value": 70},
            {"metric_type": "engagement", "calculation_date": "2024-01-02", "value": 60},
        ]
        snapshot = latest_by_type([rows[i] for i in order])

        assert snapshot["engagement"].value == 70

    def test_one_entry_per_type_and_no_invented_types(self, metric_rows):
        snapshot = latest_by_type(metric_rows)

        assert set(snapshot) == {"engagement", "progress", "comprehension"}
        assert snapshot["progress"].value == 45.5
        assert snapshot["comprehension"].value == 88.4

    def test_first_seen_wins_on_equal_dates(self):
        date = datetime(2024, 1, 5, tzinfo=timezone.utc)
        first = _obs("engagement", 10, date, "first")
        second = _obs("engagement", 20, date, "second")

        assert latest_by_type([first, second])["engagement"].id == "first"
        assert latest_by_type([second, first])["engagement"].id == "second"

    def test_invalid_date_never_displaces_valid_entry(self):
        rows = [
            {"id": "valid", "metric_type": "engagement", "calculation_date": "2024-01-01", "value": 50},
            {"id": "broken", "metric_type": "engagement", "calculation_date": "not-a-date", "value": 99},
            {"id": "missing", "metric_type": "engagement", "calculation_date": None, "value": 98},
        ]
        assert latest_by_type(rows)["engagement"].id == "valid"

    def test_valid_date_replaces_earlier_invalid_entry(self):
        rows = [
            {"id": "broken", "metric_type": "engagement", "calculation_date": "garbage", "value": 99},
            {"id": "valid", "metric_type": "engagement", "calculation_date": "2024-01-01", "value": 50},
        ]
        assert latest_by_type(rows)["engagement"].id == "valid"

    def test_idempotent(self, metric_rows):
        assert latest_by_type(metric_rows) == latest_by_type(metric_rows)

    def test_does_not_mutate_input(self, metric_rows):
        before = [dict(row) for row in metric_rows]
        latest_by_type(metric_rows)
        assert metric_rows == before


class TestTrend:
    """Test trend function."""

    def test_window_of_seven_from_ten_presorted(self):
        observations = _daily_progress(10)

        points = trend(observations, "progress", 7)

        assert len(points) == 7
        assert [p.value for p in points] == [30, 40, 50, 60, 70, 80, 90]
        assert points[0].label == "2024-01-04"
        assert points[-1].label == "2024-01-10"

    def test_unsorted_input_still_chronological(self):
        observations = _daily_progress(10)
        shuffled = observations[5:] + observations[:5]

        points = trend(shuffled, "progress", 7)

        assert [p.value for p in points] == [30, 40, 50, 60, 70, 80, 90]

    def test_unknown_metric_type_is_empty(self, metric_rows):
        assert trend(metric_rows, "nonexistent-type", 7) == []

    def test_zero_window_is_empty(self, metric_rows):
        assert trend(metric_rows, "engagement", 0) == []

    def test_negative_window_raises(self, metric_rows):
        with pytest.raises(InvalidArgument):
            trend(metric_rows, "x", -1)

    def test_non_integer_window_raises(self, metric_rows):
        with pytest.raises(InvalidArgument):
            trend(metric_rows, "engagement", 2.5)

    def test_shorter_than_window(self, metric_rows):
        points = trend(metric_rows, "engagement", 7)

        assert [p.value for p in points] == [50, 60, 70]
        assert [p.label for p in points] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_non_numeric_value_falls_back_to_zero(self):
        rows = [{"metric_type": "progress", "calculation_date": "2024-01-01", "value": "n/a"}]

        assert trend(rows, "progress")[0].value == 0.0

    def test_missing_date_sorts_oldest_and_labels_dash(self):
        rows = [
            {"metric_type": "progress", "calculation_date": None, "value": 5},
            {"metric_type": "progress", "calculation_date": "2024-01-02", "value": 20},
        ]
        points = trend(rows, "progress", 7)

        assert [(p.label, p.value) for p in points] == [("-", 5.0), ("2024-01-02", 20.0)]

    def test_custom_label_format(self, metric_rows):
        points = trend(metric_rows, "engagement", 1, label_format="%d/%m/%Y")
        assert points[0].label == "03/01/2024"

    def test_idempotent(self, metric_rows):
        assert trend(metric_rows, "engagement") == trend(metric_rows, "engagement")


class TestHeadlineValues:
    """Test headline_values function."""

    def test_rounds_half_up_and_defaults_to_zero(self):
        snapshot = latest_by_type([
            {"metric_type": "engagement", "calculation_date": "2024-01-01", "value": 72.5},
            {"metric_type": "progress", "calculation_date": "2024-01-01", "value": 33.2},
        ])

        values = headline_values(snapshot, ["engagement", "progress", "participation"])

        assert values == {"engagement": 73.0, "progress": 33.0, "participation": 0.0}


class TestSummarizeActivity:
    """Test summarize_activity function."""

    def test_empty(self):
        summary = summarize_activity([])

        assert summary.total_activities == 0
        assert summary.average_score is None
        assert summary.by_type == {}

    def test_totals_and_breakdown(self, activity_rows):
        summary = summarize_activity(activity_rows)

        assert summary.total_activities == 3
        assert summary.total_duration_seconds == 900.0
        assert summary.average_score == 70.0
        assert summary.average_completion == 75.0
        assert summary.last_activity_at == datetime(2024, 1, 3, 10, tzinfo=timezone.utc)

        quiz = summary.by_type["quiz_attempt"]
        assert quiz.count == 2
        assert quiz.total_duration_seconds == 300.0
        assert quiz.average_score == 70.0

        video = summary.by_type["video_watch"]
        assert video.count == 1
        assert video.average_score is None
