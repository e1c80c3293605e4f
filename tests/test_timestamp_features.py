"""
Tests for timestamp feature extraction.

Reference instants (UTC):
- 1710512400000 ms  -> Friday 2024-03-15 14:20
- 2024-06-22 20:00  -> Saturday evening
- 2024-12-01 05:00  -> Sunday early morning
"""

import datetime

import numpy as np
import pandas as pd
import pytest

from tsboost.timestamp_features import (
    N_TIMESTAMP_FEATURES,
    TIMESTAMP_FEATURE_NAMES,
    TimestampFeatures,
    extract_timestamp_features,
    feature_names,
    prepare_timestamp_features,
    timestamp_features_to_array,
)
from tsboost.utils import InputError, InvalidTimestamp


# =============================================================================
# Calendar fields
# =============================================================================

class TestCalendarFields:

    def test_epoch_milliseconds(self):
        f = extract_timestamp_features(1710512400000)
        assert f.hour == 14
        assert f.day_of_week == 5
        assert f.day_of_month == 15
        assert f.month == 3
        assert f.quarter == 1
        assert f.is_night == 0
        assert f.is_weekend == 0

    def test_saturday_evening(self):
        f = extract_timestamp_features("2024-06-22T20:00:00Z")
        assert f.day_of_week == 6
        assert f.is_night == 1
        assert f.is_weekend == 1
        assert f.month == 6
        assert f.quarter == 2

    def test_sunday_early_morning(self):
        f = extract_timestamp_features("2024-12-01T05:00:00Z")
        assert f.day_of_week == 0
        assert f.hour == 5
        assert f.is_night == 1
        assert f.is_weekend == 1
        assert f.month == 12
        assert f.quarter == 4

    def test_monday_is_one(self):
        assert extract_timestamp_features("2024-03-18T12:00:00Z").day_of_week == 1

    @pytest.mark.parametrize(
        "month, quarter",
        [(1, 1), (2, 1), (3, 1), (4, 2), (5, 2), (6, 2),
         (7, 3), (8, 3), (9, 3), (10, 4), (11, 4), (12, 4)],
    )
    def test_quarter(self, month, quarter):
        f = extract_timestamp_features(f"2024-{month:02d}-10T12:00:00Z")
        assert f.month == month
        assert f.quarter == quarter

    @pytest.mark.parametrize(
        "hour, night",
        [(0, 1), (5, 1), (6, 0), (12, 0), (17, 0), (18, 1), (23, 1)],
    )
    def test_night_boundaries(self, hour, night):
        f = extract_timestamp_features(f"2024-03-13T{hour:02d}:30:00Z")
        assert f.hour == hour
        assert f.is_night == night


# =============================================================================
# Cyclical encodings
# =============================================================================

class TestCyclicalEncoding:

    def test_midnight(self):
        f = extract_timestamp_features("2024-03-13T00:00:00Z")
        assert f.hour_sin == pytest.approx(0.0, abs=1e-12)
        assert f.hour_cos == pytest.approx(1.0)

    def test_noon(self):
        f = extract_timestamp_features("2024-03-13T12:00:00Z")
        assert f.hour_sin == pytest.approx(0.0, abs=1e-12)
        assert f.hour_cos == pytest.approx(-1.0)

    def test_six_am(self):
        f = extract_timestamp_features("2024-03-13T06:00:00Z")
        assert f.hour_sin == pytest.approx(1.0)
        assert f.hour_cos == pytest.approx(0.0, abs=1e-12)

    def test_unit_circle(self):
        f = extract_timestamp_features(1710512400000)
        assert f.hour_sin ** 2 + f.hour_cos ** 2 == pytest.approx(1.0)
        assert f.day_of_week_sin ** 2 + f.day_of_week_cos ** 2 == pytest.approx(1.0)
        assert f.month_sin ** 2 + f.month_cos ** 2 == pytest.approx(1.0)

    def test_december_wraps_to_start(self):
        f = extract_timestamp_features("2024-12-15T12:00:00Z")
        assert f.month_sin == pytest.approx(0.0, abs=1e-12)
        assert f.month_cos == pytest.approx(1.0)

    def test_sunday_encoding(self):
        f = extract_timestamp_features("2024-12-01T05:00:00Z")
        assert f.day_of_week_sin == pytest.approx(0.0, abs=1e-12)
        assert f.day_of_week_cos == pytest.approx(1.0)


# =============================================================================
# Input types
# =============================================================================

@pytest.mark.parametrize(
    "instant",
    [
        1710512400000,
        1710512400000.0,
        np.int64(1710512400000),
        "2024-03-15T14:20:00Z",
        "2024-03-15T16:20:00+02:00",
        "2024-03-15 14:20:00",
        datetime.datetime(2024, 3, 15, 14, 20, tzinfo=datetime.timezone.utc),
        datetime.datetime(2024, 3, 15, 14, 20),
        pd.Timestamp("2024-03-15T14:20:00Z"),
        pd.Timestamp("2024-03-15T10:20:00", tz="America/New_York"),
        np.datetime64("2024-03-15T14:20:00"),
    ],
)
def test_equivalent_inputs_give_same_features(instant):
    expected = extract_timestamp_features(1710512400000).to_array()
    np.testing.assert_array_equal(extract_timestamp_features(instant).to_array(), expected)


@pytest.mark.parametrize(
    "value",
    [None, True, False, "not a date", "", float("nan"), float("inf"), pd.NaT,
     np.datetime64("NaT"), [2024, 3, 15]],
)
def test_invalid_timestamps(value):
    with pytest.raises(InvalidTimestamp):
        extract_timestamp_features(value)


def test_invalid_timestamp_is_a_value_error():
    with pytest.raises(ValueError):
        extract_timestamp_features("yesterday-ish")


# =============================================================================
# Vector layout
# =============================================================================

def test_field_order_matches_names():
    assert TimestampFeatures._fields == TIMESTAMP_FEATURE_NAMES
    assert N_TIMESTAMP_FEATURES == 13


def test_to_array_order():
    f = extract_timestamp_features("2024-06-22T20:00:00Z")
    arr = timestamp_features_to_array(f)
    assert arr.shape == (13,)
    assert arr.dtype == float
    assert arr[:7].tolist() == [20, 6, 22, 6, 2, 1, 1]
    assert arr[7] == f.hour_sin
    assert arr[12] == f.month_cos


class TestPrepare:

    def test_shape_without_custom(self):
        X = prepare_timestamp_features(["2024-01-01T00:00:00Z", 1710512400000])
        assert X.shape == (2, 13)
        np.testing.assert_array_equal(X[1], extract_timestamp_features(1710512400000).to_array())

    def test_custom_features_are_appended_in_order(self):
        X = prepare_timestamp_features(
            ["2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"],
            [[25.0, 1.5], [28.0, 2.5]],
        )
        assert X.shape == (2, 15)
        np.testing.assert_array_equal(X[:, 13:], [[25.0, 1.5], [28.0, 2.5]])

    def test_custom_row_count_mismatch(self):
        with pytest.raises(InputError):
            prepare_timestamp_features(["2024-01-01T00:00:00Z"], [[1.0], [2.0]])

    def test_ragged_custom_features(self):
        with pytest.raises(InputError):
            prepare_timestamp_features(
                ["2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"],
                [[1.0, 2.0], [3.0]],
            )

    def test_empty(self):
        assert prepare_timestamp_features([]).shape == (0, 13)

    def test_bad_timestamp_in_batch(self):
        with pytest.raises(InvalidTimestamp):
            prepare_timestamp_features(["2024-01-01T00:00:00Z", None])

    def test_pandas_index(self):
        start = pd.Timestamp("2024-03-04T00:00:00Z")
        index = pd.DatetimeIndex([start + pd.Timedelta(hours=i) for i in range(5)])
        X = prepare_timestamp_features(index)
        np.testing.assert_array_equal(X[:, 0], [0, 1, 2, 3, 4])


def test_feature_names():
    assert feature_names() == list(TIMESTAMP_FEATURE_NAMES)
    assert feature_names(2)[-2:] == ["custom_0", "custom_1"]
    assert feature_names(["temperature"])[-1] == "temperature"
    assert len(feature_names(["a", "b"])) == 15
