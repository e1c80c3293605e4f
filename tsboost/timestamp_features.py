"""
Calendar features derived from timestamps.

Every instant is resolved to a UTC ``pandas.Timestamp`` and decomposed into
13 numeric features: raw calendar fields, two binary flags and sin/cos
encodings of the periodic fields so that e.g. 23h and 0h end up close
together. Caller-provided features are appended after those 13 columns.
"""

from __future__ import annotations

import datetime
from typing import Any, List, NamedTuple, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .utils import InputError, InvalidTimestamp


TimestampLike = Union[int, float, str, datetime.datetime, pd.Timestamp, np.datetime64]

TIMESTAMP_FEATURE_NAMES = (
    'hour',
    'day_of_week',
    'day_of_month',
    'month',
    'quarter',
    'is_night',
    'is_weekend',
    'hour_sin',
    'hour_cos',
    'day_of_week_sin',
    'day_of_week_cos',
    'month_sin',
    'month_cos',
)

N_TIMESTAMP_FEATURES = len(TIMESTAMP_FEATURE_NAMES)


# =============================================================================
# Feature Record
# =============================================================================

class TimestampFeatures(NamedTuple):
    """
    Calendar decomposition of one instant (UTC).

    ``day_of_week`` counts from 0 = Sunday. The field order is the column
    order of the feature matrix.
    """
    hour: int
    day_of_week: int
    day_of_month: int
    month: int
    quarter: int
    is_night: int
    is_weekend: int
    hour_sin: float
    hour_cos: float
    day_of_week_sin: float
    day_of_week_cos: float
    month_sin: float
    month_cos: float

    def to_array(self) -> np.ndarray:
        return np.array(self, dtype=float)


# =============================================================================
# Parsing
# =============================================================================

def to_utc_timestamp(value: Any) -> pd.Timestamp:
    """
    Resolve a timestamp-like value to a tz-aware UTC ``pandas.Timestamp``.

    Numbers are milliseconds since the Unix epoch. Naive datetimes and
    strings without an offset are read as UTC.

    Raises
    ------
    InvalidTimestamp
        For ``None``, booleans, NaN/NaT and anything pandas cannot parse.
    """
    if value is None or isinstance(value, (bool, np.bool_)):
        raise InvalidTimestamp(f"Not a timestamp: {value!r}")
    is_number = isinstance(value, (int, float, np.integer, np.floating))
    if is_number and not np.isfinite(value):
        raise InvalidTimestamp(f"Not a finite epoch value: {value!r}")

    try:
        if is_number:
            ts = pd.to_datetime(value, unit='ms', utc=True)
        else:
            ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise InvalidTimestamp(f"Cannot parse timestamp {value!r}: {e}") from e

    if pd.isna(ts):
        raise InvalidTimestamp(f"Not a timestamp: {value!r}")

    if ts.tzinfo is None:
        return ts.tz_localize('UTC')
    return ts.tz_convert('UTC')


# =============================================================================
# Extraction
# =============================================================================

def extract_timestamp_features(value: TimestampLike) -> TimestampFeatures:
    """
    Decompose one instant into its 13 calendar features.

    Parameters
    ----------
    value : int, float, str, datetime, pandas.Timestamp or numpy.datetime64
        The instant; numbers are epoch milliseconds.

    Returns
    -------
    features : TimestampFeatures

    Examples
    --------
    >>> f = extract_timestamp_features("2024-06-22T20:00:00Z")
    >>> f.day_of_week, f.is_night, f.is_weekend
    (6, 1, 1)
    """
    ts = to_utc_timestamp(value)

    hour = int(ts.hour)
    # pandas counts Monday=0; shift so that Sunday=0
    day_of_week = (int(ts.dayofweek) + 1) % 7
    month = int(ts.month)

    hour_angle = 2 * np.pi * hour / 24
    dow_angle = 2 * np.pi * day_of_week / 7
    month_angle = 2 * np.pi * month / 12

    return TimestampFeatures(
        hour=hour,
        day_of_week=day_of_week,
        day_of_month=int(ts.day),
        month=month,
        quarter=(month - 1) // 3 + 1,
        is_night=int(hour >= 18 or hour < 6),
        is_weekend=int(day_of_week in (0, 6)),
        hour_sin=float(np.sin(hour_angle)),
        hour_cos=float(np.cos(hour_angle)),
        day_of_week_sin=float(np.sin(dow_angle)),
        day_of_week_cos=float(np.cos(dow_angle)),
        month_sin=float(np.sin(month_angle)),
        month_cos=float(np.cos(month_angle)),
    )


def timestamp_features_to_array(features: TimestampFeatures) -> np.ndarray:
    """Flatten a feature record into the fixed 13-column order."""
    return features.to_array()


def prepare_timestamp_features(
    timestamps: Sequence[TimestampLike],
    custom_features: Optional[Sequence[Sequence[float]]] = None,
) -> np.ndarray:
    """
    Build the feature matrix for a sequence of instants.

    Parameters
    ----------
    timestamps : sequence of timestamp-like
        One instant per row.
    custom_features : sequence of sequences of float, optional
        Extra per-row features appended after the 13 calendar columns, in
        the given order.

    Returns
    -------
    X : np.ndarray of shape (n_timestamps, 13 + n_custom)

    Raises
    ------
    InvalidTimestamp
        If any instant cannot be parsed.
    InputError
        If ``custom_features`` does not have one uniform-width row per
        timestamp.
    """
    rows = [extract_timestamp_features(ts).to_array() for ts in timestamps]
    if rows:
        X = np.vstack(rows)
    else:
        X = np.empty((0, N_TIMESTAMP_FEATURES))

    if custom_features is None:
        return X

    if len(custom_features) != X.shape[0]:
        raise InputError(
            f"custom_features has {len(custom_features)} rows, "
            f"expected one per timestamp ({X.shape[0]})."
        )
    if X.shape[0] == 0:
        return X

    try:
        custom = np.array(custom_features, dtype=float)
    except (TypeError, ValueError) as e:
        raise InputError(
            f"custom_features must be a rectangular numeric table: {e}"
        ) from e
    if custom.ndim == 1:
        custom = custom.reshape(-1, 1)
    if custom.ndim != 2:
        raise InputError(f"custom_features must be 2D, got {custom.ndim}D.")

    return np.hstack([X, custom])


def feature_names(custom: Union[int, Sequence[str], None] = None) -> List[str]:
    """
    Column names of a matrix built by ``prepare_timestamp_features``.

    ``custom`` is either the list of custom column names or their count, in
    which case they are labelled ``custom_0``, ``custom_1``, ...
    """
    if custom is None:
        custom = []
    elif isinstance(custom, int):
        custom = [f"custom_{i}" for i in range(custom)]
    return list(TIMESTAMP_FEATURE_NAMES) + list(custom)


__all__ = [
    'TIMESTAMP_FEATURE_NAMES',
    'N_TIMESTAMP_FEATURES',
    'TimestampFeatures',
    'TimestampLike',
    'to_utc_timestamp',
    'extract_timestamp_features',
    'timestamp_features_to_array',
    'prepare_timestamp_features',
    'feature_names',
]
