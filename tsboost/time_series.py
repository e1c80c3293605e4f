"""
Time-series helpers built on top of ``GradientBooster``.

Two forecasting set-ups are provided:

- lag windows: each target is regressed on the ``lag`` values before it,
  and the future is produced recursively by feeding predictions back;
- calendar features: each target is regressed on the features of its
  timestamp (plus optional custom features).

Both train on a chronological prefix and evaluate on the points after it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from .booster import GradientBooster
from .timestamp_features import TimestampLike
from .utils import ConfigError, InputError, check_array, regression_metrics


@dataclass
class ForecastResult:
    """
    Outcome of a train-then-forecast run.

    Attributes
    ----------
    model : GradientBooster
        The fitted regression booster.
    predictions : np.ndarray
        Forecast values, aligned with ``truth``.
    truth : np.ndarray
        Observed values over the forecast horizon.
    metrics : dict
        ``regression_metrics(truth, predictions)``.
    """
    model: GradientBooster
    predictions: np.ndarray
    truth: np.ndarray
    metrics: Dict[str, float] = field(default_factory=dict)


def windowed_supervised(series: Sequence[float], lag: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Turn a series into a supervised set of lag windows.

    Row ``i`` of ``X`` holds ``series[i:i + lag]`` and ``y[i]`` is
    ``series[i + lag]``. A series of length ``<= lag`` gives empty arrays.

    Parameters
    ----------
    series : sequence of float
        Observations in chronological order.
    lag : int
        Window length, at least 1.

    Returns
    -------
    X : np.ndarray of shape (len(series) - lag, lag)
    y : np.ndarray of shape (len(series) - lag,)
    """
    if lag < 1:
        raise ConfigError(f"lag must be at least 1, got {lag}")
    values = np.asarray(series, dtype=float).ravel()
    n_windows = max(0, len(values) - lag)
    if n_windows == 0:
        return np.empty((0, lag)), np.empty(0)

    X = np.lib.stride_tricks.sliding_window_view(values, lag)[:n_windows].copy()
    y = values[lag:].copy()
    return X, y


def recursive_forecast(model: GradientBooster, seed: Sequence[float], steps: int) -> np.ndarray:
    """
    Forecast ``steps`` values, feeding each prediction back as input.

    Parameters
    ----------
    model : GradientBooster
        Booster trained on windows of length ``len(seed)``.
    seed : sequence of float
        The last known values, oldest first.
    steps : int
        Number of values to produce.

    Returns
    -------
    predictions : np.ndarray of shape (steps,)
    """
    window = check_array(seed, ensure_2d=False).ravel().tolist()
    lag = len(window)
    predictions = []
    for _ in range(steps):
        next_value = model.predict_single(window[-lag:])
        predictions.append(next_value)
        window.append(next_value)
    return np.asarray(predictions, dtype=float)


def holdout_split(n_samples: int, train_len: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Chronological single holdout: first ``train_len`` indices, then the rest.
    """
    if not 0 < train_len <= n_samples:
        raise ConfigError(
            f"train_len must be in [1, {n_samples}], got {train_len}"
        )
    indices = np.arange(n_samples)
    return indices[:train_len], indices[train_len:]


def forecast_windowed(
    series: Sequence[float],
    lag: int,
    train_len: int,
    forecast_len: int,
    **params: Any,
) -> ForecastResult:
    """
    Fit a lag-window regressor on the start of a series and forecast on.

    The model is trained on windows of ``series[:train_len]`` and then
    forecasts ``forecast_len`` values recursively, starting from the last
    ``lag`` known values. Extra keyword arguments are booster
    hyperparameters; ``task`` is always forced to regression.
    """
    values = np.asarray(series, dtype=float).ravel()
    if not lag < train_len <= len(values):
        raise ConfigError(
            f"train_len must be in [{lag + 1}, {len(values)}] for lag={lag}, got {train_len}"
        )

    X, y = windowed_supervised(values[:train_len], lag)
    model = GradientBooster(**{**params, 'task': 'regression'})
    model.fit(X, y)

    predictions = recursive_forecast(model, values[train_len - lag:train_len], forecast_len)
    truth = values[train_len:train_len + forecast_len]
    predictions = predictions[:len(truth)]
    return ForecastResult(
        model=model,
        predictions=predictions,
        truth=truth,
        metrics=regression_metrics(truth, predictions),
    )


def forecast_with_timestamps(
    timestamps: Sequence[TimestampLike],
    values: Sequence[float],
    train_len: int,
    *,
    custom_features: Optional[Sequence[Sequence[float]]] = None,
    **params: Any,
) -> ForecastResult:
    """
    Fit a calendar-feature regressor on a prefix and predict the remainder.

    Parameters
    ----------
    timestamps : sequence of timestamp-like
        One instant per observation.
    values : sequence of float
        Observations, aligned with ``timestamps``.
    train_len : int
        Number of leading points used for training.
    custom_features : sequence of sequences of float, optional
        Extra per-point features, aligned with ``timestamps``.
    **params
        Booster hyperparameters; ``task`` is always forced to regression.

    Returns
    -------
    result : ForecastResult
    """
    timestamps = list(timestamps)
    values = np.asarray(values, dtype=float).ravel()
    if len(timestamps) != len(values):
        raise InputError(
            f"Got {len(timestamps)} timestamps but {len(values)} values."
        )
    if custom_features is not None and len(custom_features) != len(values):
        raise InputError(
            f"custom_features has {len(custom_features)} rows, expected {len(values)}."
        )
    train_idx, test_idx = holdout_split(len(values), train_len)

    train_custom, test_custom = None, None
    if custom_features is not None:
        train_custom = [custom_features[i] for i in train_idx]
        test_custom = [custom_features[i] for i in test_idx]

    model = GradientBooster(**{**params, 'task': 'regression'})
    model.fit_with_timestamps(
        [timestamps[i] for i in train_idx], values[train_idx], train_custom
    )

    predictions = model.predict_batch_with_timestamps(
        [timestamps[i] for i in test_idx], test_custom
    )
    truth = values[test_idx]
    return ForecastResult(
        model=model,
        predictions=predictions,
        truth=truth,
        metrics=regression_metrics(truth, predictions),
    )


__all__ = [
    'ForecastResult',
    'windowed_supervised',
    'recursive_forecast',
    'holdout_split',
    'forecast_windowed',
    'forecast_with_timestamps',
]
