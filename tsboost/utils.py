"""
Utility functions for input validation, metrics and logging.

This module provides the exception taxonomy of the package together with
the validation helpers used at the API boundary of the booster.
All numeric work is done with NumPy only.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np


# =============================================================================
# Type Aliases
# =============================================================================

ArrayLike = Union[np.ndarray, List[Any], Tuple[Any, ...]]


# =============================================================================
# Custom Exceptions
# =============================================================================

class InputError(ValueError):
    """
    Exception raised for empty or mis-shaped training/prediction data.

    Raised at the API boundary (``fit`` / ``predict``) so that no partially
    built ensemble is ever left behind.
    """
    pass


class ConfigError(ValueError):
    """Exception raised for an invalid hyperparameter or unknown task."""
    pass


class UntrainedModelError(ValueError):
    """
    Exception raised when a model is used before fitting.

    This exception is raised when calling any predict method before
    ``fit`` has produced at least one tree.
    """
    pass


class InvalidTimestamp(ValueError):
    """Exception raised when a value cannot be resolved to a UTC instant."""
    pass


class ModelFormatError(ValueError):
    """Exception raised when an exported model blob cannot be imported."""
    pass


class FeatureMismatchWarning(UserWarning):
    """
    Warning emitted when a prediction vector is shorter than a feature
    index referenced by a tree. The affected tree contributes zero.
    """
    pass


# =============================================================================
# Input Validation Functions
# =============================================================================

def _check_rectangular(X: Sequence[Any]) -> None:
    """Reject ragged nested sequences before NumPy sees them."""
    widths = set()
    for row in X:
        if isinstance(row, (list, tuple, np.ndarray)):
            widths.add(len(row))
        else:
            widths.add(None)
    if len(widths) > 1:
        raise InputError("All rows must have the same number of features.")


def check_array(
    X: ArrayLike,
    *,
    ensure_2d: bool = True,
    dtype: type = float,
    copy: bool = False,
) -> np.ndarray:
    """
    Validate and convert input array to numpy array.

    Parameters
    ----------
    X : array-like
        Input data to validate. Nested lists, tuples, numpy arrays and
        pandas objects (through ``.values``) are accepted.
    ensure_2d : bool, default=True
        Whether to reshape a 1D input into a single column, and reject
        anything that is not 2D after that.
    dtype : type, default=float
        Desired dtype of the output array.
    copy : bool, default=False
        Whether to force a copy of the input.

    Returns
    -------
    X_converted : np.ndarray
        Validated and converted array.

    Raises
    ------
    InputError
        If the array is empty, ragged, non-numeric or contains NaN/inf.
    """
    if isinstance(X, np.ndarray):
        X_out = X.copy() if copy else X
    elif isinstance(X, (list, tuple)):
        _check_rectangular(X)
        try:
            X_out = np.array(X, dtype=dtype)
        except (TypeError, ValueError) as e:
            raise InputError(f"Cannot convert input to a numeric array: {e}") from e
    else:
        try:
            if hasattr(X, 'values'):
                X_out = np.asarray(X.values, dtype=dtype)
            else:
                X_out = np.asarray(X, dtype=dtype)
        except (TypeError, ValueError) as e:
            raise InputError(
                f"Cannot convert input of type {type(X).__name__} to numpy array: {e}"
            ) from e

    if X_out.dtype != dtype:
        try:
            X_out = X_out.astype(dtype)
        except (TypeError, ValueError) as e:
            raise InputError(f"Cannot convert input to a numeric array: {e}") from e

    if X_out.ndim == 1 and ensure_2d:
        X_out = X_out.reshape(-1, 1)
    if ensure_2d and X_out.ndim != 2:
        raise InputError(f"Expected 2D array, got {X_out.ndim}D array instead.")

    if X_out.size == 0:
        raise InputError("Input array cannot be empty.")

    if not np.all(np.isfinite(X_out)):
        raise InputError("Input array contains NaN or infinite values.")

    return X_out


def check_X_y(X: ArrayLike, y: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Validate X and y arrays for supervised learning.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        Feature matrix.
    y : array-like of shape (n_samples,)
        Target values.

    Returns
    -------
    X : np.ndarray
        Validated feature matrix.
    y : np.ndarray
        Validated target array.

    Raises
    ------
    InputError
        If X is empty or ragged, or X and y have incompatible shapes.
    """
    X = check_array(X, ensure_2d=True)
    y = check_array(y, ensure_2d=False)

    if y.ndim == 2 and y.shape[1] == 1:
        y = y.ravel()
    elif y.ndim != 1:
        raise InputError(f"y has shape {y.shape}, expected 1D array.")

    if X.shape[0] != y.shape[0]:
        raise InputError(
            f"Found input variables with inconsistent numbers of samples: "
            f"X has {X.shape[0]} samples, y has {y.shape[0]} samples."
        )

    return X, y


def check_is_fitted(estimator: Any) -> None:
    """
    Check that an estimator has completed ``fit`` (or been loaded).

    A model without trees counts as unfitted.

    Raises
    ------
    UntrainedModelError
        If the estimator is not fitted or holds no trees.
    """
    if not getattr(estimator, 'is_fitted_', False) or not getattr(estimator, 'trees_', None):
        raise UntrainedModelError(
            f"This {type(estimator).__name__} instance is not fitted yet. "
            "Call 'fit' with appropriate arguments before using this estimator."
        )


# =============================================================================
# Data Splitting Functions
# =============================================================================

def train_test_split(
    X: ArrayLike,
    y: ArrayLike,
    *,
    test_size: float = 0.2,
    random_state: Optional[int] = None,
    shuffle: bool = True,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Split arrays into a single train/holdout pair.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        Features to split.
    y : array-like of shape (n_samples,)
        Target to split.
    test_size : float, default=0.2
        Proportion of the dataset to include in the holdout split.
    random_state : int or None, default=None
        Random seed for reproducibility.
    shuffle : bool, default=True
        Whether to shuffle before splitting. Keep False for time series.

    Returns
    -------
    X_train, X_test, y_train, y_test : np.ndarray
    """
    X, y = check_X_y(X, y)
    if not 0 < test_size < 1:
        raise ConfigError(f"test_size must be in (0, 1), got {test_size}")

    n_samples = X.shape[0]
    n_test = int(n_samples * test_size)
    n_train = n_samples - n_test

    indices = np.arange(n_samples)
    if shuffle:
        np.random.default_rng(random_state).shuffle(indices)

    train_indices = indices[:n_train]
    test_indices = indices[n_train:]
    return X[train_indices], X[test_indices], y[train_indices], y[test_indices]


# =============================================================================
# Metrics Functions
# =============================================================================

def accuracy_score(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    """Compute classification accuracy of hard labels."""
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)

    if y_true.shape != y_pred.shape:
        raise InputError(
            f"Shape mismatch: y_true has shape {y_true.shape}, "
            f"y_pred has shape {y_pred.shape}"
        )

    return float(np.mean(y_true == y_pred))


def log_loss(
    y_true: ArrayLike,
    y_pred_proba: ArrayLike,
    *,
    eps: float = 1e-15,
) -> float:
    """
    Compute binary log loss.

    Parameters
    ----------
    y_true : array-like of shape (n_samples,)
        True labels in {0, 1}.
    y_pred_proba : array-like of shape (n_samples,)
        Predicted probabilities of the positive class.
    eps : float, default=1e-15
        Small constant for numerical stability.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred_proba = np.clip(np.asarray(y_pred_proba, dtype=float), eps, 1 - eps)
    loss = -np.mean(
        y_true * np.log(y_pred_proba) + (1 - y_true) * np.log(1 - y_pred_proba)
    )
    return float(loss)


def classification_metrics(
    y_true: ArrayLike,
    y_pred_proba: ArrayLike,
    *,
    threshold: float = 0.5,
) -> Dict[str, Any]:
    """
    Compute accuracy, precision, recall, F1 and confusion counts.

    Probabilities ``>= threshold`` are labelled 1. Ratios with an empty
    denominator are reported as 0.0.

    Returns
    -------
    metrics : dict
        Keys ``accuracy``, ``precision``, ``recall``, ``f1`` and ``confusion``
        (a dict with ``tp``, ``fp``, ``tn``, ``fn``).
    """
    y_true = np.asarray(y_true).astype(int)
    labels = (np.asarray(y_pred_proba, dtype=float) >= threshold).astype(int)

    tp = int(np.sum((y_true == 1) & (labels == 1)))
    fp = int(np.sum((y_true == 0) & (labels == 1)))
    tn = int(np.sum((y_true == 0) & (labels == 0)))
    fn = int(np.sum((y_true == 1) & (labels == 0)))

    total = tp + fp + tn + fn
    accuracy = (tp + tn) / total if total else 0.0
    precision = tp / (tp + fp) if (tp + fp) else 0.0
    recall = tp / (tp + fn) if (tp + fn) else 0.0
    f1 = 2 * precision * recall / (precision + recall) if (precision + recall) else 0.0

    return {
        "accuracy": accuracy,
        "precision": precision,
        "recall": recall,
        "f1": f1,
        "confusion": {"tp": tp, "fp": fp, "tn": tn, "fn": fn},
    }


def mean_squared_error(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    """Compute mean squared error."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    return float(np.mean((y_true - y_pred) ** 2))


def mean_absolute_error(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    """Compute mean absolute error."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    return float(np.mean(np.abs(y_true - y_pred)))


def r2_score(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    """
    Compute R-squared (coefficient of determination).

    Returns 0.0 when the targets have no variance.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    ss_res = np.sum((y_true - y_pred) ** 2)
    ss_tot = np.sum((y_true - np.mean(y_true)) ** 2)

    if ss_tot <= 1e-8:
        return 0.0

    return float(1 - ss_res / ss_tot)


def regression_metrics(y_true: ArrayLike, y_pred: ArrayLike) -> Dict[str, float]:
    """
    Compute the regression report used for holdout forecasts.

    Returns
    -------
    metrics : dict
        ``mae``, ``mse``, ``rmse``, ``mape`` (percent, denominators floored
        at 1e-8), ``r2``, ``bias`` (mean of prediction minus truth) and
        ``max_ae``. All zero for empty inputs.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    if y_true.size == 0:
        return {
            "mae": 0.0, "mse": 0.0, "rmse": 0.0, "mape": 0.0,
            "r2": 0.0, "bias": 0.0, "max_ae": 0.0,
        }

    errors = y_pred - y_true
    abs_errors = np.abs(errors)
    mse = float(np.mean(errors ** 2))

    return {
        "mae": float(np.mean(abs_errors)),
        "mse": mse,
        "rmse": float(np.sqrt(mse)),
        "mape": float(100 * np.mean(abs_errors / np.maximum(1e-8, np.abs(y_true)))),
        "r2": r2_score(y_true, y_pred),
        "bias": float(np.mean(errors)),
        "max_ae": float(np.max(abs_errors)),
    }


# =============================================================================
# Logging Utilities
# =============================================================================

def log_message(message: str, *, verbose: int = 0) -> None:
    """
    Print a log message if verbose level is sufficient.

    Parameters
    ----------
    message : str
        Message to print.
    verbose : int, default=0
        Verbosity level. Message is printed if verbose >= 1.
    """
    if verbose >= 1:
        print(f"[tsboost] {message}")


def log_training_progress(
    iteration: int,
    total_iterations: int,
    metric_value: float,
    *,
    verbose: int = 0,
    metric_name: str = "loss",
) -> None:
    """
    Log training progress.

    Parameters
    ----------
    iteration : int
        Current round number (1-based).
    total_iterations : int
        Total number of rounds.
    metric_value : float
        Current metric value.
    verbose : int, default=0
        Verbosity level.
    metric_name : str, default="loss"
        Name of the metric being tracked.
    """
    if verbose >= 1:
        progress = (iteration / total_iterations) * 100 if total_iterations else 100.0
        print(
            f"[tsboost] Round {iteration}/{total_iterations} "
            f"({progress:.1f}%) - {metric_name}: {metric_value:.6f}"
        )
