"""
tsboost - second-order gradient boosted trees with timestamp features.

This package provides a small, standalone implementation of Newton
gradient boosting with zero sklearn dependencies, together with a
deterministic timestamp -> feature-vector transform for time-driven
prediction.

Features:
- Exact greedy split search over sorted feature values
- L2-regularized leaf weights and gamma split pruning
- Seeded row and per-tree column subsampling
- Binary classification (logistic) and regression (squared error)
- Split-gain feature importance
- 13 UTC calendar features with cyclical sin/cos encodings
- JSON model export/import with bit-identical predictions
- Chronological holdout forecasting helpers

Example usage:
    >>> from tsboost import GradientBooster
    >>> import pandas as pd
    >>>
    >>> stamps = pd.date_range("2024-03-01", periods=24 * 14, freq="h", tz="UTC")
    >>> y = [1.0 if (t.hour >= 18 or t.hour < 6) else 0.0 for t in stamps]
    >>> model = GradientBooster(num_rounds=100, max_depth=5)
    >>> model.fit_with_timestamps(list(stamps), y)
    >>> model.predict_with_timestamp("2024-03-20T20:00:00Z") > 0.5
    True
"""

__version__ = "0.1.0"
__author__ = "tsboost Contributors"

# Core estimator
from .booster import GradientBooster

# Tree module
from .tree import (
    Leaf,
    Split,
    Tree,
    SplitInfo,
    FeatureImportance,
    TreeBuilder,
)

# Loss functions
from .loss_functions import (
    Loss,
    SquaredErrorLoss,
    LogisticLoss,
    get_loss_function,
    sigmoid,
)

# Sampling
from .sampling import Sampler

# Base classes
from .base import BaseEstimator, BoosterParams

# Timestamp features
from .timestamp_features import (
    TIMESTAMP_FEATURE_NAMES,
    TimestampFeatures,
    extract_timestamp_features,
    timestamp_features_to_array,
    prepare_timestamp_features,
    feature_names,
)

# Serialization
from .serialization import FORMAT_VERSION, export_model, import_model

# Time-series helpers
from .time_series import (
    ForecastResult,
    windowed_supervised,
    recursive_forecast,
    holdout_split,
    forecast_windowed,
    forecast_with_timestamps,
)

# Utility functions
from .utils import (
    InputError,
    ConfigError,
    UntrainedModelError,
    InvalidTimestamp,
    ModelFormatError,
    FeatureMismatchWarning,
    check_array,
    check_X_y,
    check_is_fitted,
    train_test_split,
    accuracy_score,
    log_loss,
    classification_metrics,
    mean_squared_error,
    mean_absolute_error,
    r2_score,
    regression_metrics,
    log_message,
    log_training_progress,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Core estimator
    "GradientBooster",
    # Tree
    "Leaf",
    "Split",
    "Tree",
    "SplitInfo",
    "FeatureImportance",
    "TreeBuilder",
    # Loss functions
    "Loss",
    "SquaredErrorLoss",
    "LogisticLoss",
    "get_loss_function",
    "sigmoid",
    # Sampling
    "Sampler",
    # Base classes
    "BaseEstimator",
    "BoosterParams",
    # Timestamp features
    "TIMESTAMP_FEATURE_NAMES",
    "TimestampFeatures",
    "extract_timestamp_features",
    "timestamp_features_to_array",
    "prepare_timestamp_features",
    "feature_names",
    # Serialization
    "FORMAT_VERSION",
    "export_model",
    "import_model",
    # Time series
    "ForecastResult",
    "windowed_supervised",
    "recursive_forecast",
    "holdout_split",
    "forecast_windowed",
    "forecast_with_timestamps",
    # Errors
    "InputError",
    "ConfigError",
    "UntrainedModelError",
    "InvalidTimestamp",
    "ModelFormatError",
    "FeatureMismatchWarning",
    # Utilities
    "check_array",
    "check_X_y",
    "check_is_fitted",
    "train_test_split",
    "accuracy_score",
    "log_loss",
    "classification_metrics",
    "mean_squared_error",
    "mean_absolute_error",
    "r2_score",
    "regression_metrics",
    "log_message",
    "log_training_progress",
]
