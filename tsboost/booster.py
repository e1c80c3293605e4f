"""
Second-order gradient boosting estimator.

This module provides ``GradientBooster``, a Newton boosting ensemble of
depth-limited regression trees supporting binary classification (logistic
loss) and regression (squared error), with seeded row/column subsampling,
split-gain feature importance and timestamp-driven entry points.
Completely sklearn-free.
"""

from __future__ import annotations

import warnings
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from .base import DEFAULT_SEED, BaseEstimator
from .loss_functions import Loss, get_loss_function
from .sampling import Sampler
from .timestamp_features import TimestampLike, prepare_timestamp_features
from .tree import FeatureImportance, TreeBuilder
from .utils import (
    FeatureMismatchWarning,
    InputError,
    accuracy_score,
    check_array,
    check_is_fitted,
    check_X_y,
    log_message,
    log_training_progress,
    r2_score,
)


class GradientBooster(BaseEstimator):
    """
    Gradient boosted trees with Newton leaf weights.

    Each round fits one tree to the gradients/hessians of the current raw
    scores, grown depth-first with exact greedy split search, and adds its
    output scaled by ``learning_rate`` to every training row.

    Parameters
    ----------
    learning_rate : float, default=0.3
        Shrinkage applied to each tree's contribution.
    max_depth : int, default=4
        Maximum tree depth. 0 grows single-leaf trees.
    min_child_weight : float, default=1.0
        Minimum hessian sum in a node and in each child of a split.
    num_rounds : int, default=100
        Number of boosting rounds (trees).
    task : str, default='classification'
        'classification' (alias 'binary') or 'regression'.
    reg_lambda : float, default=1.0
        L2 regularization on leaf weights.
    gamma : float, default=0.0
        Minimum gain required for a split.
    subsample : float, default=1.0
        Fraction of rows sampled per tree.
    colsample_bytree : float, default=1.0
        Fraction of features sampled per tree.
    seed : int, default=1337
        Seed of the row/column sampler.
    verbose : int, default=0
        Verbosity level (0=silent, 1=progress).
    n_estimators, eta, random_state : optional
        Aliases of ``num_rounds``, ``learning_rate`` and ``seed``.

    Attributes
    ----------
    trees_ : list of Tree
        Fitted trees, in boosting order.
    base_score_ : float
        Initial raw score shared by every sample.
    n_features_ : int
        Number of features seen during fit.
    loss_function_ : Loss
        Objective of the fitted task.
    importance_gain_ : np.ndarray of shape (n_features,)
        Total split gain per feature.
    importance_count_ : np.ndarray of shape (n_features,)
        Number of splits per feature.
    training_history_ : dict
        Per-round training and holdout loss.

    Examples
    --------
    >>> import numpy as np
    >>> X = np.array([[0.0], [1.0], [10.0], [11.0]])
    >>> y = np.array([0.0, 0.0, 1.0, 1.0])
    >>> model = GradientBooster(num_rounds=20, min_child_weight=0.0).fit(X, y)
    >>> model.predict_single([0.5]) < 0.5 < model.predict_single([10.5])
    True
    """

    def __init__(
        self,
        learning_rate: float = 0.3,
        max_depth: int = 4,
        min_child_weight: float = 1.0,
        num_rounds: int = 100,
        task: str = "classification",
        reg_lambda: float = 1.0,
        gamma: float = 0.0,
        subsample: float = 1.0,
        colsample_bytree: float = 1.0,
        seed: int = DEFAULT_SEED,
        verbose: int = 0,
        # common aliases
        n_estimators: Optional[int] = None,
        eta: Optional[float] = None,
        random_state: Optional[int] = None,
    ):
        if n_estimators is not None:
            num_rounds = n_estimators
        if eta is not None:
            learning_rate = eta
        if random_state is not None:
            seed = random_state

        super().__init__(
            learning_rate=learning_rate,
            max_depth=max_depth,
            min_child_weight=min_child_weight,
            num_rounds=num_rounds,
            task=task,
            reg_lambda=reg_lambda,
            gamma=gamma,
            subsample=subsample,
            colsample_bytree=colsample_bytree,
            seed=seed,
            verbose=verbose,
        )

        self.base_score_: Optional[float] = None
        self.loss_function_: Optional[Loss] = None
        self.importance_gain_: Optional[np.ndarray] = None
        self.importance_count_: Optional[np.ndarray] = None

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def fit(
        self,
        X: Any,
        y: Any,
        *,
        eval_set: Optional[Tuple[Any, Any]] = None,
    ) -> "GradientBooster":
        """
        Fit the ensemble.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Training features.
        y : array-like of shape (n_samples,)
            Training targets (0/1 labels for classification).
        eval_set : tuple of (X_val, y_val) or None, default=None
            Holdout set whose loss is recorded after every round. It does
            not stop training early.

        Returns
        -------
        self : GradientBooster
            Fitted booster.

        Raises
        ------
        ConfigError
            If a hyperparameter is invalid.
        InputError
            If the data is empty, ragged, non-finite or inconsistent.
        """
        self._validate_params()
        X, y = check_X_y(X, y)

        X_val, y_val = None, None
        if eval_set is not None:
            X_val, y_val = check_X_y(*eval_set)
            if X_val.shape[1] != X.shape[1]:
                raise InputError(
                    f"eval_set has {X_val.shape[1]} features, expected {X.shape[1]}."
                )

        self._initialize_fit(X, y)

        params = self.params
        log_message(
            f"Fitting {params.num_rounds} rounds on {X.shape[0]} samples x "
            f"{X.shape[1]} features (task={params.task}, base_score={self.base_score_:.6f})",
            verbose=params.verbose,
        )

        sampler = Sampler(params.seed)
        builder = TreeBuilder(
            max_depth=params.max_depth,
            min_child_weight=params.min_child_weight,
            reg_lambda=params.reg_lambda,
            gamma=params.gamma,
        )
        importance = FeatureImportance.zeros(self.n_features_)

        raw_score = np.full(X.shape[0], self.base_score_)
        if X_val is not None:
            raw_val = np.full(X_val.shape[0], self.base_score_)

        for iteration in range(params.num_rounds):
            gradients, hessians = self.loss_function_.gradient_hessian(y, raw_score)

            # Rows before columns, once per round
            rows = sampler.sample_rows(X.shape[0], params.subsample)
            features = sampler.sample_features(self.n_features_, params.colsample_bytree)

            tree = builder.build(
                X, gradients, hessians,
                rows=rows, features=features, importance=importance,
            )
            self.trees_.append(tree)

            # Every training row moves, sampled or not
            raw_score += params.learning_rate * tree.predict(X)

            train_loss = self.loss_function_(y, raw_score)
            self.training_history_["train_loss"].append(train_loss)

            val_loss = None
            if X_val is not None:
                raw_val += params.learning_rate * tree.predict(X_val)
                val_loss = self.loss_function_(y_val, raw_val)
                self.training_history_["val_loss"].append(val_loss)

            if params.verbose >= 1:
                log_training_progress(
                    iteration + 1,
                    params.num_rounds,
                    train_loss,
                    verbose=params.verbose,
                    metric_name="train_loss",
                )
                if val_loss is not None:
                    log_message(f"val_loss: {val_loss:.6f}", verbose=params.verbose)

        self.importance_gain_ = importance.gain
        self.importance_count_ = importance.count
        self.is_fitted_ = True

        log_message(
            f"Training finished: {len(self.trees_)} trees, "
            f"{sum(tree.n_leaves for tree in self.trees_)} leaves",
            verbose=params.verbose,
        )
        return self

    def _initialize_fit(self, X: np.ndarray, y: np.ndarray) -> None:
        """Reset all fitted state; refitting never reuses old trees."""
        self.n_features_ = X.shape[1]
        self.trees_ = []
        self.training_history_ = {"train_loss": [], "val_loss": []}
        self.loss_function_ = get_loss_function(self.params.task)
        self.base_score_ = self.loss_function_.init_prediction(y)
        self.importance_gain_ = None
        self.importance_count_ = None
        self.is_fitted_ = False

    def fit_with_timestamps(
        self,
        timestamps: Sequence[TimestampLike],
        y: Any,
        custom_features: Optional[Sequence[Sequence[float]]] = None,
        *,
        eval_set: Optional[Tuple[Any, ...]] = None,
    ) -> "GradientBooster":
        """
        Fit on calendar features derived from timestamps.

        Parameters
        ----------
        timestamps : sequence of timestamp-like
            One instant per sample (epoch ms, datetime, ISO string...).
        y : array-like of shape (n_samples,)
            Targets.
        custom_features : sequence of sequences of float, optional
            Extra per-sample features appended after the 13 calendar columns.
        eval_set : tuple, optional
            ``(timestamps_val, y_val)`` or
            ``(timestamps_val, y_val, custom_features_val)``.

        Returns
        -------
        self : GradientBooster
        """
        X = prepare_timestamp_features(timestamps, custom_features)

        val = None
        if eval_set is not None:
            if len(eval_set) not in (2, 3):
                raise InputError(
                    "eval_set must be (timestamps, y) or (timestamps, y, custom_features)."
                )
            val_custom = eval_set[2] if len(eval_set) == 3 else None
            val = (prepare_timestamp_features(eval_set[0], val_custom), eval_set[1])

        return self.fit(X, y, eval_set=val)

    # -------------------------------------------------------------------------
    # Prediction
    # -------------------------------------------------------------------------

    def predict_raw(self, X: Any) -> np.ndarray:
        """
        Compute raw scores (before the output link).

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Features. Rows narrower than ``n_features_`` are accepted; a tree
            whose path needs a missing column contributes zero for that row
            and a ``FeatureMismatchWarning`` is emitted.

        Returns
        -------
        raw_score : np.ndarray of shape (n_samples,)
        """
        check_is_fitted(self)
        X = check_array(X, ensure_2d=True)

        raw_score = np.full(X.shape[0], self.base_score_)
        n_mismatched = 0
        for tree in self.trees_:
            values, mismatch = tree.predict(X, return_mismatch=True)
            raw_score += self.params.learning_rate * values
            if mismatch.any():
                n_mismatched += 1

        if n_mismatched:
            self._warn_feature_mismatch(X.shape[1], n_mismatched)

        return raw_score

    def _warn_feature_mismatch(self, n_given: int, n_trees: int) -> None:
        message = (
            f"Input has {n_given} features but the model was trained on "
            f"{self.n_features_}; {n_trees} tree(s) tested a missing feature "
            "and contributed 0 for the affected rows."
        )
        warnings.warn(message, FeatureMismatchWarning, stacklevel=3)
        log_message(message, verbose=self.params.verbose)

    def predict_batch(self, X: Any) -> np.ndarray:
        """
        Predict a batch of rows.

        Returns
        -------
        predictions : np.ndarray of shape (n_samples,)
            Probabilities of the positive class for classification, values
            for regression.
        """
        raw_score = self.predict_raw(X)
        return self.loss_function_.transform(raw_score)

    def predict(self, X: Any) -> np.ndarray:
        """Alias of ``predict_batch``."""
        return self.predict_batch(X)

    def predict_single(self, x: Any) -> float:
        """
        Predict one feature vector.

        Parameters
        ----------
        x : array-like of shape (n_features,)

        Returns
        -------
        prediction : float
        """
        x = check_array(x, ensure_2d=False)
        if x.ndim != 1:
            raise InputError(f"Expected a 1D feature vector, got {x.ndim}D.")
        return float(self.predict_batch(x.reshape(1, -1))[0])

    def predict_with_timestamp(
        self,
        timestamp: TimestampLike,
        custom_features: Optional[Sequence[float]] = None,
    ) -> float:
        """Predict for one instant, with optional extra features."""
        custom = None if custom_features is None else [list(custom_features)]
        X = prepare_timestamp_features([timestamp], custom)
        return self.predict_single(X[0])

    def predict_batch_with_timestamps(
        self,
        timestamps: Sequence[TimestampLike],
        custom_features: Optional[Sequence[Sequence[float]]] = None,
    ) -> np.ndarray:
        """Predict for a sequence of instants, with optional extra features."""
        check_is_fitted(self)
        X = prepare_timestamp_features(timestamps, custom_features)
        if X.shape[0] == 0:
            return np.empty(0)
        return self.predict_batch(X)

    def score(self, X: Any, y: Any) -> float:
        """
        Accuracy (classification, threshold 0.5) or R^2 (regression).
        """
        y = check_array(y, ensure_2d=False)
        predictions = self.predict_batch(X)
        if self.loss_function_.task == "classification":
            return accuracy_score(y, (predictions >= 0.5).astype(float))
        return r2_score(y, predictions)

    # -------------------------------------------------------------------------
    # Feature importance
    # -------------------------------------------------------------------------

    @property
    def feature_importances_(self) -> np.ndarray:
        """
        Total split gain per feature, normalized to sum to 1.

        All zeros when no split was ever accepted.
        """
        check_is_fitted(self)
        total = self.importance_gain_.sum()
        if total > 0:
            return self.importance_gain_ / total
        return np.zeros_like(self.importance_gain_)

    def get_feature_importance(self) -> np.ndarray:
        """Total split gain per feature (a copy)."""
        check_is_fitted(self)
        return self.importance_gain_.copy()

    def get_feature_importance_counts(self) -> np.ndarray:
        """Number of accepted splits per feature (a copy)."""
        check_is_fitted(self)
        return self.importance_count_.copy()


__all__ = ['GradientBooster']
