"""
Base classes for tsboost estimators.

This module provides the hyperparameter dataclass and the abstract base
class that define the common interface of the boosting estimators:
parameter access, validation and JSON persistence.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .loss_functions import normalize_task
from .utils import ConfigError


DEFAULT_SEED = 1337


# =============================================================================
# Booster Parameters Dataclass
# =============================================================================

@dataclass
class BoosterParams:
    """
    Dataclass containing all booster hyperparameters.

    Parameters
    ----------
    learning_rate : float
        Shrinkage applied to each tree's contribution.
    max_depth : int
        Hard cap on tree depth.
    min_child_weight : float
        Minimum hessian sum required in any node and child.
    num_rounds : int
        Number of trees grown.
    task : str
        'classification' (logit link, alias 'binary') or 'regression'
        (identity link).
    reg_lambda : float
        L2 penalty on leaf weights.
    gamma : float
        Minimum gain required to accept a split.
    subsample : float
        Row sampling rate per tree.
    colsample_bytree : float
        Feature sampling rate per tree.
    seed : int
        Seed of the row/column sampler.
    verbose : int
        Verbosity level (0=silent, 1=progress).
    """
    learning_rate: float = 0.3
    max_depth: int = 4
    min_child_weight: float = 1.0
    num_rounds: int = 100
    task: str = "classification"
    reg_lambda: float = 1.0
    gamma: float = 0.0
    subsample: float = 1.0
    colsample_bytree: float = 1.0
    seed: int = DEFAULT_SEED
    verbose: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "BoosterParams":
        """Create BoosterParams from dictionary, ignoring unknown keys."""
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in params.items() if k in valid_keys}
        return cls(**filtered)

    def validate(self) -> None:
        """
        Validate all parameters and normalize the task name.

        Raises
        ------
        ConfigError
            If any parameter is invalid.
        """
        self.task = normalize_task(self.task)

        if self.learning_rate <= 0:
            raise ConfigError(
                f"learning_rate must be positive, got {self.learning_rate}"
            )
        if self.max_depth < 0:
            raise ConfigError(
                f"max_depth must be non-negative, got {self.max_depth}"
            )
        if self.min_child_weight < 0:
            raise ConfigError(
                f"min_child_weight must be non-negative, got {self.min_child_weight}"
            )
        if self.num_rounds < 1:
            raise ConfigError(
                f"num_rounds must be at least 1, got {self.num_rounds}"
            )
        if self.reg_lambda < 0:
            raise ConfigError(f"reg_lambda must be non-negative, got {self.reg_lambda}")
        if self.gamma < 0:
            raise ConfigError(f"gamma must be non-negative, got {self.gamma}")
        if self.subsample < 0:
            raise ConfigError(f"subsample must be non-negative, got {self.subsample}")
        if self.colsample_bytree < 0:
            raise ConfigError(
                f"colsample_bytree must be non-negative, got {self.colsample_bytree}"
            )


# =============================================================================
# Base Estimator Abstract Class
# =============================================================================

class BaseEstimator(ABC):
    """
    Abstract base class for all tsboost estimators.

    Keeps the hyperparameters in a ``BoosterParams`` instance and the fitted
    state in trailing-underscore attributes, sklearn style, without
    depending on sklearn.
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
    ):
        """Initialize the estimator with hyperparameters."""
        self.params = BoosterParams(
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

        # Fitted state
        self.trees_: List[Any] = []
        self.n_features_: Optional[int] = None
        self.is_fitted_: bool = False
        self.training_history_: Dict[str, List[float]] = {
            "train_loss": [],
            "val_loss": [],
        }

    # -------------------------------------------------------------------------
    # Property accessors for common hyperparameters
    # -------------------------------------------------------------------------

    @property
    def learning_rate(self) -> float:
        return self.params.learning_rate

    @property
    def max_depth(self) -> int:
        return self.params.max_depth

    @property
    def num_rounds(self) -> int:
        return self.params.num_rounds

    @property
    def task(self) -> str:
        return self.params.task

    @property
    def seed(self) -> int:
        return self.params.seed

    @property
    def verbose(self) -> int:
        return self.params.verbose

    # -------------------------------------------------------------------------
    # Abstract methods to be implemented by subclasses
    # -------------------------------------------------------------------------

    @abstractmethod
    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        *,
        eval_set: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> "BaseEstimator":
        """
        Fit the model to training data.

        Parameters
        ----------
        X : np.ndarray of shape (n_samples, n_features)
            Training features.
        y : np.ndarray of shape (n_samples,)
            Training targets.
        eval_set : tuple of (X_val, y_val) or None
            Holdout set whose loss is recorded each round.

        Returns
        -------
        self : BaseEstimator
            Fitted estimator.
        """
        pass

    @abstractmethod
    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Make predictions on new data.

        Parameters
        ----------
        X : np.ndarray of shape (n_samples, n_features)
            Features to predict.

        Returns
        -------
        predictions : np.ndarray
            Predicted values.
        """
        pass

    # -------------------------------------------------------------------------
    # Common methods
    # -------------------------------------------------------------------------

    def get_params(self) -> Dict[str, Any]:
        """
        Get estimator parameters.

        Returns
        -------
        params : dict
            Dictionary of parameter names to values.
        """
        return self.params.to_dict()

    def set_params(self, **params: Any) -> "BaseEstimator":
        """
        Set estimator parameters.

        Raises
        ------
        ConfigError
            If a parameter name is unknown.
        """
        for key, value in params.items():
            if hasattr(self.params, key):
                setattr(self.params, key, value)
            else:
                raise ConfigError(f"Invalid parameter: {key}")
        return self

    def save_model(self, path: str) -> None:
        """
        Save the model to a JSON file.

        Parameters
        ----------
        path : str
            File path to save the model.
        """
        from .serialization import export_model

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(export_model(self), f, indent=2)

    def load_model(self, path: str) -> "BaseEstimator":
        """
        Load a model from a JSON file into this instance.

        Parameters
        ----------
        path : str
            File path to load the model from.

        Returns
        -------
        self : BaseEstimator
            The loaded model.
        """
        from .serialization import import_model

        with open(path, 'r', encoding='utf-8') as f:
            model_data = json.load(f)

        return import_model(model_data, model=self)

    def _validate_params(self) -> None:
        """Validate all hyperparameters."""
        self.params.validate()

    def __repr__(self) -> str:
        """Return string representation of the estimator."""
        class_name = self.__class__.__name__
        defaults = BoosterParams()
        params_str = ", ".join(
            f"{k}={v!r}"
            for k, v in self.get_params().items()
            if v != getattr(defaults, k)
        )
        return f"{class_name}({params_str})"
