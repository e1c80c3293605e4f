"""
Loss functions for gradient boosting.

This module provides the two objectives supported by the booster. Each loss
computes the per-sample first and second order derivatives of the loss with
respect to the raw (pre-link) ensemble score, the initial base score and the
output link applied at prediction time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from .utils import ConfigError


# Floor applied to probabilities (base score) and logistic hessians.
EPSILON = 1e-6


def sigmoid(x: np.ndarray) -> np.ndarray:
    """Numerically stable logistic function."""
    x = np.clip(x, -500, 500)
    return 1.0 / (1.0 + np.exp(-x))


# =============================================================================
# Base Loss Class
# =============================================================================

class Loss(ABC):
    """
    Abstract base class for loss functions.

    All loss functions must implement methods to compute:
    - The loss value
    - First-order gradients
    - Second-order hessians
    - Initial prediction (base score)
    - The output link
    """

    #: Canonical task name the loss serves.
    task: str = ""

    @abstractmethod
    def __call__(self, y_true: np.ndarray, raw_score: np.ndarray) -> float:
        """
        Compute the mean loss value.

        Parameters
        ----------
        y_true : np.ndarray of shape (n_samples,)
            True target values.
        raw_score : np.ndarray of shape (n_samples,)
            Raw ensemble scores.

        Returns
        -------
        loss : float
            The computed loss value.
        """
        pass

    @abstractmethod
    def gradient(self, y_true: np.ndarray, raw_score: np.ndarray) -> np.ndarray:
        """
        Compute the first-order gradient.

        Parameters
        ----------
        y_true : np.ndarray of shape (n_samples,)
            True target values.
        raw_score : np.ndarray of shape (n_samples,)
            Raw ensemble scores.

        Returns
        -------
        gradient : np.ndarray of shape (n_samples,)
            First-order gradients.
        """
        pass

    @abstractmethod
    def hessian(self, y_true: np.ndarray, raw_score: np.ndarray) -> np.ndarray:
        """
        Compute the second-order hessian.

        Returns
        -------
        hessian : np.ndarray of shape (n_samples,)
            Second-order hessians (diagonal elements).
        """
        pass

    @abstractmethod
    def init_prediction(self, y: np.ndarray) -> float:
        """Compute the base score of the ensemble."""
        pass

    @abstractmethod
    def transform(self, raw_score: np.ndarray) -> np.ndarray:
        """Apply the output link to raw scores."""
        pass

    def gradient_hessian(
        self, y_true: np.ndarray, raw_score: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute both gradient and hessian at once.

        Returns
        -------
        gradient : np.ndarray of shape (n_samples,)
            First-order gradients.
        hessian : np.ndarray of shape (n_samples,)
            Second-order hessians.
        """
        return self.gradient(y_true, raw_score), self.hessian(y_true, raw_score)


# =============================================================================
# Regression Loss
# =============================================================================

class SquaredErrorLoss(Loss):
    """
    Squared error loss for regression.

    L(y, f) = 0.5 * (y - f)^2

    Identity link; the curvature is constant.
    """

    task = "regression"

    def __call__(self, y_true: np.ndarray, raw_score: np.ndarray) -> float:
        return float(0.5 * np.mean((y_true - raw_score) ** 2))

    def gradient(self, y_true: np.ndarray, raw_score: np.ndarray) -> np.ndarray:
        """
        Compute gradient: d/df [0.5*(y-f)^2] = f - y
        """
        return raw_score - y_true

    def hessian(self, y_true: np.ndarray, raw_score: np.ndarray) -> np.ndarray:
        return np.ones_like(raw_score, dtype=float)

    def init_prediction(self, y: np.ndarray) -> float:
        """Base score is the mean of targets."""
        return float(np.mean(y))

    def transform(self, raw_score: np.ndarray) -> np.ndarray:
        return raw_score


# =============================================================================
# Classification Loss
# =============================================================================

class LogisticLoss(Loss):
    """
    Logistic loss for binary classification.

    L(y, f) = -[y * log(sigmoid(f)) + (1-y) * log(1 - sigmoid(f))]

    Works with raw scores (logits). Hessians are floored at ``eps`` so that
    saturated leaves never get a zero curvature.

    Parameters
    ----------
    eps : float, default=1e-6
        Floor for hessians and for the mean target when computing the
        base score.
    """

    task = "classification"

    def __init__(self, eps: float = EPSILON):
        self.eps = eps

    def __call__(self, y_true: np.ndarray, raw_score: np.ndarray) -> float:
        prob = np.clip(sigmoid(raw_score), 1e-15, 1 - 1e-15)
        loss = -(y_true * np.log(prob) + (1 - y_true) * np.log(1 - prob))
        return float(np.mean(loss))

    def gradient(self, y_true: np.ndarray, raw_score: np.ndarray) -> np.ndarray:
        """
        Compute gradient.

        g = sigmoid(f) - y = p - y
        """
        return sigmoid(raw_score) - y_true

    def hessian(self, y_true: np.ndarray, raw_score: np.ndarray) -> np.ndarray:
        """
        Compute hessian.

        h = max(eps, p * (1 - p))
        """
        prob = sigmoid(raw_score)
        return np.maximum(self.eps, prob * (1 - prob))

    def init_prediction(self, y: np.ndarray) -> float:
        """
        Base score is the log-odds of the clamped positive rate.

        f0 = log(p / (1-p)) where p = clip(mean(y), eps, 1 - eps)
        """
        p = float(np.clip(np.mean(y), self.eps, 1 - self.eps))
        return float(np.log(p / (1 - p)))

    def transform(self, raw_score: np.ndarray) -> np.ndarray:
        return sigmoid(raw_score)


# =============================================================================
# Loss Function Factory
# =============================================================================

TASK_ALIASES = {
    'classification': 'classification',
    'binary': 'classification',
    'regression': 'regression',
}


def normalize_task(task: str) -> str:
    """
    Map a task name or alias to its canonical form.

    Raises
    ------
    ConfigError
        If the task name is not recognized.
    """
    key = task.lower().strip() if isinstance(task, str) else None
    if key not in TASK_ALIASES:
        raise ConfigError(
            f"Unknown task: {task!r}. Supported tasks: {sorted(TASK_ALIASES)}"
        )
    return TASK_ALIASES[key]


def get_loss_function(task: str) -> Loss:
    """
    Factory function to create the loss object for a task.

    Parameters
    ----------
    task : str
        'classification' (alias 'binary') or 'regression'.

    Returns
    -------
    loss : Loss
        Loss function instance.

    Raises
    ------
    ConfigError
        If the task name is not recognized.
    """
    if normalize_task(task) == 'classification':
        return LogisticLoss()
    return SquaredErrorLoss()


__all__ = [
    'EPSILON',
    'Loss',
    'SquaredErrorLoss',
    'LogisticLoss',
    'TASK_ALIASES',
    'normalize_task',
    'get_loss_function',
    'sigmoid',
]
