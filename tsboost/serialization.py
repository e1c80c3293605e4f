"""
Model export and import.

A fitted ``GradientBooster`` is exported as a plain, JSON-compatible dict
(the "blob"). Import is a pure structural copy: the rebuilt model predicts
exactly what the exported one did, since Python floats survive a JSON
round-trip unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import numpy as np

from .base import BoosterParams
from .booster import GradientBooster
from .loss_functions import get_loss_function
from .tree import Tree
from .utils import ConfigError, ModelFormatError, check_is_fitted


FORMAT_VERSION = 1

_REQUIRED_KEYS = (
    'format_version',
    'hyperparameters',
    'base_score',
    'n_features',
    'trees',
    'importance_gain',
    'importance_count',
)


def export_model(model: GradientBooster) -> Dict[str, Any]:
    """
    Export a fitted model to a JSON-compatible dictionary.

    Parameters
    ----------
    model : GradientBooster
        Fitted model.

    Returns
    -------
    blob : dict
        Keys ``format_version``, ``hyperparameters``, ``base_score``,
        ``n_features``, ``trees``, ``importance_gain``, ``importance_count``
        and ``training_history``.

    Raises
    ------
    UntrainedModelError
        If the model is not fitted.
    """
    check_is_fitted(model)
    return {
        'format_version': FORMAT_VERSION,
        'hyperparameters': model.get_params(),
        'base_score': float(model.base_score_),
        'n_features': int(model.n_features_),
        'trees': [tree.to_dict() for tree in model.trees_],
        'importance_gain': [float(v) for v in model.importance_gain_],
        'importance_count': [int(v) for v in model.importance_count_],
        'training_history': {
            key: [float(v) for v in values]
            for key, values in model.training_history_.items()
        },
    }


def import_model(
    blob: Mapping[str, Any],
    model: Optional[GradientBooster] = None,
) -> GradientBooster:
    """
    Rebuild a model from an exported dictionary.

    Parameters
    ----------
    blob : mapping
        Output of ``export_model`` (possibly after a JSON round-trip).
    model : GradientBooster, optional
        Instance to load into. A new one is created when omitted.

    Returns
    -------
    model : GradientBooster

    Raises
    ------
    ModelFormatError
        If the blob has an unknown version or is malformed.
    """
    if not isinstance(blob, Mapping):
        raise ModelFormatError(
            f"Model blob must be a mapping, got {type(blob).__name__}."
        )
    missing = [key for key in _REQUIRED_KEYS if key not in blob]
    if missing:
        raise ModelFormatError(f"Model blob is missing keys: {missing}")
    if blob['format_version'] != FORMAT_VERSION:
        raise ModelFormatError(
            f"Unsupported format_version {blob['format_version']!r}, "
            f"expected {FORMAT_VERSION}."
        )

    try:
        params = BoosterParams.from_dict(dict(blob['hyperparameters']))
        params.validate()
        trees = [Tree.from_dict(entry) for entry in blob['trees']]
        base_score = float(blob['base_score'])
        n_features = int(blob['n_features'])
        importance_gain = np.asarray(blob['importance_gain'], dtype=float)
        importance_count = np.asarray(blob['importance_count'], dtype=np.int64)
        history = blob.get('training_history') or {}
        training_history = {
            'train_loss': [float(v) for v in history.get('train_loss', [])],
            'val_loss': [float(v) for v in history.get('val_loss', [])],
        }
    except ModelFormatError:
        raise
    except ConfigError as e:
        raise ModelFormatError(f"Invalid hyperparameters in model blob: {e}") from e
    except (AttributeError, TypeError, ValueError) as e:
        raise ModelFormatError(f"Malformed model blob: {e}") from e

    if n_features < 1:
        raise ModelFormatError(f"n_features must be at least 1, got {n_features}.")
    if not trees:
        raise ModelFormatError("Model blob holds no trees.")
    if not np.isfinite(base_score):
        raise ModelFormatError(f"Non-finite base_score: {base_score!r}")
    for i, tree in enumerate(trees):
        if tree.max_feature_idx >= n_features:
            raise ModelFormatError(
                f"Tree {i} tests feature {tree.max_feature_idx} but the model "
                f"has n_features={n_features}."
            )
    if importance_gain.shape != (n_features,) or importance_count.shape != (n_features,):
        raise ModelFormatError(
            f"Importance arrays must have length n_features={n_features}."
        )

    if model is None:
        model = GradientBooster()
    model.params = params
    model.trees_ = trees
    model.base_score_ = base_score
    model.n_features_ = n_features
    model.loss_function_ = get_loss_function(params.task)
    model.importance_gain_ = importance_gain
    model.importance_count_ = importance_count
    model.training_history_ = training_history
    model.is_fitted_ = True
    return model


__all__ = ['FORMAT_VERSION', 'export_model', 'import_model']
