"""
Regression trees for second-order gradient boosting.

This module provides the node types (a tagged ``Leaf`` / ``Split`` variant),
the immutable ``Tree`` wrapper used by the ensemble and the ``TreeBuilder``
that grows one tree depth-first with regularized exact-greedy split search
over sorted feature values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from .utils import ModelFormatError


# =============================================================================
# Node Data Structures
# =============================================================================

@dataclass(frozen=True)
class Leaf:
    """
    Terminal node carrying the leaf weight ``-G / (H + lambda)``.
    """
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'leaf', 'weight': float(self.weight)}


@dataclass(frozen=True)
class Split:
    """
    Internal node.

    Attributes
    ----------
    feature_idx : int
        Column tested by this node.
    threshold : float
        Rows with ``x[feature_idx] <= threshold`` go left, others right.
    left, right : Leaf or Split
        Owned children; always both present.
    """
    feature_idx: int
    threshold: float
    left: "Node"
    right: "Node"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'split',
            'feature_idx': int(self.feature_idx),
            'threshold': float(self.threshold),
            'left': self.left.to_dict(),
            'right': self.right.to_dict(),
        }


Node = Union[Leaf, Split]


def node_from_dict(data: Dict[str, Any]) -> Node:
    """
    Rebuild a node subtree from its tagged dictionary form.

    Raises
    ------
    ModelFormatError
        If a node has an unknown tag, misses a field, carries a non-finite
        number or a negative feature index.
    """
    try:
        node_type = data['type']
        if node_type == 'leaf':
            return Leaf(weight=_finite(data['weight'], 'weight'))
        if node_type == 'split':
            feature_idx = int(data['feature_idx'])
            if feature_idx < 0:
                raise ModelFormatError(f"Negative feature index: {feature_idx}")
            return Split(
                feature_idx=feature_idx,
                threshold=_finite(data['threshold'], 'threshold'),
                left=node_from_dict(data['left']),
                right=node_from_dict(data['right']),
            )
    except ModelFormatError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ModelFormatError(f"Malformed tree node: {e}") from e
    raise ModelFormatError(f"Unknown node type: {node_type!r}")


def _finite(value: Any, name: str) -> float:
    value = float(value)
    if not np.isfinite(value):
        raise ModelFormatError(f"Non-finite {name} in tree node: {value!r}")
    return value


@dataclass(frozen=True)
class Tree:
    """
    One boosting round's tree.

    Attributes
    ----------
    root : Leaf or Split
        Root node; the tree exclusively owns the whole subtree.
    weight : float
        Per-tree scale, currently always 1.0.
    """
    root: Node
    weight: float = 1.0

    @property
    def n_leaves(self) -> int:
        return _count_leaves(self.root)

    @property
    def depth(self) -> int:
        return _depth(self.root)

    @property
    def max_feature_idx(self) -> int:
        """Highest feature index tested by any split, -1 for a single leaf."""
        return _max_feature_idx(self.root)

    def traverse(self, x: np.ndarray) -> Optional[float]:
        """
        Return the leaf weight reached by a single feature vector.

        Returns ``None`` when the path tests a feature index the vector does
        not have; callers treat that tree as contributing zero.
        """
        node = self.root
        n_features = len(x)
        while isinstance(node, Split):
            if node.feature_idx >= n_features:
                return None
            node = node.left if x[node.feature_idx] <= node.threshold else node.right
        return node.weight

    def predict(
        self,
        X: np.ndarray,
        *,
        return_mismatch: bool = False,
    ) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
        """
        Make predictions for input samples.

        Parameters
        ----------
        X : np.ndarray of shape (n_samples, n_features)
            Feature matrix.
        return_mismatch : bool, default=False
            Also return a boolean mask of rows whose path referenced a
            feature index beyond ``n_features`` (their prediction is 0).

        Returns
        -------
        predictions : np.ndarray of shape (n_samples,)
            Leaf weights reached by each row.
        mismatch : np.ndarray of bool, optional
            Only when ``return_mismatch`` is True.
        """
        X = np.asarray(X, dtype=float)
        predictions = np.zeros(X.shape[0])
        mismatch = np.zeros(X.shape[0], dtype=bool)
        _predict_node(self.root, X, np.arange(X.shape[0]), predictions, mismatch)
        if return_mismatch:
            return predictions, mismatch
        return predictions

    def to_dict(self) -> Dict[str, Any]:
        return {'weight': float(self.weight), 'root': self.root.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tree":
        if not isinstance(data, dict) or 'root' not in data:
            raise ModelFormatError("Tree entry must be a mapping with a 'root' node.")
        return cls(root=node_from_dict(data['root']), weight=float(data.get('weight', 1.0)))


def _predict_node(
    node: Node,
    X: np.ndarray,
    idx: np.ndarray,
    out: np.ndarray,
    mismatch: np.ndarray,
) -> None:
    if idx.size == 0:
        return
    if isinstance(node, Leaf):
        out[idx] = node.weight
        return
    if node.feature_idx >= X.shape[1]:
        mismatch[idx] = True
        return
    go_left = X[idx, node.feature_idx] <= node.threshold
    _predict_node(node.left, X, idx[go_left], out, mismatch)
    _predict_node(node.right, X, idx[~go_left], out, mismatch)


def _count_leaves(node: Node) -> int:
    if isinstance(node, Leaf):
        return 1
    return _count_leaves(node.left) + _count_leaves(node.right)


def _depth(node: Node) -> int:
    if isinstance(node, Leaf):
        return 0
    return 1 + max(_depth(node.left), _depth(node.right))


def _max_feature_idx(node: Node) -> int:
    if isinstance(node, Leaf):
        return -1
    return max(node.feature_idx, _max_feature_idx(node.left), _max_feature_idx(node.right))


# =============================================================================
# Split Search Helpers
# =============================================================================

@dataclass
class SplitInfo:
    """
    Information about a potential split.

    Attributes
    ----------
    gain : float
        Regularized loss reduction minus gamma.
    feature_idx : int
        Feature index to split on.
    threshold : float
        Midpoint between the two adjacent sorted values.
    """
    gain: float = -np.inf
    feature_idx: int = -1
    threshold: float = 0.0


@dataclass
class FeatureImportance:
    """
    Mutable accumulator threaded through tree construction.

    ``gain[f]`` sums the accepted split gains of feature ``f`` and
    ``count[f]`` counts its splits, across every tree of an ensemble.
    """
    gain: np.ndarray
    count: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.gain = np.asarray(self.gain, dtype=float)
        if self.count is None:
            self.count = np.zeros(len(self.gain), dtype=np.int64)
        else:
            self.count = np.asarray(self.count, dtype=np.int64)

    @classmethod
    def zeros(cls, n_features: int) -> "FeatureImportance":
        return cls(gain=np.zeros(n_features))

    def add(self, feature_idx: int, gain: float) -> None:
        self.gain[feature_idx] += max(0.0, gain)
        self.count[feature_idx] += 1


# =============================================================================
# Tree Builder
# =============================================================================

class TreeBuilder:
    """
    Depth-first builder of one regression tree from gradients and hessians.

    Parameters
    ----------
    max_depth : int, default=4
        Hard cap on the depth of any leaf.
    min_child_weight : float, default=1.0
        Minimum hessian sum required in a node and in each child of a split.
    reg_lambda : float, default=1.0
        L2 penalty on leaf weights.
    gamma : float, default=0.0
        Minimum loss reduction required to accept a split.
    """

    def __init__(
        self,
        max_depth: int = 4,
        min_child_weight: float = 1.0,
        reg_lambda: float = 1.0,
        gamma: float = 0.0,
    ):
        self.max_depth = max_depth
        self.min_child_weight = min_child_weight
        self.reg_lambda = reg_lambda
        self.gamma = gamma

    def build(
        self,
        X: np.ndarray,
        gradients: np.ndarray,
        hessians: np.ndarray,
        *,
        rows: Optional[np.ndarray] = None,
        features: Optional[np.ndarray] = None,
        importance: Optional[FeatureImportance] = None,
    ) -> Tree:
        """
        Grow one tree.

        Parameters
        ----------
        X : np.ndarray of shape (n_samples, n_features)
            Full feature matrix.
        gradients, hessians : np.ndarray of shape (n_samples,)
            Per-row derivatives for the current round.
        rows : np.ndarray of int or None
            Rows the tree is grown on (all rows when None).
        features : np.ndarray of int or None
            Candidate features, searched in the given order (all when None).
            The same subset is used at every node.
        importance : FeatureImportance or None
            Accumulator updated with every accepted split.

        Returns
        -------
        tree : Tree
        """
        X = np.asarray(X, dtype=float)
        gradients = np.asarray(gradients, dtype=float)
        hessians = np.asarray(hessians, dtype=float)
        if rows is None:
            rows = np.arange(X.shape[0])
        if features is None:
            features = np.arange(X.shape[1])
        if importance is None:
            importance = FeatureImportance.zeros(X.shape[1])

        root = self._build_node(X, gradients, hessians, np.asarray(rows), 0, features, importance)
        return Tree(root=root)

    def _build_node(
        self,
        X: np.ndarray,
        gradients: np.ndarray,
        hessians: np.ndarray,
        rows: np.ndarray,
        depth: int,
        features: np.ndarray,
        importance: FeatureImportance,
    ) -> Node:
        G = float(np.sum(gradients[rows]))
        H = float(np.sum(hessians[rows]))

        if depth >= self.max_depth or H < self.min_child_weight or len(rows) <= 1:
            return Leaf(self._compute_leaf_value(G, H))

        best_split = self._find_best_split(X, gradients, hessians, rows, features, G, H)
        if best_split.gain <= 0:
            return Leaf(self._compute_leaf_value(G, H))

        importance.add(best_split.feature_idx, best_split.gain)

        go_left = X[rows, best_split.feature_idx] <= best_split.threshold
        left = self._build_node(
            X, gradients, hessians, rows[go_left], depth + 1, features, importance
        )
        right = self._build_node(
            X, gradients, hessians, rows[~go_left], depth + 1, features, importance
        )
        return Split(
            feature_idx=int(best_split.feature_idx),
            threshold=float(best_split.threshold),
            left=left,
            right=right,
        )

    def _find_best_split(
        self,
        X: np.ndarray,
        gradients: np.ndarray,
        hessians: np.ndarray,
        rows: np.ndarray,
        features: np.ndarray,
        G_total: float,
        H_total: float,
    ) -> SplitInfo:
        """
        Find the best split over all candidate features.

        Features are scanned in the given order and a later feature only
        wins on a strictly larger gain.
        """
        best_split = SplitInfo()
        node_gradients = gradients[rows]
        node_hessians = hessians[rows]
        parent_score = self._compute_score(G_total, H_total)

        for feature_idx in features:
            split_info = self._find_best_split_exact(
                X[rows, feature_idx], node_gradients, node_hessians,
                int(feature_idx), G_total, H_total, parent_score,
            )
            if split_info.gain > best_split.gain:
                best_split = split_info

        return best_split

    def _find_best_split_exact(
        self,
        feature_values: np.ndarray,
        gradients: np.ndarray,
        hessians: np.ndarray,
        feature_idx: int,
        G_total: float,
        H_total: float,
        parent_score: float,
    ) -> SplitInfo:
        """
        Scan one feature in ascending value order.
        """
        best_split = SplitInfo(feature_idx=feature_idx)

        # Stable sort keeps ties in row order
        sorted_order = np.argsort(feature_values, kind='mergesort')
        sorted_values = feature_values[sorted_order]

        G_left = np.cumsum(gradients[sorted_order])[:-1]
        H_left = np.cumsum(hessians[sorted_order])[:-1]
        G_right = G_total - G_left
        H_right = H_total - H_left

        # Equal neighbours never produce a zero-width split
        valid = (
            (sorted_values[:-1] != sorted_values[1:])
            & (H_left >= self.min_child_weight)
            & (H_right >= self.min_child_weight)
        )
        if not np.any(valid):
            return best_split

        valid_idx = np.flatnonzero(valid)
        gains = (
            self._compute_score(G_left[valid_idx], H_left[valid_idx])
            + self._compute_score(G_right[valid_idx], H_right[valid_idx])
            - parent_score
            - self.gamma
        )

        # argmax returns the first maximum: lowest threshold wins ties
        best_local_idx = int(np.argmax(gains))
        split_pos = valid_idx[best_local_idx]
        best_split.gain = float(gains[best_local_idx])
        best_split.threshold = float(
            (sorted_values[split_pos] + sorted_values[split_pos + 1]) / 2
        )
        return best_split

    def _compute_score(self, G, H):
        """
        Half the structure score of a node: 0.5 * G^2 / (H + lambda).
        """
        return 0.5 * (G ** 2) / (H + self.reg_lambda)

    def _compute_leaf_value(self, G: float, H: float) -> float:
        """
        Compute the optimal leaf value.

        value = -G / (H + lambda)
        """
        denominator = H + self.reg_lambda
        if denominator <= 0:
            return 0.0
        return -G / denominator


__all__ = [
    'Leaf',
    'Split',
    'Node',
    'Tree',
    'node_from_dict',
    'SplitInfo',
    'FeatureImportance',
    'TreeBuilder',
]
