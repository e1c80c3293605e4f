"""
Test suite for GradientBooster.

Tests training, prediction, determinism, configuration and error handling.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from tsboost import GradientBooster, Leaf
from tsboost.utils import (
    ConfigError,
    FeatureMismatchWarning,
    InputError,
    UntrainedModelError,
    r2_score,
)


@pytest.fixture
def separable():
    X = np.array([[0.0], [1.0], [10.0], [11.0]])
    y = np.array([0.0, 0.0, 1.0, 1.0])
    return X, y


@pytest.fixture
def regression_data():
    rng = np.random.default_rng(0)
    X = rng.random((120, 3))
    y = 3.0 * X[:, 0] - 2.0 * X[:, 1] + 0.05 * rng.normal(size=120)
    return X, y


# =============================================================================
# Training behaviour
# =============================================================================

class TestFit:

    def test_separates_two_clusters(self, separable):
        X, y = separable
        model = GradientBooster(num_rounds=50, max_depth=2, min_child_weight=0.0)
        model.fit(X, y)

        assert model.predict_single([0.5]) < 0.5
        assert model.predict_single([10.5]) > 0.5
        assert model.score(X, y) == 1.0

    def test_regression_improves_training_loss(self, regression_data):
        X, y = regression_data
        model = GradientBooster(task="regression", num_rounds=30).fit(X, y)

        losses = np.array(model.training_history_["train_loss"])
        assert len(losses) == 30
        assert np.all(np.diff(losses) <= 1e-12)
        assert model.score(X, y) > 0.9

    def test_constant_targets_predict_base_score(self):
        X = np.random.default_rng(3).random((10, 2))
        model = GradientBooster(task="regression", num_rounds=5).fit(X, np.full(10, 3.0))

        np.testing.assert_allclose(model.predict(X), np.full(10, 3.0))
        assert all(isinstance(tree.root, Leaf) for tree in model.trees_)
        np.testing.assert_array_equal(model.get_feature_importance(), [0.0, 0.0])

    def test_zero_rounds_rejected(self):
        X = np.arange(4.0).reshape(-1, 1)
        y = np.array([0.0, 1.0, 1.0, 1.0])
        with pytest.raises(ConfigError):
            GradientBooster(num_rounds=0).fit(X, y)

    def test_treeless_model_is_untrained(self, separable):
        X, y = separable
        model = GradientBooster(num_rounds=2).fit(X, y)
        model.trees_ = []
        with pytest.raises(UntrainedModelError):
            model.predict_single([0.5])

    def test_tiny_subsample_builds_single_row_trees(self):
        rng = np.random.default_rng(1)
        X = rng.random((20, 2))
        y = (X[:, 0] > 0.5).astype(float)
        model = GradientBooster(subsample=1e-9, num_rounds=5).fit(X, y)

        assert len(model.trees_) == 5
        assert all(tree.n_leaves == 1 for tree in model.trees_)

    def test_refit_discards_previous_ensemble(self, separable):
        X, y = separable
        model = GradientBooster(num_rounds=4, min_child_weight=0.0)
        model.fit(X, y)
        model.fit(X, y)
        assert len(model.trees_) == 4
        assert len(model.training_history_["train_loss"]) == 4

    def test_eval_set_records_validation_loss(self, regression_data):
        X, y = regression_data
        model = GradientBooster(task="regression", num_rounds=10)
        model.fit(X[:100], y[:100], eval_set=(X[100:], y[100:]))

        assert len(model.training_history_["val_loss"]) == 10
        assert model.training_history_["val_loss"][-1] < model.training_history_["val_loss"][0]

    def test_accepts_pandas_input(self, regression_data):
        X, y = regression_data
        df = pd.DataFrame(X, columns=["a", "b", "c"])
        from_df = GradientBooster(task="regression", num_rounds=5).fit(df, pd.Series(y))
        from_np = GradientBooster(task="regression", num_rounds=5).fit(X, y)
        np.testing.assert_array_equal(from_df.predict(X), from_np.predict(X))


# =============================================================================
# Determinism
# =============================================================================

def test_same_seed_same_model(regression_data):
    X, y = regression_data
    params = dict(task="regression", num_rounds=15, subsample=0.7, colsample_bytree=0.5, seed=42)

    a = GradientBooster(**params).fit(X, y)
    b = GradientBooster(**params).fit(X, y)

    assert [t.to_dict() for t in a.trees_] == [t.to_dict() for t in b.trees_]
    np.testing.assert_array_equal(a.predict(X), b.predict(X))


def test_column_subsample_limits_features_per_tree(regression_data):
    X, y = regression_data
    model = GradientBooster(
        task="regression", num_rounds=10, colsample_bytree=0.3, seed=9
    ).fit(X, y)

    for tree in model.trees_:
        assert len(_split_features(tree.root)) <= 1


def _split_features(node):
    if isinstance(node, Leaf):
        return set()
    return {node.feature_idx} | _split_features(node.left) | _split_features(node.right)


# =============================================================================
# Prediction
# =============================================================================

class TestPredict:

    def test_raw_score_is_base_plus_scaled_trees(self, regression_data):
        X, y = regression_data
        model = GradientBooster(task="regression", num_rounds=8, learning_rate=0.2).fit(X, y)

        expected = np.full(len(X), model.base_score_)
        for tree in model.trees_:
            expected += 0.2 * tree.predict(X)
        np.testing.assert_allclose(model.predict_raw(X), expected)

    def test_classification_outputs_probabilities(self, separable):
        X, y = separable
        model = GradientBooster(num_rounds=10, min_child_weight=0.0).fit(X, y)
        proba = model.predict_batch(X)
        assert np.all((proba > 0) & (proba < 1))
        np.testing.assert_allclose(proba, 1 / (1 + np.exp(-model.predict_raw(X))))

    def test_predict_single_matches_batch(self, regression_data):
        X, y = regression_data
        model = GradientBooster(task="regression", num_rounds=5).fit(X, y)
        assert model.predict_single(X[7]) == model.predict_batch(X)[7]

    def test_predict_single_rejects_matrix(self, regression_data):
        X, y = regression_data
        model = GradientBooster(task="regression", num_rounds=2).fit(X, y)
        with pytest.raises(InputError):
            model.predict_single(X[:2])

    def test_short_vector_warns_and_degrades(self):
        rng = np.random.default_rng(4)
        X = rng.random((60, 2))
        y = (X[:, 1] > 0.5).astype(float)
        model = GradientBooster(num_rounds=5, max_depth=2).fit(X, y)

        with pytest.warns(FeatureMismatchWarning):
            out = model.predict_batch(X[:, :1])
        assert out.shape == (60,)
        assert np.all(np.isfinite(out))

    def test_wider_vector_does_not_warn(self, separable):
        X, y = separable
        model = GradientBooster(num_rounds=5, min_child_weight=0.0).fit(X, y)
        wide = np.hstack([X, np.ones((4, 2))])
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            np.testing.assert_array_equal(model.predict(wide), model.predict(X))


# =============================================================================
# Feature importance
# =============================================================================

def test_feature_importance():
    rng = np.random.default_rng(5)
    X = rng.random((200, 3))
    y = (X[:, 0] > 0.5).astype(float)
    model = GradientBooster(num_rounds=10, max_depth=3).fit(X, y)

    gain = model.get_feature_importance()
    counts = model.get_feature_importance_counts()
    assert gain.shape == (3,)
    assert np.all(gain >= 0)
    assert np.argmax(gain) == 0
    assert counts.dtype.kind == "i"
    assert counts[0] > 0
    assert model.feature_importances_.sum() == pytest.approx(1.0)

    # Accessors return copies
    gain[0] = -1.0
    assert model.get_feature_importance()[0] > 0


# =============================================================================
# Configuration
# =============================================================================

class TestConfig:

    def test_defaults(self):
        params = GradientBooster().get_params()
        assert params["learning_rate"] == 0.3
        assert params["max_depth"] == 4
        assert params["min_child_weight"] == 1.0
        assert params["num_rounds"] == 100
        assert params["task"] == "classification"
        assert params["reg_lambda"] == 1.0
        assert params["gamma"] == 0.0
        assert params["subsample"] == 1.0
        assert params["colsample_bytree"] == 1.0
        assert params["seed"] == 1337

    def test_aliases(self):
        model = GradientBooster(n_estimators=7, eta=0.1, random_state=3)
        assert model.num_rounds == 7
        assert model.learning_rate == 0.1
        assert model.seed == 3

    def test_binary_alias_is_normalized_on_fit(self, separable):
        X, y = separable
        model = GradientBooster(task="binary", num_rounds=2).fit(X, y)
        assert model.task == "classification"

    def test_set_params(self):
        model = GradientBooster().set_params(max_depth=2, gamma=0.5)
        assert model.max_depth == 2
        assert model.get_params()["gamma"] == 0.5
        with pytest.raises(ConfigError):
            model.set_params(num_leaves=31)

    def test_score_follows_fitted_task(self, regression_data):
        X, y = regression_data
        model = GradientBooster(task="regression", num_rounds=30).fit(X, y)
        model.set_params(task="binary")

        assert model.score(X, y) == pytest.approx(r2_score(y, model.predict(X)))
        assert model.score(X, y) > 0.9

    @pytest.mark.parametrize(
        "params",
        [
            {"learning_rate": 0.0},
            {"max_depth": -1},
            {"min_child_weight": -1.0},
            {"num_rounds": -5},
            {"num_rounds": 0},
            {"reg_lambda": -0.1},
            {"gamma": -1.0},
            {"subsample": -0.5},
            {"colsample_bytree": -0.5},
            {"task": "multiclass"},
        ],
    )
    def test_invalid_params_raise(self, separable, params):
        X, y = separable
        with pytest.raises(ConfigError):
            GradientBooster(**params).fit(X, y)

    def test_repr_shows_non_defaults(self):
        assert repr(GradientBooster(max_depth=6)) == "GradientBooster(max_depth=6)"


# =============================================================================
# Input errors
# =============================================================================

class TestInputErrors:

    @pytest.mark.parametrize(
        "X, y",
        [
            ([], []),
            ([[], []], [0.0, 1.0]),
            ([[1.0, 2.0], [3.0]], [0.0, 1.0]),
            ([[1.0], [2.0], [3.0]], [0.0, 1.0]),
            ([[1.0], [np.nan]], [0.0, 1.0]),
            ([[1.0], [2.0]], [0.0, np.inf]),
        ],
    )
    def test_bad_training_data(self, X, y):
        with pytest.raises(InputError):
            GradientBooster(num_rounds=2).fit(X, y)

    def test_failed_fit_leaves_model_untrained(self):
        model = GradientBooster(num_rounds=2)
        with pytest.raises(InputError):
            model.fit([[1.0], [2.0]], [1.0])
        with pytest.raises(UntrainedModelError):
            model.predict([[1.0]])

    def test_eval_set_width_mismatch(self, separable):
        X, y = separable
        with pytest.raises(InputError):
            GradientBooster(num_rounds=2).fit(X, y, eval_set=(np.ones((2, 3)), [0.0, 1.0]))

    def test_predict_before_fit(self):
        model = GradientBooster()
        with pytest.raises(UntrainedModelError):
            model.predict_batch([[1.0]])
        with pytest.raises(UntrainedModelError):
            model.predict_single([1.0])
        with pytest.raises(UntrainedModelError):
            model.predict_with_timestamp("2024-01-01T00:00:00Z")
        with pytest.raises(UntrainedModelError):
            model.get_feature_importance()

    def test_untrained_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            GradientBooster().predict_raw([[0.0]])


# =============================================================================
# Timestamp entry points
# =============================================================================

def test_fit_and_predict_with_timestamps():
    start = pd.Timestamp("2024-03-04T00:00:00Z")
    stamps = [start + pd.Timedelta(hours=i) for i in range(24 * 21)]
    y = np.array([1.0 if t.dayofweek >= 5 else 0.0 for t in stamps])
    temps = [[float(t.hour)] for t in stamps]

    model = GradientBooster(num_rounds=40, max_depth=3).fit_with_timestamps(stamps, y, temps)
    assert model.n_features_ == 14

    # 2024-03-16 is a Saturday, 2024-03-13 a Wednesday
    assert model.predict_with_timestamp("2024-03-16T10:00:00Z", [10.0]) > 0.5
    assert model.predict_with_timestamp("2024-03-13T10:00:00Z", [10.0]) < 0.5

    batch = model.predict_batch_with_timestamps(
        ["2024-03-16T10:00:00Z", "2024-03-13T10:00:00Z"], [[10.0], [10.0]]
    )
    assert batch.shape == (2,)
    assert batch[0] > 0.5 > batch[1]


def test_fit_with_timestamps_eval_set():
    stamps = [1_700_000_000_000 + i * 3_600_000 for i in range(48)]
    y = np.sin(np.arange(48) * 2 * np.pi / 24)
    model = GradientBooster(task="regression", num_rounds=5)
    model.fit_with_timestamps(stamps[:36], y[:36], eval_set=(stamps[36:], y[36:]))
    assert len(model.training_history_["val_loss"]) == 5


def test_predict_batch_with_no_timestamps(separable):
    X, y = separable
    model = GradientBooster(num_rounds=2, min_child_weight=0.0).fit(X, y)
    assert model.predict_batch_with_timestamps([]).shape == (0,)
