from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))
from tsboost import (  # noqa: E402
    GradientBooster,
    classification_metrics,
    feature_names,
    forecast_windowed,
    forecast_with_timestamps,
)


def parse_args():
    p = argparse.ArgumentParser()
    p.add_argument("--days", type=int, default=28, help="Length of the synthetic hourly history")
    p.add_argument("--holdout-days", type=int, default=7)
    p.add_argument("--rounds", type=int, default=100)
    p.add_argument("--seed", type=int, default=1337)
    p.add_argument("--plot-dir", type=str, default="", help="Save forecast plots here (needs matplotlib)")
    return p.parse_args()


# -------------------------------------------------------
# SYNTHETIC DATA
# -------------------------------------------------------

def make_history(days: int, seed: int) -> pd.DataFrame:
    """Hourly load with a daily cycle, a weekend dip and a temperature effect."""
    rng = np.random.default_rng(seed)
    stamps = pd.date_range("2024-03-04", periods=24 * days, freq="60min", tz="UTC")
    hour = stamps.hour.to_numpy()
    weekend = np.asarray(stamps.dayofweek >= 5, dtype=float)
    temperature = 12 + 6 * np.sin(2 * np.pi * (hour - 9) / 24) + rng.normal(0, 1, len(stamps))

    load = (
        50
        + 15 * np.sin(2 * np.pi * (hour - 6) / 24)
        - 10 * weekend
        + 0.8 * temperature
        + rng.normal(0, 1.5, len(stamps))
    )
    return pd.DataFrame({"timestamp": stamps, "temperature": temperature, "load": load})


# -------------------------------------------------------
# DEMOS
# -------------------------------------------------------

def night_classifier(df: pd.DataFrame, holdout: int, rounds: int, seed: int) -> None:
    stamps = list(df["timestamp"])
    y = np.array([1.0 if (t.hour >= 18 or t.hour < 6) else 0.0 for t in stamps])
    n_train = len(stamps) - holdout

    model = GradientBooster(num_rounds=rounds, max_depth=5, seed=seed)
    model.fit_with_timestamps(stamps[:n_train], y[:n_train])
    proba = model.predict_batch_with_timestamps(stamps[n_train:])

    m = classification_metrics(y[n_train:], proba)
    print(f"accuracy={m['accuracy']:.3f} f1={m['f1']:.3f} confusion={m['confusion']}")

    importance = pd.Series(model.feature_importances_, index=feature_names())
    print(importance.sort_values(ascending=False).head(5).round(4))


def load_forecast(df: pd.DataFrame, holdout: int, rounds: int, seed: int):
    custom = df[["temperature"]].to_numpy()
    result = forecast_with_timestamps(
        list(df["timestamp"]),
        df["load"].to_numpy(),
        len(df) - holdout,
        custom_features=custom,
        num_rounds=rounds,
        max_depth=4,
        learning_rate=0.1,
        seed=seed,
    )
    print(pd.Series(result.metrics).round(4).to_string())

    importance = pd.Series(
        result.model.get_feature_importance(), index=feature_names(["temperature"])
    )
    print(importance.sort_values(ascending=False).head(5).round(2))
    return result


def lag_forecast(df: pd.DataFrame, holdout: int, rounds: int, seed: int):
    series = df["load"].to_numpy()
    result = forecast_windowed(
        series,
        lag=24,
        train_len=len(series) - holdout,
        forecast_len=holdout,
        num_rounds=rounds,
        max_depth=4,
        learning_rate=0.1,
        seed=seed,
    )
    print(pd.Series(result.metrics).round(4).to_string())
    return result


def plot_forecasts(results: dict, out_dir: Path) -> None:
    import matplotlib.pyplot as plt

    out_dir.mkdir(parents=True, exist_ok=True)
    for name, result in results.items():
        fig, ax = plt.subplots(figsize=(10, 4))
        ax.plot(result.truth, label="truth")
        ax.plot(result.predictions, label="forecast")
        ax.set_title(f"{name} (RMSE={result.metrics['rmse']:.3f})")
        ax.legend()
        fig.tight_layout()
        fig.savefig(out_dir / f"{name}.png", dpi=120)
        plt.close(fig)


def main():
    args = parse_args()
    df = make_history(args.days, args.seed)
    holdout = 24 * args.holdout_days

    print("\n ===== NIGHT CLASSIFIER ===== ")
    night_classifier(df, holdout, args.rounds, args.seed)

    print("\n ===== LOAD FORECAST (timestamp features) ===== ")
    calendar = load_forecast(df, holdout, args.rounds, args.seed)

    print("\n ===== LOAD FORECAST (lag windows) ===== ")
    lagged = lag_forecast(df, holdout, args.rounds, args.seed)

    if args.plot_dir:
        plot_forecasts({"calendar": calendar, "lagged": lagged}, Path(args.plot_dir))
        print(f"\nSaved plots to {Path(args.plot_dir).resolve()}")


if __name__ == "__main__":
    main()
