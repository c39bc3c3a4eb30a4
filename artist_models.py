import os

import joblib
import numpy as np
import pandas as pd
from imblearn.pipeline import Pipeline as ImbPipeline
from imblearn.under_sampling import RandomUnderSampler
from sklearn.base import clone
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import make_scorer, recall_score
from sklearn.model_selection import GridSearchCV, StratifiedKFold, cross_validate
from tqdm import tqdm

from artist_evaluation import evaluate_model
from lyrics_features import MAX_TOKENS, NGRAM_RANGE, make_feature_transformer
from lyrics_loading import RANDOM_STATE

CV_FOLDS = 10
N_TREES = 1000
GRID_LEVELS = 5
PENALTY_RANGE = (-4, 0)  # log10
MIXTURE_RANGE = (0.0, 1.0)

# Sensitivity is recall of the positive artist, specificity recall of the other one
SCORING = {
    "roc_auc": "roc_auc",
    "accuracy": "accuracy",
    "sensitivity": make_scorer(recall_score, pos_label=1),
    "specificity": make_scorer(recall_score, pos_label=0),
}
METRICS = list(SCORING)


### MODEL SPECIFICATIONS ###

def _make_pipeline(classifier, feature_set, max_tokens, ngram_range, random_state):
    # Downsampling only touches training folds; imblearn skips samplers at predict time
    return ImbPipeline([
        ("features", make_feature_transformer(feature_set, max_tokens, ngram_range)),
        ("downsample", RandomUnderSampler(sampling_strategy="majority", random_state=random_state)),
        ("clf", classifier),
    ])


def make_random_forest_pipeline(feature_set="tfidf", n_estimators=N_TREES, max_tokens=MAX_TOKENS,
                                ngram_range=NGRAM_RANGE, random_state=RANDOM_STATE):
    """
    Lyrics features -> majority-class downsampling -> random forest with a fixed
    number of trees. Variable importance is the forest's impurity decrease.
    """
    forest = RandomForestClassifier(n_estimators=n_estimators, random_state=random_state, n_jobs=-1)
    return _make_pipeline(forest, feature_set, max_tokens, ngram_range, random_state)


def make_logistic_regression_pipeline(feature_set="tfidf", penalty=0.01, mixture=0.5, max_tokens=MAX_TOKENS,
                                      ngram_range=NGRAM_RANGE, random_state=RANDOM_STATE):
    """
    Lyrics features -> majority-class downsampling -> elastic-net logistic regression.

    Args:
        feature_set (str): "tfidf" or "ngram".
        penalty (float): Total regularization amount; the estimator's C is 1 / penalty.
        mixture (float): Proportion of L1 in the penalty (0 = ridge, 1 = lasso).

    Returns:
        imblearn.pipeline.Pipeline: Unfitted pipeline.
    """
    if penalty <= 0:
        raise ValueError(f"Penalty must be positive, got {penalty}.")
    if not 0.0 <= mixture <= 1.0:
        raise ValueError(f"Mixture must lie in [0, 1], got {mixture}.")

    logistic = LogisticRegression(
        penalty="elasticnet",
        solver="saga",         # only solver supporting elastic net
        C=1.0 / penalty,
        l1_ratio=mixture,
        max_iter=5000,
        random_state=random_state,
    )
    return _make_pipeline(logistic, feature_set, max_tokens, ngram_range, random_state)


def make_tuning_grid(levels=GRID_LEVELS, penalty_range=PENALTY_RANGE, mixture_range=MIXTURE_RANGE):
    """
    Regular grid over penalty (log10 scale) and mixture, with `levels` values each.

    Returns:
        dict: Parameter grid for the logistic regression pipeline (levels ** 2 combinations).
    """
    if levels < 2:
        raise ValueError("A regular grid needs at least 2 levels per parameter.")

    penalties = np.logspace(penalty_range[0], penalty_range[1], levels)
    mixtures = np.linspace(mixture_range[0], mixture_range[1], levels)

    return {
        "clf__C": [float(1.0 / p) for p in penalties],
        "clf__l1_ratio": [float(m) for m in mixtures],
    }


### RESAMPLING ###

def create_folds(n_splits=CV_FOLDS, random_state=RANDOM_STATE):
    """Stratified K-fold so every fold keeps the artist balance of the training split."""
    return StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)


def fit_resamples(pipeline, X, y, cv, n_jobs=-1):
    """
    Cross-validates a pipeline and collects one row of metrics per fold.

    Args:
        pipeline: Unfitted pipeline.
        X (pd.DataFrame): Training songs.
        y (np.ndarray): Binary artist target.
        cv: Cross-validation splitter.

    Returns:
        pd.DataFrame: Columns fold, roc_auc, accuracy, sensitivity, specificity.
    """
    scores = cross_validate(pipeline, X, y, cv=cv, scoring=SCORING, n_jobs=n_jobs)

    fold_metrics = pd.DataFrame({metric: scores[f"test_{metric}"] for metric in METRICS})
    fold_metrics.insert(0, "fold", np.arange(1, len(fold_metrics) + 1))

    return fold_metrics


def tune_logistic_regression(pipeline, X, y, cv, grid=None, n_jobs=-1):
    """
    Grid search over penalty and mixture, scored on every metric and refit on ROC AUC.

    Returns:
        GridSearchCV: The fitted search; best_estimator_ is refit on all of X.
    """
    if grid is None:
        grid = make_tuning_grid()

    search = GridSearchCV(
        pipeline,
        param_grid=grid,
        scoring=SCORING,
        refit="roc_auc",
        cv=cv,
        n_jobs=n_jobs,
        verbose=1,
    )
    search.fit(X, y)

    print(f"Best CV ROC AUC: {search.best_score_:.4f}")
    print(f"Best params: {select_best(search)}")

    return search


def collect_tuning_metrics(search):
    """Tidy summary of a grid search: penalty, mixture, and mean/std of each metric, best first."""
    results = pd.DataFrame(search.cv_results_)

    tuning_metrics = pd.DataFrame({
        "penalty": 1.0 / results["param_clf__C"].astype(float),
        "mixture": results["param_clf__l1_ratio"].astype(float),
    })
    for metric in METRICS:
        tuning_metrics[f"mean_{metric}"] = results[f"mean_test_{metric}"]
        tuning_metrics[f"std_{metric}"] = results[f"std_test_{metric}"]

    return tuning_metrics.sort_values("mean_roc_auc", ascending=False, kind="stable").reset_index(drop=True)


def select_best(search):
    best = search.best_params_
    return {
        "penalty": float(1.0 / best["clf__C"]),
        "mixture": float(best["clf__l1_ratio"]),
        "roc_auc": float(search.best_score_),
    }


def finalize_pipeline(pipeline, search):
    """Unfitted copy of `pipeline` with the grid search's best parameters."""
    return clone(pipeline).set_params(**search.best_params_)


### FINAL FIT ###

def fit_model(pipeline, X, y, name="Model"):
    with tqdm(total=1, desc=f"Training {name}") as pbar:
        pipeline.fit(X, y)
        pbar.update(1)

    return pipeline


def last_fit(pipeline, X_train, y_train, X_test, y_test, name="Model", model_path=None, expected_params=None):
    """
    Fits the pipeline on the full training split and evaluates it once on the test split.

    Args:
        pipeline: Unfitted pipeline (usually finalized with tuned parameters).
        name (str): Model name for progress and reports.
        model_path (str, optional): If given, a model cached there is reused and a
            freshly trained one is saved there.
        expected_params (dict, optional): Parameters a cached model must match to be reused.

    Returns:
        tuple: (fitted pipeline, evaluation results dict)
    """
    if model_path is None:
        model = fit_model(pipeline, X_train, y_train, name)
    else:
        model = load_or_train(model_path, lambda: fit_model(pipeline, X_train, y_train, name),
                              expected_params=expected_params)

    results = evaluate_model(model, X_test, y_test, name=name)

    return model, results


def has_params(model, params):
    """True if the model's parameters equal `params` (floats compared with a tolerance)."""
    current = model.get_params()
    for key, value in params.items():
        if key not in current:
            return False
        if isinstance(value, float):
            if not np.isclose(current[key], value):
                return False
        elif current[key] != value:
            return False
    return True


def load_or_train(model_path, train_fn, expected_params=None):
    """
    Loads a fitted model saved with joblib, or trains it with `train_fn` and saves it.

    Args:
        model_path (str): Location of the cached model.
        train_fn (callable): Zero-argument function returning a fitted model.
        expected_params (dict, optional): Parameters the cached model must have;
            a cached model with different values is retrained and overwritten.
    """
    if os.path.exists(model_path):
        model = joblib.load(model_path)
        if expected_params is None or has_params(model, expected_params):
            print(f"Loaded existing model from {model_path}.")
            return model
        print(f"Cached model at {model_path} was trained with different parameters, retraining...")

    model = train_fn()
    joblib.dump(model, model_path)
    print(f"Model saved to {model_path}")

    return model
