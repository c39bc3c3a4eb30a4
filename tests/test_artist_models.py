import joblib
import numpy as np
import pytest
from imblearn.under_sampling import RandomUnderSampler
from sklearn.model_selection import ParameterGrid

from artist_models import (collect_tuning_metrics, create_folds, finalize_pipeline, fit_resamples, last_fit,
                           load_or_train, make_logistic_regression_pipeline, make_random_forest_pipeline,
                           make_tuning_grid, select_best, tune_logistic_regression)
from lyrics_loading import encode_artist


@pytest.fixture
def training_data(songs_df):
    return songs_df, encode_artist(songs_df["artist"])


def test_tuning_grid_is_regular():
    grid = make_tuning_grid(levels=3)

    assert len(list(ParameterGrid(grid))) == 9
    penalties = sorted(1.0 / c for c in grid["clf__C"])
    np.testing.assert_allclose(penalties, [1e-4, 1e-2, 1.0])
    np.testing.assert_allclose(grid["clf__l1_ratio"], [0.0, 0.5, 1.0])


def test_tuning_grid_needs_two_levels():
    with pytest.raises(ValueError):
        make_tuning_grid(levels=1)


def test_pipelines_downsample_majority_class(training_data):
    X, y = training_data
    pipeline = make_random_forest_pipeline("tfidf", n_estimators=5, max_tokens=20)

    assert isinstance(pipeline.named_steps["downsample"], RandomUnderSampler)
    features = pipeline.named_steps["features"].fit_transform(X)
    _, y_resampled = pipeline.named_steps["downsample"].fit_resample(features, y)
    counts = np.bincount(y_resampled)
    assert counts[0] == counts[1] == 30


def test_logistic_regression_pipeline_parameters():
    pipeline = make_logistic_regression_pipeline("ngram", penalty=0.1, mixture=0.25)
    clf = pipeline.named_steps["clf"]

    assert clf.C == pytest.approx(10.0)
    assert clf.l1_ratio == 0.25
    assert clf.solver == "saga"


def test_fit_resamples_returns_one_row_per_fold(training_data):
    X, y = training_data
    pipeline = make_random_forest_pipeline("tfidf", n_estimators=20, max_tokens=20)

    fold_metrics = fit_resamples(pipeline, X, y, create_folds(n_splits=3), n_jobs=1)

    assert list(fold_metrics.columns) == ["fold", "roc_auc", "accuracy", "sensitivity", "specificity"]
    assert list(fold_metrics["fold"]) == [1, 2, 3]
    values = fold_metrics.drop(columns="fold").to_numpy()
    assert ((values >= 0) & (values <= 1)).all()
    assert fold_metrics["roc_auc"].mean() > 0.9


def test_tune_logistic_regression(training_data):
    X, y = training_data
    pipeline = make_logistic_regression_pipeline("tfidf", max_tokens=20)

    search = tune_logistic_regression(pipeline, X, y, create_folds(n_splits=3), make_tuning_grid(levels=2), n_jobs=1)

    tuning_metrics = collect_tuning_metrics(search)
    assert len(tuning_metrics) == 4
    assert {"penalty", "mixture", "mean_roc_auc", "std_specificity"} <= set(tuning_metrics.columns)
    assert tuning_metrics["mean_roc_auc"].is_monotonic_decreasing

    best = select_best(search)
    assert best["roc_auc"] == pytest.approx(tuning_metrics["mean_roc_auc"].max())
    assert np.isclose(tuning_metrics["penalty"], best["penalty"]).any()
    assert best["mixture"] in {0.0, 1.0}

    final = finalize_pipeline(pipeline, search)
    assert final.named_steps["clf"].C == pytest.approx(1.0 / best["penalty"])
    assert not hasattr(final.named_steps["clf"], "coef_")


def test_last_fit_caches_model(training_data, tmp_path):
    X, y = training_data
    train_X, test_X = X.iloc[::2], X.iloc[1::2]
    train_y, test_y = y[::2], y[1::2]
    model_path = tmp_path / "forest.joblib"

    model, results = last_fit(make_random_forest_pipeline("tfidf", n_estimators=20, max_tokens=20),
                              train_X, train_y, test_X, test_y, model_path=str(model_path))

    assert model_path.exists()
    assert results["roc_auc"] > 0.9
    assert results["confusion_matrix"].sum() == len(test_X)

    reloaded = load_or_train(str(model_path), lambda: pytest.fail("model should be loaded from cache"))
    np.testing.assert_allclose(reloaded.predict_proba(test_X), model.predict_proba(test_X))


@pytest.mark.parametrize("penalty, mixture", [(0, 0.5), (-1.0, 0.5), (0.1, 1.5)])
def test_logistic_regression_pipeline_rejects_bad_parameters(penalty, mixture):
    with pytest.raises(ValueError):
        make_logistic_regression_pipeline("tfidf", penalty=penalty, mixture=mixture)


def test_cached_model_with_other_parameters_is_retrained(training_data, tmp_path):
    X, y = training_data
    model_path = str(tmp_path / "logistic.joblib")
    cached = make_logistic_regression_pipeline("tfidf", penalty=0.01, mixture=0.5, max_tokens=20).fit(X, y)
    joblib.dump(cached, model_path)

    same = load_or_train(model_path, lambda: pytest.fail("matching model should be reused"),
                         expected_params={"clf__C": 100.0, "clf__l1_ratio": 0.5})
    assert same.named_steps["clf"].C == pytest.approx(100.0)

    retrained = load_or_train(
        model_path,
        lambda: make_logistic_regression_pipeline("tfidf", penalty=1.0, mixture=0.0, max_tokens=20).fit(X, y),
        expected_params={"clf__C": 1.0, "clf__l1_ratio": 0.0},
    )
    assert retrained.named_steps["clf"].C == pytest.approx(1.0)
    assert joblib.load(model_path).named_steps["clf"].l1_ratio == 0.0
