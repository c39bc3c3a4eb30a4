import os
import sys

import pandas as pd

from artist_evaluation import (feature_importance, plot_confusion_matrix, plot_feature_importance,
                               plot_model_comparison, plot_roc_curves, plot_top_words, plot_tuning_results,
                               save_metrics, summarize_resamples)
from artist_models import (collect_tuning_metrics, create_folds, finalize_pipeline, fit_resamples, last_fit,
                           make_logistic_regression_pipeline, make_random_forest_pipeline, make_tuning_grid,
                           select_best, tune_logistic_regression)
from lyrics_features import FEATURE_SETS, ensure_nltk_resources, extract_features, top_words_by_artist
from lyrics_loading import (ARTIST_COLUMN, PROCESSED_FILE, analyze_artist_distribution, create_train_test_split,
                            encode_artist, load_and_preprocess_data)

DEFAULT_OUTPUT_DIR = "outputs"


def run_random_forest(feature_set, train_df, y_train, test_df, y_test, folds, output_dir):
    """Resampled CV estimate, final fit and plots for the random forest on one feature set."""
    name = f"RandomForest_{feature_set}"
    print(f"\n--- Random Forest ({feature_set}) ---")

    fold_metrics = fit_resamples(make_random_forest_pipeline(feature_set), train_df, y_train, folds)
    fold_metrics.to_csv(os.path.join(output_dir, f"cv_metrics_{name}.csv"), index=False)
    print("Cross-validated metrics:")
    print(summarize_resamples(fold_metrics))

    model, results = last_fit(make_random_forest_pipeline(feature_set), train_df, y_train, test_df, y_test,
                              name=name, model_path=os.path.join(output_dir, f"{name}.joblib"))
    results["cv"] = summarize_resamples(fold_metrics)["mean"]

    return model, results


def run_logistic_regression(feature_set, train_df, y_train, test_df, y_test, folds, output_dir, grid):
    """Grid search over penalty and mixture, then final fit with the best combination."""
    name = f"LogisticRegression_{feature_set}"
    print(f"\n--- Elastic-Net Logistic Regression ({feature_set}) ---")

    base_pipeline = make_logistic_regression_pipeline(feature_set)
    search = tune_logistic_regression(base_pipeline, train_df, y_train, folds, grid)

    tuning_metrics = collect_tuning_metrics(search)
    tuning_metrics.to_csv(os.path.join(output_dir, f"tuning_{name}.csv"), index=False)
    plot_tuning_results(tuning_metrics, os.path.join(output_dir, f"tuning_{name}.png"))

    model, results = last_fit(finalize_pipeline(base_pipeline, search), train_df, y_train, test_df, y_test,
                              name=name, model_path=os.path.join(output_dir, f"{name}.joblib"),
                              expected_params=search.best_params_)
    results["best_params"] = select_best(search)
    results["cv"] = tuning_metrics.iloc[0]

    return model, results


### DRIVER ###

def main():
    # --- Argument Validation ---
    if len(sys.argv) < 2:
        print("Error: Please provide the path to the folder holding the lyrics CSV files.")
        print("Usage: python lyric_based_classification.py <path_to_lyrics_data> [output_dir]")
        sys.exit(1)
    data_dir = sys.argv[1]
    if not os.path.isdir(data_dir):
        print(f"Error: The specified path '{data_dir}' is not a valid directory.")
        sys.exit(1)
    output_dir = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_OUTPUT_DIR
    os.makedirs(output_dir, exist_ok=True)

    if not ensure_nltk_resources():
        sys.exit(1)

    # 1. Load Data
    processed_file = os.path.join(output_dir, PROCESSED_FILE)
    if os.path.exists(processed_file):
        print(f"Loading preprocessed data from {processed_file}...")
        data = pd.read_csv(processed_file)
    else:
        print("Preprocessed data not found. Running full preprocessing...")
        data = load_and_preprocess_data(data_dir, output_csv=processed_file)

    if data is None:
        sys.exit(1)

    analyze_artist_distribution(data)

    # 2. Exploration
    word_counts = top_words_by_artist(data, top_n=15)
    plot_top_words(word_counts, os.path.join(output_dir, "top_words_by_artist.png"))

    # 3. Train/Test Split
    train_df, test_df = create_train_test_split(data)
    y_train = encode_artist(train_df[ARTIST_COLUMN])
    y_test = encode_artist(test_df[ARTIST_COLUMN])

    folds = create_folds()
    grid = make_tuning_grid()

    # 4. Model Training and Evaluation
    all_metrics = {}
    roc_inputs = {}

    for feature_set in FEATURE_SETS:
        features_df, _ = extract_features(train_df, feature_set)
        print(f"Example '{feature_set}' features: {', '.join(features_df.columns[:10])}")

        rf_model, rf_results = run_random_forest(feature_set, train_df, y_train, test_df, y_test, folds, output_dir)
        lr_model, lr_results = run_logistic_regression(feature_set, train_df, y_train, test_df, y_test, folds,
                                                       output_dir, grid)

        for model, results, label in [(rf_model, rf_results, "RandomForest"),
                                      (lr_model, lr_results, "LogisticRegression")]:
            name = f"{label}_{feature_set}"
            plot_confusion_matrix(results["confusion_matrix"], os.path.join(output_dir, f"confusion_matrix_{name}.png"),
                                  title=f"Confusion Matrix ({name})")
            plot_feature_importance(feature_importance(model), os.path.join(output_dir, f"importance_{name}.png"),
                                    title=f"Variable Importance ({name})")
            roc_inputs[name] = (y_test, results.pop("y_proba"))
            results.pop("y_pred")
            all_metrics[name] = results

    plot_roc_curves(roc_inputs, os.path.join(output_dir, "roc_curves.png"))
    save_metrics(all_metrics, os.path.join(output_dir, "all_model_metrics.json"))

    # 5. Summary Table and Visualization
    print("\n--- Model Performance Summary (test set) ---")
    metric_names = ["roc_auc", "accuracy", "sensitivity", "specificity"]
    metrics_table = pd.DataFrame.from_dict(
        {name: {metric: results[metric] for metric in metric_names} for name, results in all_metrics.items()},
        orient="index",
    )
    print(metrics_table)
    metrics_table.to_csv(os.path.join(output_dir, "model_summary.csv"))
    plot_model_comparison(metrics_table, os.path.join(output_dir, "model_comparison.png"))


if __name__ == "__main__":
    main()
