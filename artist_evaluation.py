import json

import matplotlib
matplotlib.use('Agg')  # Prevents GUI from popping up
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import (accuracy_score, auc, classification_report, confusion_matrix, recall_score,
                             roc_auc_score, roc_curve)

from lyrics_features import rename_feature_columns
from lyrics_loading import ARTIST_COLUMN, BEYONCE, TAYLOR_SWIFT

# Display order matches the encoded target: 0 -> Taylor Swift, 1 -> Beyoncé
CLASS_LABELS = [TAYLOR_SWIFT, BEYONCE]
ARTIST_PALETTE = {BEYONCE: "goldenrod", TAYLOR_SWIFT: "mediumpurple"}


### METRICS ###

def compute_metrics(y_true, y_proba, threshold=0.5):
    """
    Computes ROC AUC, accuracy, sensitivity and specificity for a binary classifier.

    Args:
        y_true (array-like): True labels (1 = positive artist).
        y_proba (array-like): Predicted probability of the positive artist.
        threshold (float): Probability at or above which a song is assigned the positive artist.

    Returns:
        dict: roc_auc, accuracy, sensitivity, specificity.
    """
    y_true = np.asarray(y_true)
    y_pred = (np.asarray(y_proba) >= threshold).astype(int)

    return {
        "roc_auc": roc_auc_score(y_true, y_proba),
        "accuracy": accuracy_score(y_true, y_pred),
        "sensitivity": recall_score(y_true, y_pred, pos_label=1, zero_division=0),
        "specificity": recall_score(y_true, y_pred, pos_label=0, zero_division=0),
    }


def evaluate_model(model, X_test, y_test, name="Model", threshold=0.5):
    """
    Evaluates a fitted classifier on held-out songs.

    Args:
        model: Fitted pipeline exposing predict_proba.
        X_test (pd.DataFrame): Test songs.
        y_test (np.ndarray): Binary artist target for the test songs.
        name (str): Model name used in the printed report.
        threshold (float): Decision threshold on the positive-artist probability.

    Returns:
        dict: The metrics from compute_metrics plus confusion_matrix, y_proba and y_pred.
    """
    y_proba = model.predict_proba(X_test)[:, 1]
    y_pred = (y_proba >= threshold).astype(int)

    results = compute_metrics(y_test, y_proba, threshold)
    cm = confusion_matrix(y_test, y_pred, labels=[0, 1])

    report_string = classification_report(
        y_test,
        y_pred,
        labels=[0, 1],
        target_names=CLASS_LABELS,
        zero_division=0,
    )

    print(f"\n--- Evaluation Report: {name} ---")
    print(f"ROC AUC: {results['roc_auc']:.4f}")
    print(f"Accuracy: {results['accuracy']:.4f}")
    print(f"Sensitivity ({BEYONCE}): {results['sensitivity']:.4f}")
    print(f"Specificity ({TAYLOR_SWIFT}): {results['specificity']:.4f}")
    print("\nClassification Report:\n", report_string)

    results["confusion_matrix"] = cm
    results["y_proba"] = y_proba
    results["y_pred"] = y_pred

    return results


def summarize_resamples(fold_metrics):
    """Mean and standard error of each metric across cross-validation folds."""
    values = fold_metrics.drop(columns=["fold"], errors="ignore")
    n = len(values)

    return pd.DataFrame({
        "mean": values.mean(),
        "std_err": values.std(ddof=1) / np.sqrt(n),
        "n": n,
    })


def feature_importance(model):
    """
    Variable importance of a fitted pipeline, indexed by readable feature names.

    Random forests report impurity importance; logistic regression reports its
    signed coefficients (positive values point to Beyoncé).

    Returns:
        pd.Series: Importances sorted by absolute value, largest first.
    """
    names = rename_feature_columns(model.named_steps["features"].get_feature_names_out())
    clf = model.named_steps["clf"]

    if hasattr(clf, "feature_importances_"):
        values = clf.feature_importances_
    elif hasattr(clf, "coef_"):
        values = clf.coef_[0]
    else:
        raise ValueError(f"{type(clf).__name__} exposes neither feature_importances_ nor coef_.")

    importance = pd.Series(values, index=names, name="importance")

    return importance.reindex(importance.abs().sort_values(ascending=False).index)


### PLOTS ###

def plot_roc_curves(curves, output_file, title="ROC Curves on Test Set"):
    """
    Plots one ROC curve per model against the chance diagonal.

    Args:
        curves (dict): Model name -> (y_true, y_proba).
        output_file (str): Path of the saved PNG.
    """
    fig, ax = plt.subplots(figsize=(6, 6))
    for name, (y_true, y_proba) in curves.items():
        fpr, tpr, _ = roc_curve(y_true, y_proba)
        ax.plot(fpr, tpr, label=f"{name} (AUC = {auc(fpr, tpr):.3f})")

    ax.plot([0, 1], [0, 1], "k--", label="Chance")
    ax.set_xlabel("1 - Specificity")
    ax.set_ylabel("Sensitivity")
    ax.set_title(title)
    ax.legend(loc="lower right")
    fig.tight_layout()
    fig.savefig(output_file)
    plt.close(fig)
    print(f"ROC curves saved to {output_file}")


def plot_confusion_matrix(cm, output_file, labels=CLASS_LABELS, title="Confusion Matrix"):
    plt.figure(figsize=(6, 5))
    sns.heatmap(pd.DataFrame(cm, index=labels, columns=labels), annot=True, fmt="d", cmap="Blues", cbar=False)
    plt.title(title)
    plt.ylabel("True Artist")
    plt.xlabel("Predicted Artist")
    plt.tight_layout()
    plt.savefig(output_file)
    plt.close()
    print(f"Confusion matrix saved to {output_file}")


def plot_feature_importance(importance, output_file, top_n=20, title="Variable Importance"):
    """
    Horizontal bar chart of the `top_n` most important features. Signed
    importances (logistic regression coefficients) are coloured by the artist
    they point to.

    Returns:
        pd.DataFrame: The plotted rows (feature, importance, artist).
    """
    top = importance.head(top_n)
    plot_df = pd.DataFrame({"feature": top.index, "importance": top.to_numpy()})
    plot_df[ARTIST_COLUMN] = np.where(plot_df["importance"] >= 0, BEYONCE, TAYLOR_SWIFT)

    plt.figure(figsize=(8, max(4, 0.3 * len(plot_df))))
    if (plot_df["importance"] < 0).any():
        sns.barplot(data=plot_df, x="importance", y="feature", hue=ARTIST_COLUMN, dodge=False,
                    hue_order=[BEYONCE, TAYLOR_SWIFT], palette=ARTIST_PALETTE)
    else:
        sns.barplot(data=plot_df, x="importance", y="feature", color="steelblue")
    plt.title(title)
    plt.xlabel("Importance")
    plt.ylabel("")
    plt.tight_layout()
    plt.savefig(output_file)
    plt.close()
    print(f"Feature importance plot saved to {output_file}")

    return plot_df


def plot_tuning_results(tuning_metrics, output_file, metric="roc_auc"):
    plt.figure(figsize=(8, 5))
    sns.lineplot(data=tuning_metrics, x="penalty", y=f"mean_{metric}", hue="mixture", marker="o",
                 palette="viridis")
    plt.xscale("log")
    plt.title(f"Tuning Results ({metric})")
    plt.ylabel(f"Mean CV {metric}")
    plt.xlabel("Penalty (log scale)")
    plt.tight_layout()
    plt.savefig(output_file)
    plt.close()
    print(f"Tuning results plot saved to {output_file}")


def plot_top_words(word_counts, output_file):
    """Side-by-side bar charts of each artist's most frequent words."""
    artists = list(word_counts[ARTIST_COLUMN].unique())
    fig, axes = plt.subplots(1, len(artists), figsize=(6 * len(artists), 6), squeeze=False)

    for ax, artist in zip(axes[0], artists):
        artist_counts = word_counts[word_counts[ARTIST_COLUMN] == artist]
        sns.barplot(data=artist_counts, x="count", y="word", color="steelblue", ax=ax)
        ax.set_title(artist)
        ax.set_ylabel("")

    fig.suptitle("Most Frequent Words per Artist")
    fig.tight_layout()
    fig.savefig(output_file)
    plt.close(fig)
    print(f"Top words plot saved to {output_file}")


def plot_model_comparison(metrics_table, output_file, metric="roc_auc"):
    plt.figure(figsize=(8, 5))
    metrics_table[metric].astype(float).plot(kind="bar")
    plt.title(f"Model Comparison ({metric}, test set)")
    plt.ylabel(metric)
    plt.xticks(rotation=45, ha="right")
    plt.tight_layout()
    plt.savefig(output_file)
    plt.close()
    print(f"Model comparison chart saved to {output_file}")


### SAVING ###

def convert_to_serializable(obj):
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (pd.Series, pd.DataFrame)):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def save_metrics(metrics, output_file):
    with open(output_file, "w") as f:
        json.dump(metrics, f, indent=4, default=convert_to_serializable)
    print(f"Metrics saved to {output_file}")
