import re
import string
from collections import Counter
from functools import lru_cache

import nltk
import pandas as pd
from nltk.corpus import stopwords
from nltk.tokenize import word_tokenize
from sklearn.compose import ColumnTransformer
from sklearn.feature_extraction.text import CountVectorizer, TfidfVectorizer
from tqdm import tqdm

from lyrics_loading import ARTIST_COLUMN, TEXT_COLUMN

MAX_TOKENS = 500
NGRAM_RANGE = (1, 2)
FEATURE_SETS = ("tfidf", "ngram")

NLTK_RESOURCES = {
    "corpora/stopwords": "stopwords",
    "tokenizers/punkt": "punkt",
    "tokenizers/punkt_tab": "punkt_tab",
}

# Curly quotes are common in scraped lyrics and are not part of string.punctuation
PUNCTUATION_PATTERN = re.compile(f"[{re.escape(string.punctuation)}‘’“”…]")


def ensure_nltk_resources():
    """
    Downloads the NLTK data used for tokenizing and stop-word removal (only needed once).

    Returns:
        bool: False if any resource could not be downloaded.
    """
    all_available = True
    for resource_path, package in NLTK_RESOURCES.items():
        try:
            nltk.data.find(resource_path)
        except LookupError:
            if not nltk.download(package, quiet=True):
                print(f"Error: Could not download NLTK resource '{package}'.")
                all_available = False

    return all_available


@lru_cache(maxsize=1)
def english_stop_words():
    return frozenset(stopwords.words("english"))


### TOKENIZATION ###

def preprocess_lyrics(text):
    """
    Preprocesses a lyric string by converting to lowercase, removing punctuation,
    tokenizing into words and removing English stopwords.

    Args:
        text (str): The input lyric text to preprocess.

    Returns:
        list: A list of cleaned word tokens.
    """
    if not isinstance(text, str):
        return []

    text = text.lower()
    text = PUNCTUATION_PATTERN.sub("", text)

    tokens = word_tokenize(text)
    stop_words = english_stop_words()

    return [word for word in tokens if word not in stop_words]


### VECTORIZERS ###

def make_tfidf_vectorizer(max_tokens=MAX_TOKENS):
    """
    Builds a tf-idf vectorizer over stop-word-filtered tokens, restricted to the
    `max_tokens` most frequent tokens of the corpus it is fitted on.
    """
    return TfidfVectorizer(
        tokenizer=preprocess_lyrics,
        token_pattern=None,
        lowercase=False,       # preprocess_lyrics lowercases
        max_features=max_tokens,
        norm="l1",
        smooth_idf=True,
    )


def make_ngram_vectorizer(ngram_range=NGRAM_RANGE, max_tokens=MAX_TOKENS):
    """
    Builds an n-gram term-count vectorizer. N-grams are formed after stop words
    are removed, so "love you baby" contributes the bigram "love baby".
    """
    return CountVectorizer(
        tokenizer=preprocess_lyrics,
        token_pattern=None,
        lowercase=False,
        ngram_range=ngram_range,
        max_features=max_tokens,
    )


def make_feature_transformer(feature_set="tfidf", max_tokens=MAX_TOKENS, ngram_range=NGRAM_RANGE):
    """
    Wraps the chosen vectorizer so that it reads the lyrics column of a song DataFrame.

    Args:
        feature_set (str): "tfidf" or "ngram".
        max_tokens (int): Number of most frequent tokens (or n-grams) to keep.
        ngram_range (tuple): Min and max n for the "ngram" feature set.

    Returns:
        ColumnTransformer: Unfitted transformer; output columns are prefixed with the feature set name.
    """
    if feature_set == "tfidf":
        vectorizer = make_tfidf_vectorizer(max_tokens)
    elif feature_set == "ngram":
        vectorizer = make_ngram_vectorizer(ngram_range, max_tokens)
    else:
        raise ValueError(f"Invalid feature set '{feature_set}'. Choose from {FEATURE_SETS}.")

    return ColumnTransformer(
        transformers=[(feature_set, vectorizer, TEXT_COLUMN)],
        remainder="drop",
    )


def rename_feature_columns(names):
    """Strips the transformer prefix from feature names, e.g. 'tfidf__love' -> 'love'."""
    return [name.split("__", 1)[-1] for name in names]


def extract_features(df, feature_set="tfidf", max_tokens=MAX_TOKENS, ngram_range=NGRAM_RANGE):
    """
    Fits the feature transformer on `df` and returns the resulting feature matrix
    as a DataFrame with readable column names. Meant for inspection; the models
    fit their own transformer inside each pipeline.

    Returns:
        tuple: (features_df, fitted transformer)
    """
    transformer = make_feature_transformer(feature_set, max_tokens, ngram_range)
    matrix = transformer.fit_transform(df)
    columns = rename_feature_columns(transformer.get_feature_names_out())

    if hasattr(matrix, "toarray"):
        matrix = matrix.toarray()

    features_df = pd.DataFrame(matrix, columns=columns, index=df.index)
    print(f"Extracted {features_df.shape[1]} '{feature_set}' features for {features_df.shape[0]} songs.")

    return features_df, transformer


### EXPLORATION ###

def top_words_by_artist(df, top_n=15):
    """
    Counts stop-word-filtered tokens for each artist.

    Args:
        df (pd.DataFrame): Songs with artist and lyrics columns.
        top_n (int): Number of most frequent words to keep per artist.

    Returns:
        pd.DataFrame: Columns artist, word, count; sorted by artist then descending count.
    """
    tqdm.pandas(desc="Tokenizing Lyrics")
    tokens = df[TEXT_COLUMN].progress_apply(preprocess_lyrics)

    rows = []
    for artist, artist_tokens in tokens.groupby(df[ARTIST_COLUMN]):
        counts = Counter(token for song_tokens in artist_tokens for token in song_tokens)
        for word, count in counts.most_common(top_n):
            rows.append({ARTIST_COLUMN: artist, "word": word, "count": count})

    return pd.DataFrame(rows, columns=[ARTIST_COLUMN, "word", "count"])
