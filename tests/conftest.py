import numpy as np
import pandas as pd
import pytest

from lyrics_features import ensure_nltk_resources
from lyrics_loading import BEYONCE, TAYLOR_SWIFT

BEYONCE_WORDS = ["halo", "diva", "formation", "flawless", "ladies", "single", "crazy", "drunk", "survivor", "sorry"]
TAYLOR_WORDS = ["shake", "blank", "space", "style", "red", "story", "trouble", "fearless", "wildest", "dreams"]
SHARED_WORDS = ["love", "baby", "night", "heart", "know"]
FILLER_WORDS = ["the", "and", "you", "me", "it", "is"]


@pytest.fixture(scope="session", autouse=True)
def nltk_resources():
    ensure_nltk_resources()


def _make_song(rng, artist_words):
    words = list(rng.choice(artist_words, size=12)) + list(rng.choice(SHARED_WORDS, size=6))
    words += list(rng.choice(FILLER_WORDS, size=6))
    rng.shuffle(words)
    return " ".join(words)


@pytest.fixture
def songs_df():
    """30 Beyoncé songs and 45 Taylor Swift songs with mostly disjoint vocabularies."""
    rng = np.random.default_rng(0)
    rows = []
    for i in range(30):
        rows.append({"song_name": f"B song {i}", "artist": BEYONCE, "lyrics": _make_song(rng, BEYONCE_WORDS)})
    for i in range(45):
        rows.append({"song_name": f"T song {i}", "artist": TAYLOR_SWIFT, "lyrics": _make_song(rng, TAYLOR_WORDS)})
    return pd.DataFrame(rows)


@pytest.fixture
def lyrics_dir(tmp_path):
    """Raw CSV files laid out like the published lyrics datasets."""
    beyonce_lines = pd.DataFrame({
        "line": ["If I were a boy", "Even just for a day", "Halo halo", None, "Who run the world"],
        "song_id": [1, 1, 2, 2, 3],
        "song_name": ["If I Were a Boy", "If I Were a Boy", "Halo", "Halo", "Run the World"],
        "artist_id": [498] * 5,
        "artist_name": [BEYONCE] * 5,
        "song_line": [1, 2, 1, 2, 1],
    })
    # Out of order on purpose: lines must be joined by song_line
    beyonce_lines = beyonce_lines.iloc[[1, 0, 2, 3, 4]]
    beyonce_lines.to_csv(tmp_path / "beyonce_lyrics.csv", index=False)

    taylor_songs = pd.DataFrame({
        "Artist": [TAYLOR_SWIFT] * 3,
        "Album": ["1989", "1989", "Red"],
        "Title": ["Shake It Off", "Blank Space", "Empty"],
        "Lyrics": ["I shake it off", "Got a long list of ex-lovers", "   "],
    })
    taylor_songs.to_csv(tmp_path / "taylor_swift_lyrics.csv", index=False)

    return tmp_path
