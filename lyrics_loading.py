import os
import pandas as pd
from sklearn.model_selection import train_test_split

# --- Constants ---
BEYONCE_FILE = "beyonce_lyrics.csv"
TAYLOR_SWIFT_FILE = "taylor_swift_lyrics.csv"
PROCESSED_FILE = "processed_lyrics.csv"

SONG_COLUMN = "song_name"
TEXT_COLUMN = "lyrics"
ARTIST_COLUMN = "artist"

BEYONCE = "Beyoncé"
TAYLOR_SWIFT = "Taylor Swift"
ARTISTS = [BEYONCE, TAYLOR_SWIFT]  # first level is the positive class
POSITIVE_ARTIST = ARTISTS[0]

TEST_SIZE = 0.25
RANDOM_STATE = 42


def load_beyonce_lyrics(path):
    """
    Loads the line-level Beyoncé lyrics and collapses them to one row per song.

    Lines are ordered by song_id, then by their position in the song, and joined
    with a single space. Lines with missing text are skipped.

    Args:
        path (str): Path to beyonce_lyrics.csv.

    Returns:
        pd.DataFrame: Columns song_name, artist, lyrics.
    """
    lines_df = pd.read_csv(path)
    lines_df = lines_df.dropna(subset=["line", SONG_COLUMN])
    lines_df = lines_df.sort_values(["song_id", "song_line"], kind="stable")

    # Several song_ids can share a title (remixes, live versions); their lines end up in one song
    songs_df = (
        lines_df.groupby(SONG_COLUMN, sort=True)["line"]
        .apply(lambda lines: " ".join(str(line) for line in lines))
        .reset_index()
        .rename(columns={"line": TEXT_COLUMN})
    )
    songs_df[ARTIST_COLUMN] = BEYONCE

    return songs_df[[SONG_COLUMN, ARTIST_COLUMN, TEXT_COLUMN]]


def load_taylor_swift_lyrics(path):
    """Loads the song-level Taylor Swift lyrics (already one row per song)."""
    songs_df = pd.read_csv(path)
    songs_df = songs_df.rename(columns={"Title": SONG_COLUMN, "Lyrics": TEXT_COLUMN})
    songs_df[ARTIST_COLUMN] = TAYLOR_SWIFT

    return songs_df[[SONG_COLUMN, ARTIST_COLUMN, TEXT_COLUMN]]


def load_and_preprocess_data(data_dir, beyonce_file=BEYONCE_FILE, taylor_file=TAYLOR_SWIFT_FILE, output_csv=None):
    """
    Loads both lyric files, reshapes them to one row per song and combines them.

    This function handles:
    - Collapsing Beyoncé's line-per-row file to one row per song
    - Renaming Taylor Swift's columns to the shared layout
    - Dropping songs with missing or blank lyrics and duplicate titles
    - Saving the combined frame to a CSV for reuse

    Args:
        data_dir (str): Directory containing both CSV files.
        beyonce_file (str): Filename of the Beyoncé lyrics CSV.
        taylor_file (str): Filename of the Taylor Swift lyrics CSV.
        output_csv (str, optional): Path to save the combined dataset. Defaults to "processed_lyrics.csv".

    Returns:
        pd.DataFrame or None: Combined DataFrame, or None if a file is missing or empty.
    """
    try:
        beyonce_df = load_beyonce_lyrics(os.path.join(data_dir, beyonce_file))
        taylor_df = load_taylor_swift_lyrics(os.path.join(data_dir, taylor_file))
    except FileNotFoundError as e:
        print(f"Error: File not found: {e}")
        return None
    except pd.errors.EmptyDataError as e:
        print(f"Error: Empty CSV file: {e}")
        return None

    songs_df = pd.concat([beyonce_df, taylor_df], ignore_index=True)

    # Blank lyrics carry no signal
    songs_df[TEXT_COLUMN] = songs_df[TEXT_COLUMN].fillna("").astype(str).str.strip()
    songs_df = songs_df[songs_df[TEXT_COLUMN] != ""]
    songs_df = songs_df.drop_duplicates(subset=[ARTIST_COLUMN, SONG_COLUMN], keep="first")
    songs_df = songs_df.reset_index(drop=True)

    print(f"Loaded {len(songs_df)} songs ({len(beyonce_df)} Beyoncé, {len(taylor_df)} Taylor Swift before cleaning).")

    if output_csv is None:
        output_csv = PROCESSED_FILE

    songs_df.to_csv(output_csv, index=False, encoding="utf-8")
    print(f"Preprocessed data successfully saved to {output_csv}")

    return songs_df


def analyze_artist_distribution(df, artist_column=ARTIST_COLUMN):
    """
    Prints the number and share of songs per artist.

    Args:
        df (pd.DataFrame): DataFrame with an artist column.
        artist_column (str): Name of the artist column.

    Returns:
        pd.Series: Song counts indexed by artist.
    """
    counts = df[artist_column].value_counts()

    print(f"\n--- Songs per Artist ({len(df)} total) ---")
    for artist, count in counts.items():
        print(f"- {artist}: {count} ({100 * count / len(df):.1f}%)")
    print("-" * 40)

    return counts


def create_train_test_split(df, test_size=TEST_SIZE, random_state=RANDOM_STATE):
    """
    Splits songs into training and testing sets, stratified by artist.

    Args:
        df (pd.DataFrame): One row per song with an artist column.
        test_size (float): Fraction of songs held out for testing.
        random_state (int): Seed for the shuffle.

    Returns:
        tuple: train_df, test_df (both with reset indices).
    """
    train_df, test_df = train_test_split(
        df,
        test_size=test_size,
        stratify=df[ARTIST_COLUMN],
        random_state=random_state,
    )
    print(f"Training songs: {len(train_df)}, testing songs: {len(test_df)}")

    return train_df.reset_index(drop=True), test_df.reset_index(drop=True)


def encode_artist(artists):
    """
    Converts artist names to a binary target: 1 for the positive artist, 0 otherwise.

    Raises:
        ValueError: If an artist other than the two known ones is present.
    """
    artists = pd.Series(artists)
    unknown = set(artists.unique()) - set(ARTISTS)
    if unknown:
        raise ValueError(f"Unknown artist(s): {sorted(unknown)}. Expected one of {ARTISTS}.")

    return (artists == POSITIVE_ARTIST).astype(int).to_numpy()
