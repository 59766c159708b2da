"""Utility functions for the recommendation system.

This module provides helper functions for data loading, model artifact
management, and common operations used throughout the recommendation system.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import joblib
import numpy as np
import pandas as pd
from sklearn.decomposition import TruncatedSVD

from seedrec.recommender.events import (
    ITEM_COL,
    RATING_COL,
    TIMESTAMP_COL,
    USER_COL,
    EventStore,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Model artifact filenames
MODEL_FILENAME = "svd_model.joblib"
USER_MAPPING_FILENAME = "user_id_mapping.joblib"
ITEM_MAPPING_FILENAME = "item_id_mapping.joblib"
EVENTS_FILENAME = "events.joblib"

CONTENT_ITEM_COL = "item_id"
CONTENT_TEXT_COL = "content"


def _to_unix_seconds(timestamps: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(timestamps):
        return timestamps.astype(np.int64)
    parsed = pd.to_datetime(timestamps, utc=True)
    epoch = pd.Timestamp("1970-01-01", tz="UTC")
    return ((parsed - epoch) // pd.Timedelta(seconds=1)).astype(np.int64)


def load_ratings_csv(
    csv_path: str,
    user_col: str = USER_COL,
    item_col: str = ITEM_COL,
    timestamp_col: str = TIMESTAMP_COL,
    rating_col: Optional[str] = RATING_COL,
) -> pd.DataFrame:
    """Load an event log CSV into a normalized event frame.

    Timestamps may be unix seconds or any date format pandas can parse; they
    are converted to unix seconds. The rating column is optional; rows
    without a rating value are plain (non-rating) events.

    Args:
        csv_path: Path to CSV file containing event data.
        user_col: Name of the column containing user identifiers.
        item_col: Name of the column containing item identifiers.
        timestamp_col: Name of the column containing event timestamps.
        rating_col: Name of the column containing rating values, if any.

    Returns:
        DataFrame with columns user_id, item_id, timestamp and rating.

    Raises:
        FileNotFoundError: If CSV file does not exist.
        ValueError: If CSV is missing required columns or is empty.

    Example:
        >>> events = load_ratings_csv("data/fake_ratings.csv")
        >>> store = EventStore(events)
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info(f"Loading CSV from {csv_path}")
    df = pd.read_csv(csv_path)

    # Validate required columns
    required_columns = {user_col, item_col, timestamp_col}
    if not required_columns.issubset(df.columns):
        missing = required_columns - set(df.columns)
        raise ValueError(f"CSV missing required columns: {missing}")

    if df.empty:
        raise ValueError("Cannot load events from empty CSV")

    if rating_col is not None and rating_col in df.columns:
        ratings = pd.to_numeric(df[rating_col], errors="coerce")
    else:
        ratings = pd.Series(np.nan, index=df.index)

    events = pd.DataFrame(
        {
            USER_COL: df[user_col].astype(np.int64),
            ITEM_COL: df[item_col].astype(np.int64),
            TIMESTAMP_COL: _to_unix_seconds(df[timestamp_col]),
            RATING_COL: ratings.astype(np.float64),
        }
    )

    logger.info(f"Loaded {len(events)} event records")
    logger.info(f"Unique users: {events[USER_COL].nunique()}")
    logger.info(f"Unique items: {events[ITEM_COL].nunique()}")
    logger.info(f"Rating events: {int(events[RATING_COL].notna().sum())}")

    return events


def load_item_content(
    content_path: str,
    item_col: str = CONTENT_ITEM_COL,
    text_col: str = CONTENT_TEXT_COL,
) -> Dict[int, str]:
    """Load item textual content.

    ``content_path`` is either a CSV file with an item id column and a text
    column, or a directory holding one text file per item, named after the
    item id (optionally with a ``.txt`` suffix).

    Returns:
        Dictionary mapping item ids to their content.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the CSV is missing required columns.
    """
    path = Path(content_path)
    if not path.exists():
        raise FileNotFoundError(f"Item content not found: {content_path}")

    contents: Dict[int, str] = {}
    if path.is_dir():
        for item_file in sorted(path.iterdir()):
            if not item_file.is_file():
                continue
            stem = item_file.name[:-4] if item_file.name.endswith(".txt") else item_file.name
            if not stem.isdigit():
                logger.debug(f"Skipping non-item file {item_file}")
                continue
            text = item_file.read_text(encoding="utf-8", errors="replace")
            contents[int(stem)] = " ".join(text.splitlines())
    else:
        df = pd.read_csv(path)
        required_columns = {item_col, text_col}
        if not required_columns.issubset(df.columns):
            missing = required_columns - set(df.columns)
            raise ValueError(f"Content CSV missing required columns: {missing}")
        for item_id, text in zip(df[item_col], df[text_col]):
            contents[int(item_id)] = "" if pd.isna(text) else str(text)

    logger.info(f"Loaded content for {len(contents)} items from {content_path}")
    return contents


def save_model_artifacts(
    model: TruncatedSVD,
    user_id_to_idx: Dict[int, int],
    item_id_to_idx: Dict[int, int],
    store: EventStore,
    output_dir: str,
) -> None:
    """Save trained scorer model, ID mappings and the event snapshot to disk.

    Creates the output directory if it doesn't exist.

    Args:
        model: Trained TruncatedSVD model to save.
        user_id_to_idx: Dictionary mapping user IDs to matrix row indices.
        item_id_to_idx: Dictionary mapping item IDs to matrix column indices.
        store: Event store the model was trained on.
        output_dir: Directory path where artifacts will be saved.

    Raises:
        OSError: If unable to create output directory or save files.
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    logger.info(f"Saving model artifacts to {output_dir}")

    model_path, user_mapping_path, item_mapping_path, events_path = get_model_paths(
        output_dir
    )

    joblib.dump(model, model_path)
    logger.info(f"Saved model to {model_path}")

    joblib.dump(user_id_to_idx, user_mapping_path)
    logger.info(f"Saved user mapping to {user_mapping_path}")

    joblib.dump(item_id_to_idx, item_mapping_path)
    logger.info(f"Saved item mapping to {item_mapping_path}")

    joblib.dump(
        {"events": store.to_frame(), "item_ids": store.all_item_ids()},
        events_path,
    )
    logger.info(f"Saved {len(store)} events to {events_path}")


def load_model_artifacts(
    model_dir: str,
) -> Tuple[TruncatedSVD, Dict[int, int], Dict[int, int], EventStore]:
    """Load trained scorer model, ID mappings and the event snapshot from disk.

    Args:
        model_dir: Directory path where artifacts are stored.

    Returns:
        A tuple containing:
            - Loaded TruncatedSVD model
            - Dictionary mapping user IDs to matrix row indices
            - Dictionary mapping item IDs to matrix column indices
            - EventStore over the saved event snapshot

    Raises:
        FileNotFoundError: If any required artifact file is missing.
    """
    model_path = Path(model_dir)

    if not model_path.exists():
        raise FileNotFoundError(f"Model directory does not exist: {model_dir}")

    logger.info(f"Loading model artifacts from {model_dir}")

    for artifact in get_model_paths(model_dir):
        if not artifact.exists():
            raise FileNotFoundError(f"Model artifact not found: {artifact}")

    model_file, user_mapping_file, item_mapping_file, events_file = get_model_paths(
        model_dir
    )

    model = joblib.load(model_file)
    logger.info(f"Loaded model from {model_file}")
    logger.info(f"Model components: {model.n_components}")

    user_id_to_idx = joblib.load(user_mapping_file)
    logger.info(f"Number of users: {len(user_id_to_idx)}")

    item_id_to_idx = joblib.load(item_mapping_file)
    logger.info(f"Number of items: {len(item_id_to_idx)}")

    snapshot = joblib.load(events_file)
    store = EventStore(snapshot["events"], item_ids=snapshot["item_ids"])

    return model, user_id_to_idx, item_id_to_idx, store


def get_model_paths(model_dir: str) -> Tuple[Path, Path, Path, Path]:
    """Get file paths for model artifacts without loading them.

    Returns:
        Paths of the model, user mapping, item mapping and events files.
    """
    model_path = Path(model_dir)
    return (
        model_path / MODEL_FILENAME,
        model_path / USER_MAPPING_FILENAME,
        model_path / ITEM_MAPPING_FILENAME,
        model_path / EVENTS_FILENAME,
    )


def check_model_exists(model_dir: str) -> bool:
    """Check if all required scorer artifacts exist.

    Args:
        model_dir: Directory path where artifacts should be stored.

    Returns:
        True if all model files exist, False otherwise.
    """
    return all(path.exists() for path in get_model_paths(model_dir))
