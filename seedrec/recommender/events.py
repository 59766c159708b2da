"""In-memory event and rating store.

Wraps a pandas DataFrame of user-item events and answers the lookups the
seed selector and the recommender need: the item catalog, events per item,
events per user, and a timestamp-ordered stream of ratings.
"""

import logging
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

# Configure module logger
logger = logging.getLogger(__name__)

# Column names of the event frame
USER_COL = "user_id"
ITEM_COL = "item_id"
TIMESTAMP_COL = "timestamp"
RATING_COL = "rating"
REQUIRED_COLUMNS = (USER_COL, ITEM_COL, TIMESTAMP_COL)


class Event(NamedTuple):
    """A user-item observation.

    ``timestamp`` is in unix seconds. ``value`` is the rating value, or None
    when the event is not a rating.
    """

    user_id: int
    item_id: int
    timestamp: int
    value: Optional[float] = None

    @property
    def is_rating(self) -> bool:
        return self.value is not None


def _frame_to_events(df: pd.DataFrame) -> List[Event]:
    events = []
    for user_id, item_id, timestamp, value in zip(
        df[USER_COL], df[ITEM_COL], df[TIMESTAMP_COL], df[RATING_COL]
    ):
        events.append(
            Event(
                user_id=int(user_id),
                item_id=int(item_id),
                timestamp=int(timestamp),
                value=None if pd.isna(value) else float(value),
            )
        )
    return events


class EventStore:
    """Read-only event store over a snapshot of the event log.

    Events are kept sorted by timestamp. The catalog is every item that has
    an event plus any extra ``item_ids`` given, iterated in ascending id order.
    """

    def __init__(
        self,
        events: pd.DataFrame,
        item_ids: Optional[Iterable[int]] = None,
    ):
        missing = set(REQUIRED_COLUMNS) - set(events.columns)
        if missing:
            raise ValueError(f"Event frame missing required columns: {missing}")

        df = events.copy()
        if RATING_COL not in df.columns:
            df[RATING_COL] = np.nan
        df = df[[USER_COL, ITEM_COL, TIMESTAMP_COL, RATING_COL]]
        df = df.sort_values(TIMESTAMP_COL, kind="mergesort").reset_index(drop=True)
        self._events = df

        all_events = _frame_to_events(df)
        self._events_by_item: Dict[int, List[Event]] = {}
        self._events_by_user: Dict[int, List[Event]] = {}
        for event in all_events:
            self._events_by_item.setdefault(event.item_id, []).append(event)
            self._events_by_user.setdefault(event.user_id, []).append(event)
        self._ratings = [event for event in all_events if event.is_rating]

        catalog = set(self._events_by_item)
        if item_ids is not None:
            catalog.update(int(item_id) for item_id in item_ids)
        self._item_ids = sorted(catalog)

        logger.info(
            "Initialized EventStore",
            extra={
                "num_events": len(all_events),
                "num_ratings": len(self._ratings),
                "num_items": len(self._item_ids),
                "num_users": len(self._events_by_user),
            },
        )

    def __len__(self) -> int:
        return len(self._events)

    def all_item_ids(self) -> List[int]:
        """Return every catalog item id in ascending order."""
        return list(self._item_ids)

    def all_user_ids(self) -> List[int]:
        return sorted(self._events_by_user)

    def events_for_item(self, item_id: int) -> List[Event]:
        """Return all events for an item, ordered by timestamp."""
        return list(self._events_by_item.get(item_id, []))

    def ratings_for_item(self, item_id: int) -> List[Event]:
        """Return the rating events for an item, ordered by timestamp."""
        return [e for e in self._events_by_item.get(item_id, []) if e.is_rating]

    def events_for_user(self, user_id: int) -> Optional[List[Event]]:
        """Return all events for a user, or None if the user has none."""
        events = self._events_by_user.get(user_id)
        if not events:
            return None
        return list(events)

    def ratings_for_user(self, user_id: int) -> Optional[List[Event]]:
        """Return the rating events for a user, or None if the user has none."""
        ratings = [e for e in self._events_by_user.get(user_id, []) if e.is_rating]
        return ratings or None

    def stream_ratings_by_timestamp(self) -> Iterator[Event]:
        """Lazily yield every rating in ascending timestamp order."""
        for rating in self._ratings:
            yield rating

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying event frame."""
        return self._events.copy()

    def rating_matrix(self) -> Tuple[csr_matrix, Dict[int, int], Dict[int, int]]:
        """Build a sparse user-item rating matrix.

        Repeated ratings of the same item by a user are averaged. Events
        without a rating value count as an implicit rating of 1.0. Columns
        cover the full catalog, so unrated catalog items get empty columns.

        Returns:
            A tuple containing:
                - Sparse CSR matrix of shape (n_users, n_items)
                - Dictionary mapping user_id to matrix row index
                - Dictionary mapping item_id to matrix column index
        """
        df = self._events
        values = df[RATING_COL].fillna(1.0).astype(np.float32)
        interactions = (
            pd.DataFrame({USER_COL: df[USER_COL], ITEM_COL: df[ITEM_COL], "value": values})
            .groupby([USER_COL, ITEM_COL], sort=True)["value"]
            .mean()
            .reset_index()
        )

        user_id_to_idx = {
            int(user_id): idx for idx, user_id in enumerate(self.all_user_ids())
        }
        item_id_to_idx = {item_id: idx for idx, item_id in enumerate(self._item_ids)}

        row_indices = interactions[USER_COL].map(user_id_to_idx).values
        col_indices = interactions[ITEM_COL].map(item_id_to_idx).values

        matrix = csr_matrix(
            (interactions["value"].values, (row_indices, col_indices)),
            shape=(len(user_id_to_idx), len(item_id_to_idx)),
            dtype=np.float32,
        )
        matrix.eliminate_zeros()

        n_cells = max(matrix.shape[0] * matrix.shape[1], 1)
        logger.info(f"Rating matrix shape: {matrix.shape}")
        logger.info(f"Rating matrix density: {matrix.nnz / n_cells:.4%}")

        return matrix, user_id_to_idx, item_id_to_idx
