"""Seed item selection.

Picks up to four structurally interesting items from catalog-wide temporal
and popularity statistics over the event log:

- most popular item ever: greatest number of events
- most popular recent item: greatest number of events in the trailing window
  (one week by default) before the most recent rating
- last positively rated item: the item whose latest rating at or above its
  own mean rating is the most recent
- last added item: the item whose first rating is the most recent

The seeds anchor recommendations for users with little or no history.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Set

import pandas as pd

from seedrec.recommender.events import Event, EventStore

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_RECENT_DAYS = 7

# Policies for picking the last positively rated item
POSITIVE_POLICY_LATEST = "latest"
POSITIVE_POLICY_ITERATION_ORDER = "iteration_order"
POSITIVE_POLICIES = (POSITIVE_POLICY_LATEST, POSITIVE_POLICY_ITERATION_ORDER)


@dataclass(frozen=True)
class SeedSet:
    """Seed items, one per heuristic category. Undefined categories are None."""

    most_popular_ever: Optional[int] = None
    most_popular_recent: Optional[int] = None
    last_positively_rated: Optional[int] = None
    last_added_unrated: Optional[int] = None

    @property
    def items(self) -> Set[int]:
        """The distinct seed items."""
        return set(self.ordered_items())

    def ordered_items(self) -> List[int]:
        """Distinct seed items in category order."""
        ordered: List[int] = []
        for item_id in (
            self.most_popular_ever,
            self.most_popular_recent,
            self.last_positively_rated,
            self.last_added_unrated,
        ):
            if item_id is not None and item_id not in ordered:
                ordered.append(item_id)
        return ordered

    def __len__(self) -> int:
        return len(self.ordered_items())

    def __iter__(self):
        return iter(self.ordered_items())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.ordered_items()


def positive_rating_threshold(ratings: List[Event]) -> Optional[int]:
    """Mean rating value truncated to an integer, or None without ratings."""
    if not ratings:
        return None
    total = sum(rating.value for rating in ratings)
    return int(total / len(ratings))


class SeedSelector:
    """Computes the SeedSet of an event store.

    The selector only reads from the store. First and last rating timestamps
    are computed once per selector.
    """

    def __init__(
        self,
        store: EventStore,
        recent_days: int = DEFAULT_RECENT_DAYS,
        positive_policy: str = POSITIVE_POLICY_LATEST,
    ):
        if positive_policy not in POSITIVE_POLICIES:
            raise ValueError(
                f"positive_policy must be one of {POSITIVE_POLICIES}, "
                f"got '{positive_policy}'"
            )
        if recent_days < 0:
            raise ValueError(f"recent_days must be non-negative, got {recent_days}")

        self.store = store
        self.recent_days = recent_days
        self.positive_policy = positive_policy
        self._first_timestamp: Optional[int] = None
        self._last_timestamp: Optional[int] = None
        self._timestamps_loaded = False

    def _load_timestamps(self) -> None:
        if self._timestamps_loaded:
            return
        for rating in self.store.stream_ratings_by_timestamp():
            if self._first_timestamp is None:
                self._first_timestamp = rating.timestamp
            self._last_timestamp = rating.timestamp
        self._timestamps_loaded = True

    @property
    def first_timestamp(self) -> Optional[int]:
        """Timestamp of the oldest rating, or None without ratings."""
        self._load_timestamps()
        return self._first_timestamp

    @property
    def last_timestamp(self) -> Optional[int]:
        """Timestamp of the most recent rating, or None without ratings."""
        self._load_timestamps()
        return self._last_timestamp

    def recent_threshold(self) -> Optional[int]:
        """Start of the recent window: UTC midnight of last rating minus the window."""
        if self.last_timestamp is None:
            return None
        start = pd.Timestamp(self.last_timestamp, unit="s") - pd.Timedelta(
            days=self.recent_days
        )
        return int(start.normalize().timestamp())

    def select(self) -> SeedSet:
        """Compute the seed set."""
        seeds = SeedSet(
            most_popular_ever=self.most_popular_item(),
            most_popular_recent=self.most_popular_recent_item(),
            last_positively_rated=self.last_positively_rated_item(),
            last_added_unrated=self.last_added_item(),
        )

        logger.info(
            "Selected seed items",
            extra={
                "most_popular_ever": seeds.most_popular_ever,
                "most_popular_recent": seeds.most_popular_recent,
                "last_positively_rated": seeds.last_positively_rated,
                "last_added_unrated": seeds.last_added_unrated,
                "num_seeds": len(seeds),
            },
        )
        return seeds

    def most_popular_item(self, since: Optional[int] = None) -> Optional[int]:
        """Item with the most events, optionally counting only events at or after ``since``.

        Ties keep the item seen first in catalog order. Items without any
        counted event never win.
        """
        most_popular = None
        max_count = 0
        for item_id in self.store.all_item_ids():
            events = self.store.events_for_item(item_id)
            if since is None:
                count = len(events)
            else:
                count = sum(1 for event in events if event.timestamp >= since)

            if count > max_count:
                most_popular = item_id
                max_count = count

        return most_popular

    def most_popular_recent_item(self) -> Optional[int]:
        threshold = self.recent_threshold()
        if threshold is None:
            logger.debug("No ratings, skipping most popular recent item")
            return None
        return self.most_popular_item(since=threshold)

    def last_positively_rated_item(self) -> Optional[int]:
        """Item whose most recent positive rating is the latest in the catalog.

        A rating is positive when its value is at least the item's mean
        rating (truncated). Items without ratings are skipped.
        """
        if self.first_timestamp is None:
            return None

        last_item = None
        recent_date = None
        for item_id in self.store.all_item_ids():
            ratings = self.store.ratings_for_item(item_id)
            threshold = positive_rating_threshold(ratings)
            if threshold is None:
                continue

            positive_date = self.first_timestamp
            for rating in ratings:
                if rating.value >= threshold and rating.timestamp > positive_date:
                    positive_date = rating.timestamp

            if self.positive_policy == POSITIVE_POLICY_ITERATION_ORDER:
                last_item = item_id
            elif recent_date is None or positive_date > recent_date:
                recent_date = positive_date
                last_item = item_id

        return last_item

    def last_added_item(self) -> Optional[int]:
        """Item whose earliest rating is the most recent. Ties keep the first item."""
        last_added = None
        latest_first_rating = None
        for item_id in self.store.all_item_ids():
            ratings = self.store.ratings_for_item(item_id)
            if not ratings:
                continue

            first_rating = min(rating.timestamp for rating in ratings)
            if latest_first_rating is None or first_rating > latest_first_rating:
                latest_first_rating = first_rating
                last_added = item_id

        return last_added


def select_seed_items(
    store: EventStore,
    recent_days: int = DEFAULT_RECENT_DAYS,
    positive_policy: str = POSITIVE_POLICY_LATEST,
) -> SeedSet:
    """Convenience wrapper around SeedSelector.select()."""
    return SeedSelector(
        store, recent_days=recent_days, positive_policy=positive_policy
    ).select()
