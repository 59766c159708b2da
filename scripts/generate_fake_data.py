"""Generate fake rating data and item content for testing and development.

Creates a CSV of simulated user-item ratings with timestamps and a CSV of
simulated item descriptions, suitable for training the seed recommender.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_ratings
        df = generate_fake_ratings(num_users=100, num_items=200)
"""

import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_ITEMS = 100
DEFAULT_NUM_RATINGS = 1000
DEFAULT_DAYS_BACK = 90
DEFAULT_RANDOM_SEED = 42

CATEGORIES = [
    "electronics", "clothing", "home", "sports", "toys",
    "books", "food", "beauty", "automotive", "garden",
]
ATTRIBUTES = [
    "premium", "budget", "eco-friendly", "durable", "portable",
    "stylish", "compact", "professional", "casual", "luxury",
    "practical", "innovative", "classic", "modern", "vintage",
]


def generate_fake_ratings(
    num_users: int = DEFAULT_NUM_USERS,
    num_items: int = DEFAULT_NUM_ITEMS,
    num_ratings: int = DEFAULT_NUM_RATINGS,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
) -> pd.DataFrame:
    """Generate synthetic rating data.

    Args:
        num_users: Number of unique users to simulate. Must be positive.
        num_items: Number of unique items available. Must be positive.
        num_ratings: Total number of rating records to generate.
        start_date: Start of the rating period. Defaults to 90 days before
            ``end_date``.
        end_date: End of the rating period. Defaults to now.
        random_seed: Seed for reproducibility, or None for fresh randomness.

    Returns:
        DataFrame with columns user_id, item_id, timestamp (unix seconds)
        and rating (1-5), sorted by timestamp.

    Raises:
        ValueError: If any count is non-positive or the date range is empty.
    """
    if num_users <= 0 or num_items <= 0 or num_ratings <= 0:
        raise ValueError("num_users, num_items, and num_ratings must be positive")

    if end_date is None:
        end_date = datetime.now()
    if start_date is None:
        start_date = end_date - timedelta(days=DEFAULT_DAYS_BACK)

    if start_date >= end_date:
        raise ValueError("start_date must be before end_date")

    rng = random.Random(random_seed)
    total_seconds = int((end_date - start_date).total_seconds())

    ratings = []
    for _ in range(num_ratings):
        timestamp = start_date + timedelta(seconds=rng.randrange(total_seconds))
        ratings.append({
            "user_id": rng.randint(1, num_users),
            "item_id": rng.randint(1, num_items),
            "timestamp": int(timestamp.timestamp()),
            "rating": rng.randint(1, 5),
        })

    df = pd.DataFrame(ratings)
    df = df.sort_values("timestamp").reset_index(drop=True)

    return df


def generate_fake_item_content(
    item_ids: List[int],
    random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
) -> pd.DataFrame:
    """Create fake item descriptions from random categories and attributes.

    Returns:
        DataFrame with columns item_id and content.
    """
    rng = random.Random(random_seed)

    rows = []
    for item_id in item_ids:
        words = rng.sample(CATEGORIES, rng.randint(1, 2)) + rng.sample(
            ATTRIBUTES, rng.randint(2, 4)
        )
        rows.append({"item_id": item_id, "content": " ".join(words)})

    return pd.DataFrame(rows)


def main() -> None:
    """Generate default fake data into the data/ directory."""
    print(f"Generating {DEFAULT_NUM_RATINGS} fake ratings...")
    print(f"Users: {DEFAULT_NUM_USERS}, Items: {DEFAULT_NUM_ITEMS}")

    try:
        ratings = generate_fake_ratings()
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    content = generate_fake_item_content(list(range(1, DEFAULT_NUM_ITEMS + 1)))

    data_dir = Path(__file__).parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    ratings_path = data_dir / "fake_ratings.csv"
    content_path = data_dir / "fake_item_content.csv"
    ratings.to_csv(ratings_path, index=False)
    content.to_csv(content_path, index=False)

    print("\nData generated successfully!")
    print(f"Ratings saved to: {ratings_path}")
    print(f"Item content saved to: {content_path}")
    print("\nData summary:")
    print(f"  Total ratings: {len(ratings)}")
    print(f"  Unique users: {ratings['user_id'].nunique()}")
    print(f"  Unique items: {ratings['item_id'].nunique()}")
    print(f"  Mean rating: {ratings['rating'].mean():.2f}")


if __name__ == "__main__":
    main()
