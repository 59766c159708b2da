"""CLI script for getting recommendations.

Useful for testing and evaluation. Gets recommendations for a user and
prints them to the console.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from seedrec.recommender.recommend import load_recommender

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get recommendations for a user",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/predict_cli.py 42
  python scripts/predict_cli.py 42 --top-n 5
  python scripts/predict_cli.py 42 --exclude 3 --exclude 9
  python scripts/predict_cli.py 42 --show-seeds
        """
    )

    parser.add_argument("user_id", type=int, help="User ID to get recommendations for")
    parser.add_argument(
        "--top-n",
        type=int,
        default=10,
        help="Number of recommendations to return (default: 10)"
    )
    parser.add_argument(
        "--model-dir",
        type=str,
        default="models",
        help="Directory containing model files (default: models)"
    )
    parser.add_argument(
        "--exclude",
        type=int,
        action="append",
        default=None,
        help="Item ID to exclude (repeatable). Defaults to the user's history."
    )
    parser.add_argument(
        "--show-seeds",
        action="store_true",
        help="Also print the seed items"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        recommender = load_recommender(args.model_dir)
        recommendations = recommender.recommend(
            args.user_id, args.top_n, excludes=args.exclude
        )
    except FileNotFoundError as e:
        print(f"Error: Model not found in {args.model_dir}", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.show_seeds:
        seeds = recommender.seed_set()
        print("\nSeed items:")
        print(f"  Most popular ever:     {seeds.most_popular_ever}")
        print(f"  Most popular recent:   {seeds.most_popular_recent}")
        print(f"  Last positively rated: {seeds.last_positively_rated}")
        print(f"  Last added:            {seeds.last_added_unrated}")

    print(f"\nRecommendations for user {args.user_id}:")
    if not recommendations:
        print("  (none)")
    for rank, candidate in enumerate(recommendations, start=1):
        print(f"  {rank:>2}. item {candidate.item_id:<8} score {candidate.score:.4f}")
    print()


if __name__ == "__main__":
    main()
