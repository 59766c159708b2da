"""Command-line interface for training the seed recommender.

Trains the SVD scorer and builds the item content similarity model from a
ratings CSV and item content.

Example:
    Train with default settings:
        $ python scripts/train_model.py data/fake_ratings.csv \\
            --content data/fake_item_content.csv

    Rebuild the similarity model even if a cached one exists:
        $ python scripts/train_model.py data/ratings.csv \\
            --content data/abstracts/ --output-dir models/prod --force-rebuild
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from seedrec.exceptions import SimilarityBuildError
from seedrec.recommender.train import (
    DEFAULT_N_COMPONENTS,
    DEFAULT_N_ITERATIONS,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RANDOM_STATE,
    TrainingConfig,
    train_with_config,
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the script.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise, use INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Train the seed recommender from rating data and item content.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "ratings_csv",
        type=str,
        help="CSV file with columns: user_id, item_id, timestamp[, rating]",
    )
    parser.add_argument(
        "--content",
        type=str,
        default=None,
        help="Item content: CSV with item_id, content columns, or a directory "
        "with one text file per item id",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory where model artifacts will be saved (default: {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--n-components",
        type=int,
        default=DEFAULT_N_COMPONENTS,
        help=f"Number of latent features for SVD (default: {DEFAULT_N_COMPONENTS})",
    )
    parser.add_argument(
        "--n-iter",
        type=int,
        default=DEFAULT_N_ITERATIONS,
        help=f"Number of iterations for SVD solver (default: {DEFAULT_N_ITERATIONS})",
    )
    parser.add_argument(
        "--random-state",
        type=int,
        default=DEFAULT_RANDOM_STATE,
        help=f"Random seed for reproducibility (default: {DEFAULT_RANDOM_STATE})",
    )
    parser.add_argument(
        "--skip-similarity",
        action="store_true",
        help="Only train the scorer, do not build the similarity model",
    )
    parser.add_argument(
        "--force-rebuild",
        action="store_true",
        help="Discard any cached similarity model before building",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point for the training script.

    Returns:
        Exit code: 0 on success, 1 on error.
    """
    try:
        args = parse_arguments()
        setup_logging(verbose=args.verbose)
        logger = logging.getLogger(__name__)

        config = TrainingConfig(
            ratings_csv=args.ratings_csv,
            content_path=args.content,
            output_dir=args.output_dir,
            n_components=args.n_components,
            n_iter=args.n_iter,
            random_state=args.random_state,
            build_similarity=not args.skip_similarity,
            force_rebuild=args.force_rebuild,
        )

        logger.info("=" * 70)
        logger.info("Training Configuration")
        logger.info("=" * 70)
        logger.info(f"Ratings CSV:      {config.ratings_csv}")
        logger.info(f"Item content:     {config.content_path}")
        logger.info(f"Output directory: {config.output_dir}")
        logger.info(f"Components:       {config.n_components}")
        logger.info(f"Build similarity: {config.build_similarity}")
        logger.info("=" * 70)

        scorer, similarity = train_with_config(config)

        logger.info("=" * 70)
        logger.info("Training Summary")
        logger.info("=" * 70)
        logger.info(f"Model components:   {scorer.model.n_components}")
        logger.info(f"Number of users:    {len(scorer.user_id_to_idx)}")
        logger.info(f"Number of items:    {len(scorer.item_id_to_idx)}")
        if similarity is not None:
            logger.info(f"Similarity model:   {len(similarity)} items")
        logger.info(f"Model saved to: {Path(args.output_dir).absolute()}")
        logger.info("=" * 70)
        return 0

    except FileNotFoundError as e:
        logging.error(f"File error: {e}")
        return 1
    except SimilarityBuildError as e:
        logging.error(f"Similarity model unavailable: {e}")
        return 1
    except ValueError as e:
        logging.error(f"Validation error: {e}")
        return 1
    except KeyboardInterrupt:
        logging.warning("Training interrupted by user")
        return 130
    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
