"""Custom exceptions for SeedRec.

Defines specific exception types for model building, model loading and
recommendation failures. The HTTP layer maps them to JSON error responses
using their status code.
"""

from typing import Any, Dict, Optional


class SeedRecException(Exception):
    """Base exception for SeedRec errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ModelNotFoundError(SeedRecException):
    """Raised when model files cannot be found."""

    def __init__(self, model_path: str, details: Optional[Dict[str, Any]] = None):
        message = f"Model not found at '{model_path}'. Please train a model first."
        super().__init__(
            message=message,
            status_code=503,
            details=details or {"model_path": model_path},
        )


class ModelLoadError(SeedRecException):
    """Raised when model fails to load."""

    def __init__(self, model_path: str, error: Exception):
        message = f"Failed to load model from '{model_path}': {str(error)}"
        super().__init__(
            message=message,
            status_code=500,
            details={
                "model_path": model_path,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


class SimilarityBuildError(SeedRecException):
    """Raised when the item content similarity model cannot be built.

    The similarity model is unavailable when this is raised; no partial
    model has been persisted.
    """

    def __init__(
        self,
        model_name: str,
        error: Optional[Exception] = None,
        item_pair: Optional[tuple] = None,
    ):
        reason = str(error) if error is not None else "build aborted"
        message = f"Similarity model '{model_name}' unavailable: {reason}"
        details: Dict[str, Any] = {"model_name": model_name}
        if error is not None:
            details["error"] = str(error)
            details["error_type"] = type(error).__name__
        if item_pair is not None:
            details["item_pair"] = list(item_pair)
        super().__init__(message=message, status_code=503, details=details)
        self.model_name = model_name
        self.item_pair = item_pair


class SimilarityBuildCancelled(SimilarityBuildError):
    """Raised when a similarity model build is cancelled before completion."""

    def __init__(self, model_name: str, item_pair: Optional[tuple] = None):
        super().__init__(model_name, item_pair=item_pair)
        self.message = f"Similarity model '{model_name}' build cancelled"
        self.args = (self.message,)


class RecommendationError(SeedRecException):
    """Raised when recommendation generation fails."""

    def __init__(self, user_id: int, error: Exception):
        message = f"Failed to generate recommendations for user {user_id}: {str(error)}"
        super().__init__(
            message=message,
            status_code=500,
            details={
                "user_id": user_id,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
