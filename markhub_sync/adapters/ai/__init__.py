"""AI folder recommendation adapter."""

from markhub_sync.adapters.ai.client import FolderRecommendationClient
from markhub_sync.adapters.ai.models import FolderRecommendation, FolderRecommendationError
from markhub_sync.adapters.ai.protocols import FolderScorer

__all__ = [
    "FolderRecommendation",
    "FolderRecommendationClient",
    "FolderRecommendationError",
    "FolderScorer",
]
