"""Content moderation through the OpenAI moderation endpoint."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from openai import OpenAI

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ModerationResult:
    """Classifier verdict for one piece of text."""
    flagged: bool = False
    categories: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)


def _as_dict(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    return value.model_dump(by_alias=True)


class ModerationService:
    """Wraps the moderation endpoint for one OpenAI client."""

    def __init__(self, client: OpenAI, model: str = settings.OPENAI_MODERATION_MODEL):
        self.client = client
        self.model = model

    def classify(self, text: str) -> ModerationResult:
        """
        Classify text. Errors from the provider propagate.

        Returns:
            ModerationResult with the flagged category names and raw scores
        """
        response = self.client.moderations.create(
            model=self.model,
            input=[{"type": "text", "text": text}],
        )
        result = response.results[0]

        categories = [name for name, hit in _as_dict(result.categories).items() if hit]
        scores = {
            name: score
            for name, score in _as_dict(result.category_scores).items()
            if score is not None
        }
        return ModerationResult(flagged=bool(result.flagged), categories=categories, scores=scores)

    def check(self, text: str) -> ModerationResult:
        """
        Classify text, failing open: any provider error yields an unflagged result.
        """
        try:
            result = self.classify(text)
        except Exception as e:
            logger.error(f"Moderation API error, continuing without moderation: {e}")
            return ModerationResult()

        logger.info(
            f"Moderation check completed: flagged={result.flagged}, categories={result.categories}"
        )
        if result.flagged:
            logger.warning(f"Content flagged by moderation: categories={result.categories}")
        return result
