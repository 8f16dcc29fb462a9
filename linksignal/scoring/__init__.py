"""Signal scoring: velocity, weighted velocity, trending and ranking."""

from linksignal.scoring.config import ScoringConfig
from linksignal.scoring.engine import ScoringEngine
from linksignal.scoring.repository import ScoringRepository
from linksignal.scoring.schemas import LinkScore, ScoredMention
from linksignal.scoring.service import LinkScoringService

__all__ = [
    "LinkScore",
    "LinkScoringService",
    "ScoredMention",
    "ScoringConfig",
    "ScoringEngine",
    "ScoringRepository",
]
