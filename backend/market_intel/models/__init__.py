from market_intel.models.base import Base
from market_intel.models.daily_analysis import (
    DailyAnalysisRecord, EnrichedArticleRecord, SentimentHistoryEntry,
)
from market_intel.models.narrative import NarrativeThreadRecord
from market_intel.models.signals import DailyVolumeEntry, EntitySentimentEntry
from market_intel.models.validation import (
    BacktestResultRecord, WeeklyScorecardRecord, GPRHistoryEntry,
)

__all__ = [
    "Base", "DailyAnalysisRecord", "EnrichedArticleRecord", "SentimentHistoryEntry",
    "NarrativeThreadRecord", "BacktestResultRecord", "WeeklyScorecardRecord",
    "GPRHistoryEntry", "DailyVolumeEntry", "EntitySentimentEntry",
]
