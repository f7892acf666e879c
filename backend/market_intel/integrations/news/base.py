from abc import ABC, abstractmethod
from datetime import date

from market_intel.schemas.intelligence import NewsArticle


class NewsFetchError(Exception):
    """The source could not be reached at all (as opposed to a quiet news day)."""


class NewsSource(ABC):
    """Supplies raw headline records per category for one date.

    An empty mapping means the source answered with nothing for the date.
    Implementations raise NewsFetchError when none of their feeds answered.
    """

    @abstractmethod
    async def fetch_articles(self, target_date: date) -> dict[str, list[NewsArticle]]:
        ...
