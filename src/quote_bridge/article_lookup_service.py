"""
Article Lookup Service
Fetches catalog articles (title and price) from Lexware for rows that
reference an articleId.
"""

from __future__ import annotations

from typing import Dict, Optional

from .lexware_connector import LexwareConnector
from .lexware_response_parser import LexwareResponseParser
from .models import CatalogArticle, CatalogUnavailableError


class ArticleLookupService:
    """Look up Lexware articles by id.

    Results (including misses) are cached per instance, so one
    validation run asks Lexware at most once per distinct articleId.
    """

    def __init__(self, connector: Optional[LexwareConnector] = None) -> None:
        self.connector = connector or LexwareConnector()
        self.parser = LexwareResponseParser()
        self._cache: Dict[str, Optional[CatalogArticle]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_article(self, article_id: str) -> Optional[CatalogArticle]:
        """Return the article, or None if Lexware does not know it.

        Raises:
            CatalogUnavailableError: Lexware answered with anything other
                than success or 404, or could not be reached.
        """
        key = (article_id or "").strip()
        if not key:
            return None
        if key in self._cache:
            return self._cache[key]

        resp = self.connector.get_article(key)
        article: Optional[CatalogArticle] = None
        if resp.success:
            article = self.parser.parse_article(resp.data)
        elif resp.status_code != 404:
            # Transient failures are not cached
            reason = resp.error or f"HTTP {resp.status_code}"
            self.connector.logger.warning(
                f"Article lookup for {key} failed: {reason}",
                component="ArticleLookup",
            )
            raise CatalogUnavailableError(key, reason)

        self._cache[key] = article
        return article

    def clear_cache(self) -> None:
        """Clear cached lookup data."""
        self._cache.clear()
