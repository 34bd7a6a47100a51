# chat_ledger/core/categorizer.py
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from chat_ledger.core.errors import LedgerError
from chat_ledger.core.models import (
    DEFAULT_CATEGORIES,
    NOT_FOUND,
    UNCATEGORIZED,
    CategoryMapping,
    LocalClock,
)

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    category: str
    tag: str = ""
    source: str = "none"


def word_pattern(description: str) -> Optional[re.Pattern]:
    words = [re.escape(w) for w in description.split()]
    if not words:
        return None
    return re.compile("|".join(words), re.IGNORECASE)


class CategoryResolver:
    """
    Infers category and tag for a description from the mapping table, with
    an optional classifier as the last resort. Owns the mapping write path.
    """

    def __init__(self, mappings, classifier=None, categories: Iterable[str] = DEFAULT_CATEGORIES,
                 clock: Optional[LocalClock] = None):
        self.mappings = mappings
        self.classifier = classifier
        self.categories = list(categories)
        self.clock = clock or LocalClock()

    def _from_store(self, description: str) -> Optional[Resolution]:
        hits = self.mappings.search_by_column("description", description)
        if hits:
            return self._resolution(hits[0].data, "exact")
        pattern = word_pattern(description)
        if pattern is None:
            return None
        hits = self.mappings.search_by_column("description", pattern)
        if hits:
            return self._resolution(hits[0].data, "fuzzy")
        return None

    @staticmethod
    def _resolution(data: dict, source: str) -> Resolution:
        return Resolution(
            category=str(data.get("category") or UNCATEGORIZED),
            tag=str(data.get("tag") or ""),
            source=source,
        )

    def resolve_local(self, description: str) -> Resolution:
        """Mapping-table lookup only; used for wizard previews."""
        if not description:
            return Resolution(UNCATEGORIZED)
        return self._from_store(description) or Resolution(UNCATEGORIZED)

    def resolve(self, description: str) -> Resolution:
        found = self._from_store(description) if description else None
        if found:
            return found
        if self.classifier is None:
            return Resolution(UNCATEGORIZED)
        try:
            guess = self.classifier.categorize(description, self.categories)
        except LedgerError as exc:
            logger.warning("Category classifier failed for %r: %s", description, exc)
            return Resolution(NOT_FOUND, source="classifier")
        category = str(guess.get("category") or "")
        if category not in self.categories:
            category = NOT_FOUND
        return Resolution(category, str(guess.get("tag") or ""), source="classifier")

    # -- mapping write path -------------------------------------------------

    def save_mapping(self, description: str, category: str, tag: str = "") -> bool:
        """Upsert a mapping; returns True when an existing row was updated."""
        stamp = self.clock.now().strftime("%Y-%m-%d %H:%M:%S")
        existing = self.mappings.search_by_column("description", description)
        if existing:
            logger.info("Updating category mapping: %s -> %s", description, category)
            self.mappings.overwrite_range(existing[0].index, {
                "category": category,
                "tag": tag,
                "date_added": stamp,
            })
            self.mappings.flush()
            return True
        logger.info("Adding category mapping: %s -> %s", description, category)
        self.mappings.append({
            "description": description,
            "category": category,
            "tag": tag,
            "date_added": stamp,
        })
        self.mappings.flush()
        return False

    def list_mappings(self) -> List[CategoryMapping]:
        return [
            CategoryMapping(
                description=str(r.data.get("description") or ""),
                category=str(r.data.get("category") or ""),
                tag=str(r.data.get("tag") or ""),
                date_added=str(r.data.get("date_added") or ""),
            )
            for r in self.mappings.rows()
        ]

    def delete_mapping(self, description: str) -> bool:
        hits = self.mappings.search_by_column("description", description)
        if not hits:
            return False
        self.mappings.delete_row(hits[0].index)
        self.mappings.flush()
        return True
