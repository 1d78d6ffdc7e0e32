"""Issue key extraction from chat messages."""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


class TicketExtractor:
    """Finds issue keys in free-form text using a configured pattern.

    If the pattern has a capture group, the first group is the key;
    otherwise the whole match is. Matching is case-sensitive.
    """

    def __init__(self, pattern: str) -> None:
        self._regexp = re.compile(pattern)
        logger.info(f"Ticket matching regexp: {self._regexp.pattern}")

    @property
    def pattern(self) -> str:
        return self._regexp.pattern

    def extract(self, text: Optional[str]) -> list[str]:
        """Return distinct keys in order of first appearance.

        Empty or missing text yields an empty list.
        """
        if not text:
            return []

        found: list[str] = []
        seen: set[str] = set()
        for match in self._regexp.finditer(text):
            key = match.group(1) if self._regexp.groups else match.group(0)
            if key and key not in seen:
                seen.add(key)
                found.append(key)
        return found
