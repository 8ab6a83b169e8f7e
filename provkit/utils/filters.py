"""Regex filter sets.

The rules are:

* An empty set of filters passes everything.
* Otherwise a candidate passes if any filter matches the whole string.
"""

import re
from typing import Iterable, List, Pattern


class FilterSet:
    """A set of full-match regular expressions."""

    def __init__(self, filters: Iterable[str] = ()):
        self.filters: List[str] = list(filters)
        self._patterns: List[Pattern[str]] = []
        # Compile one at a time so the offending pattern can be reported
        for f in self.filters:
            try:
                self._patterns.append(re.compile(f))
            except re.error as e:
                raise ValueError(f"Invalid filter {f!r}: {e}") from e

    def __len__(self) -> int:
        return len(self.filters)

    def is_match(self, candidate: str) -> bool:
        if not self._patterns:
            return True
        return any(p.fullmatch(candidate) for p in self._patterns)

    def select(self, candidates: Iterable[str]) -> List[str]:
        """Candidates that pass, in their original order."""
        return [c for c in candidates if self.is_match(c)]
