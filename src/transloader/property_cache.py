"""
Memoized mapping of observation property names to datastream names.
"""

from typing import Dict, Iterable, Optional, Set

MATCHING_MODES = ("contains", "exact")


class PropertyMatchCache:
    """Resolve raw property names to datastream names, remembering results.

    An exact name match always wins. With ``matching="contains"`` a property
    also matches a datastream whose name it contains (some providers decorate
    column names, e.g. ``"TEMP_Avg"`` for datastream ``"TEMP"``). Misses are
    remembered too, so each property name is scanned at most once until the
    datastream names change.
    """

    def __init__(self, datastream_names: Iterable[str] = (), matching: str = "contains"):
        if matching not in MATCHING_MODES:
            raise ValueError(f"matching must be one of {', '.join(MATCHING_MODES)}")
        self.matching = matching
        self._names: Set[str] = set()
        self._ordered: list = []
        self._matches: Dict[str, Optional[str]] = {}
        self.hits = 0
        self.misses = 0
        self.rebuild(datastream_names)

    @property
    def datastream_names(self) -> Set[str]:
        return set(self._names)

    def rebuild(self, datastream_names: Iterable[str]) -> None:
        """Replace the datastream name set and forget all cached matches."""
        self._names = set(datastream_names)
        # Longest names first so the most specific datastream wins
        self._ordered = sorted(self._names, key=lambda name: (-len(name), name))
        self.invalidate()

    def invalidate(self) -> None:
        self._matches.clear()
        self.hits = 0
        self.misses = 0

    def resolve(self, property_name: str) -> Optional[str]:
        """Return the datastream name for ``property_name``, or None."""
        if property_name in self._matches:
            self.hits += 1
            return self._matches[property_name]

        self.misses += 1
        match: Optional[str] = None
        if property_name in self._names:
            match = property_name
        elif self.matching == "contains":
            match = next((name for name in self._ordered if name in property_name), None)

        self._matches[property_name] = match
        return match

    def has_match(self, property_name: str) -> bool:
        return self.resolve(property_name) is not None

    def __contains__(self, property_name: object) -> bool:
        return isinstance(property_name, str) and self.has_match(property_name)

    def __getitem__(self, property_name: str) -> Optional[str]:
        return self.resolve(property_name)

    def __len__(self) -> int:
        return len(self._matches)
