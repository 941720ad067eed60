"""
Learned Specialty Mapping Store

Key-value override store for manual and accepted corrections:
lower-cased original specialty label -> corrected standardized name.

The specialty matcher consults this store right after exact matching and
before any synonym or fuzzy scoring, so once a correction has been learned
later lookups for the same label short-circuit regardless of survey source.

The store itself performs no I/O. The mapping service loads it from the
survey store and keeps it in step with every persisted correction.
"""

from typing import Dict, Iterator, Optional, Tuple


def learned_key(original_name: str) -> str:
    """Lookup key for a learned mapping: lower-cased, trimmed, whitespace collapsed."""
    return " ".join((original_name or "").lower().split())


class LearnedMappingStore:
    """In-memory learned mapping table."""

    def __init__(self, mappings: Optional[Dict[str, str]] = None) -> None:
        self._mappings: Dict[str, str] = {}
        if mappings:
            self.load(mappings)

    def load(self, mappings: Dict[str, str]) -> None:
        """Replace the table with mappings fetched from the survey store."""
        self._mappings = {
            learned_key(original): corrected
            for original, corrected in mappings.items()
            if learned_key(original) and corrected
        }

    def get(self, original_name: str) -> Optional[str]:
        key = learned_key(original_name)
        if not key:
            return None
        return self._mappings.get(key)

    def set(self, original_name: str, corrected_name: str) -> None:
        key = learned_key(original_name)
        if key and corrected_name:
            self._mappings[key] = corrected_name

    def remove(self, original_name: str) -> bool:
        return self._mappings.pop(learned_key(original_name), None) is not None

    def clear(self) -> None:
        self._mappings.clear()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._mappings)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._mappings.items())

    def __contains__(self, original_name: object) -> bool:
        return isinstance(original_name, str) and learned_key(original_name) in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)
