# sheetlingo/services/dictionary.py
"""
Term dictionary: the ordered list of TermEntry rows a session edits.

Built from extracted terms, filled by a translation backend, edited by the
user, and finally handed to the rewrite engine. Glossary CSV files let a
dictionary be saved and reused across sessions.
"""

import csv
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from sheetlingo.models.types import MatchPolicy, TermEntry
from sheetlingo.services.exceptions import BackendError

if TYPE_CHECKING:
    from sheetlingo.services.translation_backends import TranslationBackend

logger = logging.getLogger(__name__)

CSV_HEADER = ['source', 'target', 'policy']

# Two-column layout written by earlier glossary exports
_LEGACY_SOURCE_COLUMN = 'original'
_LEGACY_TARGET_COLUMN = 'translated'


class TermDictionary:
    """
    Ordered, source-unique collection of dictionary entries.

    Usage:
        dictionary = TermDictionary.from_terms(terms)
        dictionary.fill_targets("Russian", backend)
        dictionary.update_entry(entry_id, target="...", policy=MatchPolicy.EXACT_ONLY)
    """

    def __init__(self, entries: Optional[list[TermEntry]] = None):
        self._entries: list[TermEntry] = list(entries or [])

    @classmethod
    def from_terms(cls, terms: Iterable[str], id_prefix: Optional[str] = None) -> "TermDictionary":
        """
        Build a dictionary from extracted terms.

        Terms are sorted lexicographically; ids are "<epoch-ms>-<index>".
        """
        prefix = id_prefix if id_prefix is not None else str(int(time.time() * 1000))
        entries = [
            TermEntry(id=f"{prefix}-{index}", source=term)
            for index, term in enumerate(sorted(set(terms)))
        ]
        logger.info("Dictionary created with %d entries", len(entries))
        return cls(entries)

    @property
    def entries(self) -> list[TermEntry]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TermEntry]:
        return iter(self._entries)

    @property
    def sources(self) -> list[str]:
        return [entry.source for entry in self._entries]

    @property
    def is_complete(self) -> bool:
        """True when every entry has a non-blank target."""
        return all(entry.target.strip() for entry in self._entries)

    @property
    def untranslated_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.target.strip())

    def get(self, entry_id: str) -> TermEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(entry_id)

    def update_entry(
        self,
        entry_id: str,
        target: Optional[str] = None,
        policy: Optional[MatchPolicy] = None,
    ) -> TermEntry:
        """
        Edit one entry's target and/or policy.

        Raises:
            KeyError: if no entry has this id
        """
        entry = self.get(entry_id)
        if target is not None:
            entry.target = target
        if policy is not None:
            entry.policy = policy
        return entry

    def fill_targets(self, target_language_name: str, backend: "TranslationBackend") -> int:
        """
        Translate every source in one backend call and store the results.

        All-or-nothing: on a backend failure, a result list of the wrong
        length or a non-string result no entry is modified. An empty result
        string keeps the previous target. Policies are never changed.

        Returns:
            Number of entries whose target was set

        Raises:
            BackendError: if the backend fails or the result does not line up
        """
        if not self._entries:
            return 0

        sources = self.sources
        logger.info(
            "Requesting translation of %d terms into %s", len(sources), target_language_name
        )
        results = backend.translate(sources, target_language_name)

        if not isinstance(results, list) or len(results) != len(sources):
            got = len(results) if isinstance(results, list) else type(results).__name__
            raise BackendError(
                f"Translation count mismatch: expected {len(sources)} results, got {got}"
            )
        bad = [i for i, result in enumerate(results) if not isinstance(result, str)]
        if bad:
            raise BackendError(
                f"Translation result {bad[0]} is {type(results[bad[0]]).__name__}, expected str"
            )

        filled = 0
        for entry, result in zip(self._entries, results):
            if result:
                entry.target = result
                filled += 1
        logger.info("Filled %d/%d dictionary targets", filled, len(self._entries))
        return filled

    # =========================================================================
    # Glossary CSV
    # =========================================================================

    def export_csv(self, output_path: Path) -> int:
        """
        Export the dictionary as CSV.

        Format:
            source,target,policy
            Hello,Привет,FLEXIBLE
            ...

        Returns:
            Number of rows written
        """
        with open(output_path, 'w', encoding='utf-8-sig', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for entry in self._entries:
                writer.writerow([entry.source, entry.target, entry.policy.value])

        logger.info("Exported dictionary CSV: %s (%d rows)", output_path, len(self._entries))
        return len(self._entries)

    def import_csv(self, input_path: Path) -> int:
        """
        Fill targets (and policies) from a CSV file.

        Rows are matched to entries by trimmed source text; rows for unknown
        sources are ignored. Both the source,target,policy layout and the
        two-column original,translated glossary layout are accepted.

        Returns:
            Number of entries updated
        """
        by_source = {entry.source.strip(): entry for entry in self._entries}
        updated = 0

        with open(input_path, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.DictReader(f)
            fieldnames = [name.strip().lower() for name in (reader.fieldnames or [])]
            reader.fieldnames = fieldnames
            if 'source' in fieldnames:
                source_column, target_column = 'source', 'target'
            elif _LEGACY_SOURCE_COLUMN in fieldnames:
                source_column, target_column = _LEGACY_SOURCE_COLUMN, _LEGACY_TARGET_COLUMN
            else:
                raise ValueError(
                    f"{input_path}: expected a 'source' or 'original' column, got {fieldnames}"
                )

            for row in reader:
                source = (row.get(source_column) or '').strip()
                entry = by_source.get(source)
                if entry is None:
                    continue
                target = row.get(target_column)
                if target is not None:
                    entry.target = target
                policy = (row.get('policy') or '').strip().upper()
                if policy:
                    try:
                        entry.policy = MatchPolicy(policy)
                    except ValueError:
                        logger.warning("Unknown policy %r for %r, keeping %s",
                                       policy, source, entry.policy.value)
                updated += 1

        logger.info("Imported dictionary CSV: %s (%d entries updated)", input_path, updated)
        return updated
