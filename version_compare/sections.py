"""
Section extraction for revisions.
"""

from typing import Dict, Iterable, List

from .models import Revision, SectionKind, SECTION_ORDER


class SectionExtractor:
    """Splits a revision into per-section text."""

    def extract(self, revision: Revision) -> Dict[SectionKind, str]:
        """
        Return every section the revision declares, in section order.

        Declared sections with no text map to an empty string; this never raises.
        """
        return {kind: revision.sections.get(kind) or "" for kind in revision.sections}

    def union(self, *extracted: Iterable[SectionKind]) -> List[SectionKind]:
        """Section names present in any of the given extractions, in section order."""
        present = set()
        for sections in extracted:
            present.update(sections)
        return [kind for kind in SECTION_ORDER if kind in present]
