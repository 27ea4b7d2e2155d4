# =============================================================================
# Reference Aggregator — Retrieval Hits → Citations + Numbered Passages
# =============================================================================
#
# Raw hits may repeat a source file and repeat page labels. This module:
#   1. Labels each distinct source 1, 2, 3… in first-seen order
#   2. Builds the combined passage text, one numbered line per hit:
#        "1- Page 3, 4: The system requires Node.js 18+..."
#   3. Collapses hits into one Reference per source with the deduplicated,
#      string-sorted union of its page labels
#
# Page labels are free text ("3", "12", "iv"), so they are sorted as
# strings: ["12", "13", "3"] stays in that order.
#
# All functions are pure: same hits in, same output out.
# =============================================================================

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from delegator.services.vectorstore import RetrievalHit


@dataclass
class Reference:
    """A citation: one source file and the pages cited from it."""

    source_id: str
    pages: list[str] = field(default_factory=list)


def label_sources(hits: Sequence[RetrievalHit]) -> dict[str, int]:
    """Assign each distinct source id an integer label in first-seen order."""
    labels: dict[str, int] = {}
    for hit in hits:
        if hit.source_id not in labels:
            labels[hit.source_id] = len(labels) + 1
    return labels


def aggregate_references(hits: Sequence[RetrievalHit]) -> list[Reference]:
    """
    Merge hits into one Reference per source id.

    Sources keep their first-seen order; each source's pages are the sorted,
    deduplicated union of the pages across all of its hits.
    """
    pages_by_source: dict[str, set[str]] = {}
    for hit in hits:
        pages_by_source.setdefault(hit.source_id, set()).update(hit.pages)

    return [
        Reference(source_id=source_id, pages=sorted(pages))
        for source_id, pages in pages_by_source.items()
    ]


def build_passages(hits: Sequence[RetrievalHit]) -> str:
    """
    Render hits as numbered passages separated by blank lines.

    Each line uses the hit's own pages in stored order; the label is the
    hit's source number from label_sources().
    """
    labels = label_sources(hits)
    combined = ""
    for hit in hits:
        combined += (
            f"{labels[hit.source_id]}- Page {', '.join(hit.pages)}: "
            f"{hit.answer}\n\n"
        )
    return combined.strip()
