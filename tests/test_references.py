# =============================================================================
# Unit Tests — Reference Aggregation
# =============================================================================
#
# Tests citation deduplication and numbered passage formatting. Pure
# functions, no stores or LLMs involved.
# =============================================================================

from delegator.agents.references import (
    Reference,
    aggregate_references,
    build_passages,
    label_sources,
)
from delegator.services.vectorstore import RetrievalHit


def _hit(source_id: str, pages: list[str], answer: str = "text") -> RetrievalHit:
    return RetrievalHit(source_id=source_id, answer=answer, pages=pages)


class TestAggregateReferences:
    """Tests for merging hits into one reference per source."""

    def test_one_reference_per_source(self):
        hits = [
            _hit("tech_doc_001", ["3", "4"]),
            _hit("tech_doc_001", ["12", "13", "14"]),
        ]
        assert aggregate_references(hits) == [
            Reference(source_id="tech_doc_001", pages=["12", "13", "14", "3", "4"]),
        ]

    def test_duplicate_pages_collapsed(self):
        hits = [_hit("a", ["2", "3"]), _hit("a", ["3", "2", "8"])]
        assert aggregate_references(hits)[0].pages == ["2", "3", "8"]

    def test_sources_keep_first_seen_order(self):
        hits = [_hit("b", ["1"]), _hit("a", ["1"]), _hit("b", ["2"])]
        assert [ref.source_id for ref in aggregate_references(hits)] == ["b", "a"]

    def test_pages_sorted_as_strings(self):
        hits = [_hit("a", ["3"]), _hit("a", ["12"]), _hit("a", ["iv"])]
        assert aggregate_references(hits)[0].pages == ["12", "3", "iv"]

    def test_idempotent(self):
        hits = [_hit("a", ["3", "4"]), _hit("b", ["7"]), _hit("a", ["4", "5"])]
        once = aggregate_references(hits)
        regrouped = [
            _hit(ref.source_id, ref.pages) for ref in once
        ]
        assert aggregate_references(regrouped) == once

    def test_empty_hits(self):
        assert aggregate_references([]) == []


class TestBuildPassages:
    """Tests for the numbered combined answer text."""

    def test_single_hit(self):
        hits = [_hit("tech_doc_001", ["3", "4"], "Node.js 18+ is required.")]
        assert build_passages(hits) == "1- Page 3, 4: Node.js 18+ is required."

    def test_same_source_shares_label(self):
        hits = [
            _hit("a", ["1"], "First."),
            _hit("b", ["2"], "Second."),
            _hit("a", ["9"], "Third."),
        ]
        assert build_passages(hits) == (
            "1- Page 1: First.\n\n"
            "2- Page 2: Second.\n\n"
            "1- Page 9: Third."
        )

    def test_pages_keep_stored_order(self):
        hits = [_hit("a", ["8", "2"], "x")]
        assert build_passages(hits).startswith("1- Page 8, 2:")

    def test_empty_hits(self):
        assert build_passages([]) == ""


class TestLabelSources:
    def test_labels_in_first_seen_order(self):
        hits = [_hit("x", []), _hit("y", []), _hit("x", [])]
        assert label_sources(hits) == {"x": 1, "y": 2}
