"""Unit tests for EntityResult."""

import json

import pytest

from el_selector.entity import (
    EntityResult,
    compare_results,
    format_score,
    normalize,
    sort_candidates,
    sort_results,
)
from el_selector.types import (
    BoundingBox,
    Candidate,
    Category,
    Definition,
    Mention,
    Origin,
    Sense,
    Statement,
)

from tests.conftest import MockKnowledgeBase, MockPage


def _result(start, end, entity_id="1", selection=None, prob_c=0.0, raw="abc"):
    return EntityResult(
        raw_text=raw,
        start=start,
        end=end,
        entity_id=entity_id,
        selection_score=selection,
        prob_c=prob_c,
    )


class TestNormalize:
    def test_collapses_newlines_and_spaces(self):
        assert normalize("a\n\nb   c") == "a b c"

    def test_strips(self):
        assert normalize("  Paris \n") == "Paris"

    def test_idempotent(self):
        once = normalize(" x \t\n y  z ")
        assert normalize(once) == once

    def test_normalized_text_derived_from_raw(self):
        result = EntityResult(raw_text="New\nYork  City")
        assert result.normalized_text == "New York City"
        result.raw_text = "Boston"
        assert result.normalized_text == "Boston"


class TestConstruction:
    def test_negative_offset_rejected(self):
        with pytest.raises(ValueError):
            EntityResult(raw_text="x", start=-1, end=3)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            EntityResult(raw_text="x", start=5, end=3)

    def test_unset_offsets_allowed(self):
        result = EntityResult()
        assert result.span == (None, None)

    def test_from_mention_preserves_origin(self):
        mention = Mention(start=3, end=8, text="Paris", label="LOC", origin=Origin.USER,
                          link_probability=0.4, is_acronym=False)
        result = EntityResult.from_mention(mention)
        assert result.origin is Origin.USER
        assert result.span == (3, 8)
        assert result.ne_type == "LOC"
        assert result.link_probability == 0.4

    def test_copy_of_shares_collections(self):
        original = _result(0, 3, selection=0.5)
        original.domains.append("Geography")
        copy = EntityResult.copy_of(original)
        assert copy is not original
        assert copy.selection_score == 0.5
        assert copy.domains is original.domains


class TestOrdering:
    def test_start_then_end(self):
        a, b, c = _result(0, 5), _result(0, 3), _result(2, 4)
        assert sort_results([c, a, b]) == [b, a, c]

    def test_higher_selection_score_first(self):
        low = _result(0, 5, "1", selection=0.2, prob_c=0.9)
        high = _result(0, 5, "2", selection=0.8, prob_c=0.1)
        assert compare_results(high, low) < 0
        assert sort_results([low, high])[0] is high

    def test_unscored_falls_back_to_prob_c(self):
        unscored = _result(0, 5, "1", selection=None, prob_c=0.9)
        scored = _result(0, 5, "2", selection=0.8, prob_c=0.1)
        assert compare_results(unscored, scored) < 0

    def test_zero_score_counts_as_unscored(self):
        zero = _result(0, 5, "1", selection=0.0, prob_c=0.7)
        scored = _result(0, 5, "2", selection=0.9, prob_c=0.2)
        assert compare_results(zero, scored) < 0

    def test_equal_scores_use_prob_c(self):
        a = _result(0, 5, "1", selection=0.5, prob_c=0.2)
        b = _result(0, 5, "2", selection=0.5, prob_c=0.6)
        assert compare_results(b, a) < 0

    def test_longer_raw_text_last_resort(self):
        short = _result(0, 5, "1", raw="ab")
        long = _result(0, 5, "2", raw="abcd")
        assert sort_results([short, long])[0] is long

    def test_less_than(self):
        assert _result(0, 2) < _result(1, 2)

    def test_sort_candidates(self):
        a = Candidate(entity_id="a", label="x", commonness=0.9, selection_score=0.1)
        b = Candidate(entity_id="b", label="x", commonness=0.1, selection_score=0.7)
        assert [c.entity_id for c in sort_candidates([a, b])] == ["b", "a"]


class TestEquality:
    def test_offsets_and_id(self):
        a = _result(1, 4, "7", selection=0.1)
        b = _result(1, 4, "7", selection=0.9, raw="other")
        assert a == b

    def test_different_id(self):
        assert _result(1, 4, "7") != _result(1, 4, "8")

    def test_different_offsets(self):
        assert _result(1, 4, "7") != _result(1, 5, "7")


class TestDomainsAndDefinitions:
    def test_domains_deduplicated_case_insensitively(self):
        result = EntityResult()
        result.add_domain("Geography")
        result.add_domain("geography")
        result.add_domain("History")
        assert result.domains == ["Geography", "History"]

    def test_empty_definition_skipped(self):
        result = EntityResult()
        result.add_definition(Definition(text="", source="s", lang="en"))
        result.add_definition(None)
        assert result.definitions == []


class TestPopulateFromCandidate:
    @pytest.fixture
    def candidate(self):
        return Candidate(
            entity_id="22989",
            label="Paris",
            commonness=0.9,
            stable_id="Q90",
            preferred_term="Paris",
            domains=["Geography"],
            categories=[Category("Capitals in Europe", 101)],
            ranker_score=0.8,
            selection_score=0.7,
            relatedness=0.3,
        )

    def test_copies_resolution(self, mock_kb, candidate):
        result = EntityResult(raw_text="Paris", start=0, end=5)
        result.populate_from_candidate(candidate, "en", mock_kb)
        assert result.entity_id == "22989"
        assert result.stable_id == "Q90"
        assert result.prob_c == 0.9
        assert result.ranker_score == 0.8
        assert result.selection_score == 0.7
        assert result.relatedness == 0.3
        assert result.preferred_term == "Paris"
        assert result.domains == ["Geography"]
        assert result.lang == "en"

    def test_candidate_domains_deduplicated(self, mock_kb, candidate):
        candidate.domains = ["Geography", "geography", "GEOGRAPHY"]
        result = EntityResult(raw_text="Paris", start=0, end=5)
        result.domains = ["History"]
        result.populate_from_candidate(candidate, "en", mock_kb)
        assert result.domains == ["Geography"]
        assert json.loads(result.to_json_compact())["domains"] == ["Geography"]

    def test_fetches_definition_and_statements(self, mock_kb, candidate):
        result = EntityResult(raw_text="Paris", start=0, end=5)
        result.populate_from_candidate(candidate, "en", mock_kb)
        assert len(result.definitions) == 1
        assert result.definitions[0].source == "wikipedia-en"
        assert "capital of France" in result.definitions[0].text
        assert [s.property_id for s in result.statements] == ["P17"]

    def test_page_failure_leaves_definition_absent(self, candidate):
        kb = MockKnowledgeBase()
        kb.pages["22989"] = MockPage(error=RuntimeError("bad markup"))
        result = EntityResult(raw_text="Paris", start=0, end=5)
        result.populate_from_candidate(candidate, "en", kb)
        assert result.definitions == []
        assert result.entity_id == "22989"

    def test_missing_page_leaves_definition_absent(self, candidate):
        result = EntityResult(raw_text="Paris", start=0, end=5)
        result.populate_from_candidate(candidate, "en", MockKnowledgeBase())
        assert result.definitions == []
        assert result.statements == []


class TestCrossLingual:
    def test_terms_and_pages(self, mock_kb):
        result = EntityResult()
        result.set_cross_lingual_refs(
            {"fr": "Paris#Histoire", "de": "Paris", "it": "Parigi"},
            ["fr", "de"],
            knowledge_bases={"fr": mock_kb},
        )
        assert result.multilingual_terms == {"de": "Paris", "fr": "Paris"}
        assert result.multilingual_pages == {"fr": "22989"}

    def test_no_target_languages(self):
        result = EntityResult()
        result.set_cross_lingual_refs({"fr": "Paris"}, [])
        assert result.multilingual_terms == {}


class TestSerialization:
    @pytest.fixture
    def populated(self):
        result = EntityResult(
            raw_text="New\nYork",
            start=4,
            end=12,
            ne_type="LOCATION",
            subtypes=["city"],
            bounding_boxes=[BoundingBox(page=1, x=1.5, y=2.0, width=30.0, height=8.0)],
            sense=Sense(fine="city/n1", coarse="location"),
            entity_id="645042",
            stable_id="Q60",
            preferred_term="New York City",
            definitions=[Definition(text="A city.", source="wikipedia-en", lang="en")],
            categories=[Category("Cities", 3)],
            domains=["Geography"],
            statements=[Statement("Q60", "P17", "Q30")],
            multilingual_terms={"fr": "New York"},
            multilingual_pages={"fr": "123"},
            ranker_score=0.5,
            selection_score=0.12345,
            lang="en",
        )
        return result

    def test_outputs_are_json(self, populated):
        full = json.loads(populated.to_json_full())
        compact = json.loads(populated.to_json_compact())
        assert full["rawName"] == "New York"
        assert full["offsetStart"] == 4
        assert full["wikidataId"] == "Q60"
        assert compact["wikipediaExternalRef"] == "645042"

    def test_compact_is_subset_of_full(self, populated):
        full = json.loads(populated.to_json_full())
        compact = json.loads(populated.to_json_compact())
        assert set(compact) <= set(full)
        assert "definitions" not in compact
        assert "statements" not in compact
        assert "preferredTerm" not in compact

    def test_scores_have_four_decimals(self, populated):
        text = populated.to_json_full()
        assert '"nerd_score": 0.5000' in text
        assert '"nerd_selection_score": 0.1235' in text

    def test_absent_scores_render_zero(self):
        text = EntityResult(raw_text="x").to_json_compact()
        assert '"nerd_score": 0.0000' in text
        assert '"nerd_selection_score": 0.0000' in text

    def test_absent_ids_and_offsets_omitted(self):
        data = json.loads(EntityResult(raw_text="x").to_json_full())
        for key in ("offsetStart", "offsetEnd", "wikipediaExternalRef", "wikidataId"):
            assert key not in data

    @pytest.mark.parametrize("sense", [
        Sense(fine="contestant/n1", coarse="person"),
        Sense(fine="sports/n1", coarse="team"),
    ])
    def test_noisy_sense_suppressed(self, populated, sense):
        populated.sense = sense
        assert "sense" not in json.loads(populated.to_json_full())
        assert "sense" not in json.loads(populated.to_json_compact())

    def test_coarse_sense_only_when_different(self, populated):
        populated.sense = Sense(fine="location", coarse="location")
        assert json.loads(populated.to_json_full())["sense"] == {"fineSense": "location"}

    def test_strings_are_escaped(self):
        result = EntityResult(raw_text='say "hi"\\', start=0, end=9)
        assert json.loads(result.to_json_compact())["rawName"] == 'say "hi"\\'

    def test_serialization_repeatable(self, populated):
        assert populated.to_json_full() == populated.to_json_full()
        data = json.loads(populated.to_json_full())
        assert data["multilingual"] == [{"lang": "fr", "term": "New York", "page_id": "123"}]

    def test_format_score(self):
        assert format_score(None) == "0.0000"
        assert format_score(1.23456) == "1.2346"
