"""Tests for weighted encoding, field similarity and score fusion."""
import math

import pytest

from ticket_assist.config import FieldWeights
from ticket_assist.similarity.domain import Ticket
from ticket_assist.similarity.domain.scoring import (
    calculate_field_similarity,
    clamp,
    encode_ticket,
    exact_match,
    fuse_scores,
    jaccard_similarity,
    repeat_count,
)


QUERY = Ticket(
    short_description="email not sending",
    description="Outlook fails to send emails with timeout error",
    category="Email",
    source="ServiceNow",
)


class TestRepeatCount:
    """Repetition counts derived from field weights."""

    @pytest.mark.parametrize("weight,expected", [
        (0.35, 4),
        (0.20, 2),
        (0.10, 1),
        (0.70, 7),
        (0.0, 0),
        (1.0, 10),
    ])
    def test_ceil_of_weight_times_multiplier(self, weight, expected):
        assert repeat_count(weight) == expected

    def test_custom_multiplier(self):
        assert repeat_count(0.35, multiplier=4) == 2


class TestEncodeTicket:
    """Weighted text encoding."""

    def test_deterministic(self):
        weights = FieldWeights()
        assert encode_ticket(QUERY, weights) == encode_ticket(QUERY, weights)

    def test_repeats_and_labels(self):
        text = encode_ticket(QUERY, FieldWeights())

        assert text.count("email not sending") == 4
        assert text.count("Outlook fails to send emails with timeout error") == 4
        assert text.count("Category: Email") == 2
        assert text.count("Source: ServiceNow") == 1

    def test_follows_weight_order(self):
        text = encode_ticket(QUERY, FieldWeights())

        assert text.index("email not sending") < text.index("Outlook fails")
        assert text.index("Outlook fails") < text.index("Category: Email")
        assert text.index("Category: Email") < text.index("Source: ServiceNow")

    def test_exact_output_for_small_weights(self):
        weights = {"category": 0.1, "short_description": 0.2}
        ticket = {"category": "Billing", "short_description": "refund"}

        assert encode_ticket(ticket, weights) == "Category: Billing refund refund"

    def test_missing_fields_are_skipped(self):
        ticket = Ticket(short_description="vpn drops", category=None, source="")

        text = encode_ticket(ticket, FieldWeights())

        assert text == " ".join(["vpn drops"] * 4)
        assert "Category" not in text
        assert "Source" not in text

    def test_fields_without_weight_are_ignored(self):
        ticket = {"short_description": "printer jam", "status": "Open"}

        assert "Open" not in encode_ticket(ticket, {"short_description": 0.1})


class TestJaccardSimilarity:
    """Token-set similarity for text fields."""

    def test_partial_overlap(self):
        assert jaccard_similarity("email not sending", "email not sending at all") == pytest.approx(0.6)

    def test_case_insensitive(self):
        assert jaccard_similarity("Email NOT Sending", "email not sending") == 1.0

    @pytest.mark.parametrize("left,right", [(None, "a b"), ("", "a b"), ("a b", "   "), (None, None)])
    def test_empty_side_scores_zero(self, left, right):
        assert jaccard_similarity(left, right) == 0.0

    def test_disjoint(self):
        assert jaccard_similarity("vpn drops", "printer jam") == 0.0


class TestFieldSimilarity:
    """Per-field similarity between query and candidate."""

    def test_category_exact_match_is_case_sensitive(self):
        candidate = Ticket(category="email", source="ServiceNow")

        similarities = calculate_field_similarity(QUERY, candidate)

        assert similarities["category"] == 0.0
        assert similarities["source"] == 1.0

    def test_all_fields_present(self):
        similarities = calculate_field_similarity(QUERY, Ticket())

        assert set(similarities) == {"short_description", "description", "category", "source"}
        assert all(value == 0.0 for value in similarities.values())

    def test_accepts_mappings(self):
        similarities = calculate_field_similarity(
            {"category": "Email", "short_description": "a b"},
            {"category": "Email", "short_description": "a c"},
        )

        assert similarities["category"] == 1.0
        assert similarities["short_description"] == pytest.approx(1 / 3)

    def test_missing_values_never_match(self):
        assert exact_match(None, None) == 0.0


class TestFuseScores:
    """Confidence fusion arithmetic."""

    def test_exact_arithmetic(self):
        candidate = Ticket(
            short_description="email not sending at all",
            description="Outlook fails to send emails",
            category="Email",
            source="ServiceNow",
        )
        similarities = calculate_field_similarity(QUERY, candidate)

        confidence = fuse_scores(similarities, 0.95, FieldWeights())

        assert similarities["short_description"] == pytest.approx(0.6)
        assert similarities["description"] == pytest.approx(0.625)
        expected = 0.95 * 0.7 + (0.35 * 0.6 + 0.35 * 0.625 + 0.20 * 1.0 + 0.10 * 1.0) * 0.3
        assert confidence == pytest.approx(expected)

    def test_missing_similarities_contribute_zero(self):
        assert fuse_scores({}, 0.5, FieldWeights()) == pytest.approx(0.35)

    @pytest.mark.parametrize("semantic,expected", [
        (1.7, 1.0),
        (-0.4, 0.0),
        (float("nan"), 0.0),
    ])
    def test_semantic_score_is_clamped(self, semantic, expected):
        assert fuse_scores({}, semantic, FieldWeights()) == pytest.approx(expected * 0.7)

    def test_result_never_exceeds_one(self):
        similarities = {"short_description": 1.0, "description": 1.0, "category": 1.0, "source": 1.0}
        weights = {"short_description": 1.0, "description": 1.0, "category": 1.0, "source": 1.0}

        assert fuse_scores(similarities, 1.0, weights) == 1.0

    def test_nan_similarity_is_ignored(self):
        confidence = fuse_scores({"category": math.nan, "source": 1.0}, 0.0, FieldWeights())

        assert confidence == pytest.approx(0.10 * 0.3)


class TestClamp:
    def test_non_numeric_is_low(self):
        assert clamp("high") == 0.0
        assert clamp(None) == 0.0

    def test_in_range_is_unchanged(self):
        assert clamp(0.42) == 0.42
