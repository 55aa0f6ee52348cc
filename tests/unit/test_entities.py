"""Tests for similarity domain entities."""
from datetime import datetime, timezone

import pytest

from ticket_assist.similarity.domain import (
    ExplanationPromptBuilder,
    SearchOutcome,
    SimilarityResult,
    Ticket,
    format_timestamp,
)


class TestFormatTimestamp:
    """Normalization of stored timestamps."""

    @pytest.mark.parametrize("value", [None, "", True])
    def test_empty_values(self, value):
        assert format_timestamp(value) is None

    def test_mongo_date_string(self):
        assert format_timestamp({"$date": "2024-03-01T08:30:00Z"}) == "2024-03-01T08:30:00Z"

    def test_mongo_number_long(self):
        value = {"$date": {"$numberLong": "1704067200000"}}

        assert format_timestamp(value) == "2024-01-01T00:00:00+00:00"

    def test_epoch_milliseconds(self):
        assert format_timestamp(1704067200000) == "2024-01-01T00:00:00+00:00"

    def test_datetime(self):
        value = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

        assert format_timestamp(value) == "2024-01-01T12:00:00+00:00"

    def test_plain_string_is_kept(self):
        assert format_timestamp("2024-01-01 10:00:00") == "2024-01-01 10:00:00"


class TestTicket:
    def test_from_mapping_ignores_unknown_keys(self):
        ticket = Ticket.from_mapping({"ticket_id": "INC1", "vector": [0.1], "category": "Email"})

        assert ticket.ticket_id == "INC1"
        assert ticket.category == "Email"
        assert ticket.description is None
        assert not hasattr(ticket, "vector")


class TestSearchOutcome:
    def make_outcome(self, results):
        return SearchOutcome(
            query=Ticket(ticket_id="INC1"),
            results=results,
            min_confidence_threshold=0.7,
            candidates_considered=20,
            processing_time_ms=12,
        )

    def test_message_with_results(self):
        result = SimilarityResult(Ticket(ticket_id="A"), 0.9, {}, 0.9, rank=1, confidence_percentage=90)

        outcome = self.make_outcome([result, result])

        assert outcome.message == "Found 2 similar tickets above 70% confidence"
        assert outcome.total_results == 2

    def test_message_without_results(self):
        assert self.make_outcome([]).message == "0 results found above threshold"


class TestExplanationPromptBuilder:
    def test_prompt_contents(self):
        query = Ticket(short_description="vpn drops", description="VPN disconnects hourly",
                       category="Network", source="Jira")
        result = SimilarityResult(
            Ticket(ticket_id="INC9", short_description="vpn unstable", category="Network"),
            0.9, {}, 0.88, rank=1, confidence_percentage=88
        )

        prompt = ExplanationPromptBuilder.build_prompt(query, [result])

        assert "- Short Description: vpn drops" in prompt
        assert "1. Ticket ID: INC9 (Confidence: 88%)" in prompt
        assert prompt.endswith("Explain the similarity (respond with JSON only):")
        assert '"summary"' in ExplanationPromptBuilder.get_system_prompt()


class TestUnreadableTimestamps:
    """Bad stored dates become None instead of failing the search."""

    @pytest.mark.parametrize("value", [
        {"$date": {"$numberLong": "n/a"}},
        {"$date": {"$numberLong": None}},
        {"$date": {"$numberLong": "999999999999999999"}},
        10 ** 20,
        float("nan"),
    ])
    def test_returns_none(self, value):
        assert format_timestamp(value) is None

    def test_result_with_bad_date_still_serializes(self):
        ticket = Ticket(ticket_id="A", opened_time={"$date": {"$numberLong": "n/a"}}, closed_time=1704067200000)
        result = SimilarityResult(ticket, 0.9, {}, 0.9, rank=1, confidence_percentage=90)

        data = result.to_dict()

        assert data["opened_time"] is None
        assert data["closed_time"] == "2024-01-01T00:00:00+00:00"
