"""
Similarity Domain Entities
==========================

Domain entities for the ticket similarity module.

Contains pure Python business objects: the ticket being searched for, the
ranked results produced for it, and the per-request search options.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ticket_assist.config import RESULT_FIELDS


def format_timestamp(value: Any) -> Optional[str]:
    """
    Normalize a stored timestamp to an ISO-8601 string.

    Accepts datetimes, strings (returned unchanged), epoch milliseconds and
    Mongo extended JSON (``{"$date": ...}``). Anything empty or unreadable
    becomes None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Mapping) and "$date" in value:
        value = value["$date"]
        if isinstance(value, Mapping) and "$numberLong" in value:
            try:
                value = int(value["$numberLong"])
            except (TypeError, ValueError):
                return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
        except (ValueError, OverflowError, OSError):
            return None
    return str(value)


@dataclass
class Ticket:
    """
    A support ticket, either the query of a search or a stored candidate.

    ``short_description``, ``description``, ``category`` and ``source`` are
    required for a query; stored payloads may lack any of them.
    """
    short_description: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    source: Optional[str] = None
    ticket_id: Optional[str] = None
    subcategory: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    impact: Optional[str] = None
    urgency: Optional[str] = None
    opened_time: Optional[Any] = None
    closed_time: Optional[Any] = None
    resolved_time: Optional[Any] = None
    assigned_to: Optional[str] = None
    assignment_group: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[Any] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Ticket":
        """Build a ticket from a payload, ignoring unknown keys."""
        return cls(**{name: data.get(name) for name in RESULT_FIELDS})

    def get(self, name: str) -> Any:
        return getattr(self, name, None)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SimilarityResult:
    """
    One candidate ticket scored against a query.

    Created fresh for every search and never persisted. ``rank`` and
    ``confidence_percentage`` are only set once the list is filtered and
    ordered.
    """
    ticket: Ticket
    semantic_score: float
    field_similarities: Dict[str, float]
    confidence_score: float
    rank: Optional[int] = None
    confidence_percentage: Optional[int] = None

    @property
    def ticket_id(self) -> Optional[str]:
        return self.ticket.ticket_id

    @property
    def source(self) -> Optional[str]:
        return self.ticket.source

    @property
    def category(self) -> Optional[str]:
        return self.ticket.category

    @property
    def status(self) -> Optional[str]:
        return self.ticket.status

    @property
    def priority(self) -> Optional[str]:
        return self.ticket.priority

    def to_dict(self) -> Dict[str, Any]:
        data = self.ticket.to_dict()
        for name in ("opened_time", "closed_time", "resolved_time"):
            data[name] = format_timestamp(data[name])
        data.update(
            confidence_score=self.confidence_score,
            semantic_score=self.semantic_score,
            field_similarities=dict(self.field_similarities),
            rank=self.rank,
            confidence_percentage=self.confidence_percentage,
        )
        return data


@dataclass
class BusinessRules:
    """
    Optional allow-lists applied after the confidence threshold.

    Every list is ignored when empty; non-empty lists are combined with AND.
    """
    allowed_sources: List[str] = field(default_factory=list)
    allowed_categories: List[str] = field(default_factory=list)
    allowed_statuses: List[str] = field(default_factory=list)
    allowed_priorities: List[str] = field(default_factory=list)
    min_field_similarities: Dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (
            self.allowed_sources or self.allowed_categories or self.allowed_statuses
            or self.allowed_priorities or self.min_field_similarities
        )


@dataclass
class SearchOptions:
    """Per-request search options."""
    business_rules: BusinessRules = field(default_factory=BusinessRules)
    debug: bool = False
    explain: bool = False


@dataclass
class SearchOutcome:
    """Ranked results of one search plus bookkeeping for the response."""
    query: Ticket
    results: List[SimilarityResult]
    min_confidence_threshold: float
    candidates_considered: int
    processing_time_ms: int
    query_text_length: int = 0
    explanation: Optional["Explanation"] = None

    @property
    def total_results(self) -> int:
        return len(self.results)

    @property
    def message(self) -> str:
        if not self.results:
            return "0 results found above threshold"
        threshold = round(self.min_confidence_threshold * 100)
        return f"Found {len(self.results)} similar tickets above {threshold}% confidence"


@dataclass(frozen=True)
class Explanation:
    """LLM-written rationale for why the top results match the query."""
    summary: str
    key_similarities: List[str] = field(default_factory=list)


class ExplanationPromptBuilder:
    """
    Builds prompts for similarity explanations.

    All prompt text lives here so the service stays free of string templates.
    """

    MAX_TICKETS = 3

    SYSTEM_PROMPT = """You are an expert in IT ticket analysis.

Explain why historical tickets are similar to a new ticket. Focus on:
1. Problem description and symptoms
2. Category and context
3. Technical details or error patterns

Keep the explanation concise and focused on the most relevant similarities.

Respond ONLY in JSON format:
{
    "summary": "two or three sentences",
    "key_similarities": ["short phrase", "short phrase"]
}"""

    @classmethod
    def build_prompt(cls, query: Ticket, results: List[SimilarityResult]) -> str:
        """Build the user prompt citing the top results."""
        lines = [
            "Input Ticket:",
            f"- Short Description: {query.short_description}",
            f"- Description: {query.description}",
            f"- Category: {query.category}",
            f"- Source: {query.source}",
            "",
            "Similar Tickets Found:",
        ]
        for index, result in enumerate(results[:cls.MAX_TICKETS], 1):
            ticket = result.ticket
            lines.extend([
                f"{index}. Ticket ID: {ticket.ticket_id} (Confidence: {result.confidence_percentage}%)",
                f"   - Short Description: {ticket.short_description}",
                f"   - Description: {ticket.description}",
                f"   - Category: {ticket.category}",
                f"   - Source: {ticket.source}",
            ])
        lines.extend(["", "Explain the similarity (respond with JSON only):"])
        return "\n".join(lines)

    @classmethod
    def get_system_prompt(cls) -> str:
        """Get the system prompt for explanations."""
        return cls.SYSTEM_PROMPT
