"""Tag search query and result models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from rman.state.models import FileEntry

Operator = Literal["equals", "contains", "not_contains"]
Combine = Literal["AND", "OR"]

_OPERATOR_ALIASES = {
    "eq": "equals",
    "equals": "equals",
    "==": "equals",
    "contains": "contains",
    "notcontains": "not_contains",
    "not_contains": "not_contains",
    "!contains": "not_contains",
}


class TagCondition(BaseModel):
    """One ``key <operator> value`` test against a file's tags.

    Comparisons are case-insensitive; a missing tag compares as the empty
    string.
    """

    key: str
    operator: Operator = "equals"
    value: str

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> str:
        text = str(value or "equals").strip().lower()
        if text not in _OPERATOR_ALIASES:
            raise ValueError(f"Unknown operator '{value}'; use equals, contains, or not_contains.")
        return _OPERATOR_ALIASES[text]

    @field_validator("key", "value", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def blank(self) -> bool:
        """Return True when the key or the value is empty."""
        return not self.key.strip() or not self.value

    def matches(self, tags: Mapping[str, str]) -> bool:
        """Evaluate the condition against a tag map."""
        actual = str(tags.get(self.key.strip(), "") or "").lower()
        expected = self.value.lower()
        if self.operator == "equals":
            return actual == expected
        if self.operator == "contains":
            return expected in actual
        return expected not in actual


class SearchQuery(BaseModel):
    """Conditions combined with AND or OR."""

    conditions: List[TagCondition] = Field(default_factory=list)
    combine: Combine = "AND"

    @field_validator("combine", mode="before")
    @classmethod
    def _normalize_combine(cls, value: Any) -> str:
        return "OR" if str(value or "").strip().upper() == "OR" else "AND"

    @property
    def effective(self) -> List[TagCondition]:
        """Return the conditions that have both a key and a value."""
        return [
            condition.model_copy(update={"key": condition.key.strip()})
            for condition in self.conditions
            if not condition.blank
        ]

    @property
    def indexable(self) -> bool:
        """Return True when an equality-indexed lookup can answer the query."""
        conditions = self.effective
        return (
            self.combine == "AND"
            and bool(conditions)
            and all(condition.operator == "equals" for condition in conditions)
        )

    def matches(self, tags: Mapping[str, str]) -> bool:
        """Evaluate every effective condition; no conditions match everything."""
        conditions = self.effective
        if not conditions:
            return True
        if self.combine == "AND":
            return all(condition.matches(tags) for condition in conditions)
        return any(condition.matches(tags) for condition in conditions)


class SearchResult(BaseModel):
    """Entries matched by a search and how they were found.

    Attributes:
        entries: Matching files.
        strategy: Name of the strategy that produced the entries.
        hint: Advice shown when the indexed lookup failed and a scan was used.
    """

    entries: List[FileEntry] = Field(default_factory=list)
    strategy: str
    hint: Optional[str] = None


class SavedSearch(BaseModel):
    """A named query stored per user."""

    id: str = ""
    name: str
    query: SearchQuery = Field(default_factory=SearchQuery)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "SavedSearch":
        """Build a saved search from its stored document."""
        rows = data.get("rows") if isinstance(data.get("rows"), list) else []
        conditions = [
            TagCondition(
                key=str(row.get("key") or "").strip(),
                operator=row.get("op"),
                value=row.get("value"),
            )
            for row in rows
            if isinstance(row, Mapping)
        ]
        created = data.get("createdAt")
        values: Dict[str, Any] = {
            "id": doc_id,
            "name": str(data.get("name") or doc_id),
            "query": SearchQuery(conditions=conditions, combine=data.get("combine")),
        }
        if isinstance(created, (int, float)):
            values["created_at"] = datetime.fromtimestamp(created / 1000, tz=timezone.utc)
        elif created:
            values["created_at"] = created
        return cls.model_validate(values)

    def to_document(self) -> Dict[str, Any]:
        """Return the stored document body."""
        return {
            "name": self.name,
            "rows": [
                {"key": condition.key, "value": condition.value, "op": condition.operator}
                for condition in self.query.conditions
            ],
            "combine": self.query.combine,
            "createdAt": self.created_at.isoformat(),
        }


__all__ = [
    "Operator",
    "Combine",
    "TagCondition",
    "SearchQuery",
    "SearchResult",
    "SavedSearch",
]
