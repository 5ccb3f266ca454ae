"""
Pydantic models for Graph Tutor.

Contains data models for concepts, edges, context packs, cache entries, graph views and write results.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RelationKind(str, Enum):
    """Kind of a directed edge between two concepts."""

    PREREQUISITE = "prerequisite"
    EXAMPLE = "example"
    RELATED = "related"


class Concept(BaseModel):
    """Model for a concept node in the knowledge graph."""

    id: str
    title: str
    summary: str = ""
    mastery: int = 0
    notes: str = ""
    module: str | None = None
    created_at: datetime
    updated_at: datetime


class Edge(BaseModel):
    """Model for a directed, typed edge.

    ``source -[prerequisite]-> target`` reads "source requires target".
    """

    source: str
    target: str
    kind: RelationKind
    weight: float | None = None


class PackItem(BaseModel):
    """One concept inside a context pack."""

    model_config = ConfigDict(frozen=True)

    concept_id: str
    title: str
    summary: str
    depth: int
    relation: RelationKind | None = None
    mastery: int = 0

    def to_response(self) -> dict[str, Any]:
        return {
            "conceptId": self.concept_id,
            "title": self.title,
            "summary": self.summary,
            "depth": self.depth,
            "relation": self.relation.value if self.relation else None,
            "mastery": self.mastery,
        }


class ContextPack(BaseModel):
    """Bounded, ordered, deduplicated prerequisite closure of a root concept."""

    model_config = ConfigDict(frozen=True)

    root_id: str
    items: tuple[PackItem, ...]
    truncated: bool
    generated_at: datetime
    cache_key: str

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_response(self) -> dict[str, Any]:
        """Serialize to the JSON document shape exposed to API clients."""
        return {
            "root": self.root_id,
            "items": [item.to_response() for item in self.items],
            "itemCount": self.item_count,
            "truncated": self.truncated,
            "generatedAt": self.generated_at.isoformat(),
            "cacheKey": self.cache_key,
        }


class CacheEntry(BaseModel):
    """A cached value with its absolute expiry instant (monotonic seconds)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    value: Any
    expires_at: float


class GraphNode(BaseModel):
    """Model for a node in the graph overview."""

    id: str
    title: str
    mastery: int
    connections: int


class GraphEdge(BaseModel):
    """Model for an edge in the graph overview."""

    source: str
    target: str
    kind: str


class WriteResult(BaseModel):
    """Model for the result of a write operation."""

    success: bool
    concept_id: str = ""
    graph_version: int = 0
    error: str = ""
    warnings: dict[str, Any] | None = None
    data: dict[str, Any] = Field(default_factory=dict)
