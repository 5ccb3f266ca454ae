"""
Graph functions for Graph Tutor.

Contains the read-only GraphAccessor facade over the concept store, the
cached graph overview and the prerequisite cycle check.
"""

import copy
from collections.abc import Iterable

from .cache import QueryCache
from .models import Concept, Edge, GraphEdge, GraphNode, RelationKind
from .store import ConceptStore
from .utils import NotFound


class GraphAccessor:
    """Read-only view of concepts and edges used by the context-pack assembler.

    Reads are coroutines so a store backed by real I/O can sit behind the
    same interface.
    """

    def __init__(self, store: ConceptStore):
        self.store = store

    async def get_concept(self, concept_id: str) -> Concept:
        """Fetch a concept by id.

        Raises:
            NotFound: If no concept has this id
        """
        await self.store.ensure_loaded()
        concept = self.store.get_concept(concept_id)
        if concept is None:
            raise NotFound(concept_id)
        return concept

    async def get_outgoing_edges(self, concept_id: str, kind: RelationKind) -> list[Edge]:
        """Return outgoing edges of one kind, in store order. Unknown ids have none."""
        await self.store.ensure_loaded()
        return self.store.outgoing_edges(concept_id, kind)

    async def list_concepts(self) -> list[Concept]:
        await self.store.ensure_loaded()
        return self.store.list_concepts()

    async def list_edges(self) -> list[Edge]:
        await self.store.ensure_loaded()
        return self.store.all_edges()


async def build_graph(accessor: GraphAccessor, cache: QueryCache, graph_version: int) -> dict:
    """Build an overview of all concepts and edges, served from the cache when possible.

    Returns:
        dict with:
        - nodes: list of GraphNode as dicts
        - edges: list of GraphEdge as dicts
        - orphans: ids of concepts with no edges at all
        - stats: global graph statistics
    """
    cache_key = f"graph:v{graph_version}"
    cached = cache.get(cache_key)
    if cached is not None:
        return copy.deepcopy(cached)

    concepts = await accessor.list_concepts()
    all_edges = await accessor.list_edges()

    connection_counts: dict[str, int] = {c.id: 0 for c in concepts}
    edges: list[GraphEdge] = []
    for edge in all_edges:
        edges.append(GraphEdge(source=edge.source, target=edge.target, kind=edge.kind.value))
        connection_counts[edge.source] = connection_counts.get(edge.source, 0) + 1
        connection_counts[edge.target] = connection_counts.get(edge.target, 0) + 1

    nodes = [
        GraphNode(
            id=c.id,
            title=c.title,
            mastery=c.mastery,
            connections=connection_counts.get(c.id, 0),
        )
        for c in concepts
    ]
    orphans = [n.id for n in nodes if n.connections == 0]

    by_kind: dict[str, int] = {}
    for edge in edges:
        by_kind[edge.kind] = by_kind.get(edge.kind, 0) + 1

    result = {
        "nodes": [n.model_dump() for n in nodes],
        "edges": [e.model_dump() for e in edges],
        "orphans": orphans,
        "stats": {
            "total_nodes": len(nodes),
            "total_edges": len(edges),
            "orphan_count": len(orphans),
            "edges_by_kind": by_kind,
            "graph_version": graph_version,
        },
    }
    cache.set(cache_key, copy.deepcopy(result))
    return result


def would_create_prerequisite_cycle(source: str, target: str, edges: Iterable[Edge]) -> list[str] | None:
    """Check whether adding ``source -[prerequisite]-> target`` closes a cycle.

    Returns the cycle path (starting at ``target`` and ending at ``source``)
    if it would, otherwise None.
    """
    if source == target:
        return [source]

    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        if edge.kind != RelationKind.PREREQUISITE:
            continue
        adjacency.setdefault(edge.source, []).append(edge.target)

    # Iterative DFS from target looking for source
    visited: set[str] = {target}
    stack: list[tuple[str, list[str]]] = [(target, [target])]
    while stack:
        node, path = stack.pop()
        for neighbor in adjacency.get(node, []):
            if neighbor == source:
                return path + [source]
            if neighbor not in visited:
                visited.add(neighbor)
                stack.append((neighbor, path + [neighbor]))

    return None
