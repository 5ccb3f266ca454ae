"""
Context pack assembly for Graph Tutor.

A context pack is the prerequisite closure of a root concept, flattened into
a bounded, ordered list of concepts that can be fed to a tutoring session.

Traversal is breadth-first over outgoing prerequisite edges, visiting
neighbours in the order the store returns them. Example edges of a visited
concept are attached as leaf items directly after it. An example leaf is
only expanded if a prerequisite edge also reaches it. A concept is added
at most once and expanded at most once, which also ends traversal on
cyclic prerequisite chains.
"""

import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from .cache import QueryCache, query_cache
from .config import settings
from .graph import GraphAccessor
from .invalidation import GraphVersion, graph_version
from .models import Concept, ContextPack, Edge, PackItem, RelationKind
from .store import concept_store
from .utils import ConceptNotFound, NotFound, validate_budget

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pack_item(concept: Concept, depth: int, relation: RelationKind | None) -> PackItem:
    return PackItem(
        concept_id=concept.id,
        title=concept.title,
        summary=concept.summary,
        depth=depth,
        relation=relation,
        mastery=concept.mastery,
    )


class ContextPackAssembler:
    """Builds context packs and caches them by (root, budget, graph version)."""

    def __init__(
        self,
        accessor: GraphAccessor,
        cache: QueryCache,
        version: GraphVersion,
        ttl_ms: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.accessor = accessor
        self.cache = cache
        self.version = version
        self.ttl_ms = ttl_ms
        self._clock = clock

    def cache_key(self, root_id: str, budget: int) -> str:
        return f"context-pack:{root_id}:{budget}:v{self.version.value}"

    async def assemble(self, root_id: str, budget: int) -> ContextPack:
        """Return the context pack for a root concept.

        Args:
            root_id: Id of the concept to build the pack for
            budget: Maximum number of items in the pack

        Returns:
            The cached pack for the current graph version, or a freshly built one

        Raises:
            InvalidBudget: If budget is not a positive integer
            ConceptNotFound: If the root concept does not exist
        """
        budget = validate_budget(budget)

        cache_key = self.cache_key(root_id, budget)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("context_pack_cache_hit", root_id=root_id, budget=budget, cache_key=cache_key)
            return cached

        start_time = time.time()
        try:
            root = await self.accessor.get_concept(root_id)
        except NotFound:
            raise ConceptNotFound(root_id) from None

        items, truncated = await self._traverse(root, budget)
        pack = ContextPack(
            root_id=root_id,
            items=tuple(items),
            truncated=truncated,
            generated_at=self._clock(),
            cache_key=cache_key,
        )
        self.cache.set(cache_key, pack, self.ttl_ms)

        logger.info(
            "context_pack_assembled",
            root_id=root_id,
            budget=budget,
            item_count=pack.item_count,
            truncated=truncated,
            cache_key=cache_key,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return pack

    async def _traverse(self, root: Concept, budget: int) -> tuple[list[PackItem], bool]:
        """Walk the prerequisite closure of root. Returns (items, truncated).

        ``included`` holds ids that already have an item; ``expanded`` holds ids
        whose edges were followed. An example leaf is included without being
        expanded, so a prerequisite edge reaching it later still walks its
        prerequisites without adding a second item.
        """
        items: list[PackItem] = []
        included: set[str] = set()
        expanded: set[str] = set()
        queue: deque[tuple[str, int, RelationKind | None]] = deque([(root.id, 0, None)])

        while queue:
            concept_id, depth, relation = queue.popleft()
            if concept_id in expanded:
                continue
            if concept_id not in included:
                concept = root if depth == 0 else await self._fetch(concept_id)
                if concept is None:
                    continue
                if len(items) >= budget:
                    return items, True
                included.add(concept_id)
                items.append(_pack_item(concept, depth, relation))
            expanded.add(concept_id)

            for edge in await self._edges(concept_id, RelationKind.EXAMPLE):
                if edge.target in included:
                    continue
                example = await self._fetch(edge.target)
                if example is None:
                    continue
                if len(items) >= budget:
                    return items, True
                included.add(example.id)
                items.append(_pack_item(example, depth + 1, RelationKind.EXAMPLE))

            for edge in await self._edges(concept_id, RelationKind.PREREQUISITE):
                if edge.target not in expanded:
                    queue.append((edge.target, depth + 1, RelationKind.PREREQUISITE))

        return items, False

    async def _fetch(self, concept_id: str) -> Concept | None:
        """Fetch a non-root concept; a missing one prunes its branch."""
        try:
            return await self.accessor.get_concept(concept_id)
        except NotFound:
            logger.debug("context_pack_branch_pruned", concept_id=concept_id)
            return None

    async def _edges(self, concept_id: str, kind: RelationKind) -> list[Edge]:
        try:
            return await self.accessor.get_outgoing_edges(concept_id, kind)
        except NotFound:
            return []


def render_markdown(pack: ContextPack) -> str:
    """Render a context pack as markdown for pasting into a tutoring prompt."""
    root_title = pack.items[0].title if pack.items else pack.root_id

    lines = [
        f"# Context Pack: {root_title}",
        f"Generated: {pack.generated_at.isoformat()}",
        f"Concepts included: {pack.item_count}" + (" (truncated)" if pack.truncated else ""),
        "",
        "---",
        "",
    ]
    for item in pack.items:
        relation = item.relation.value if item.relation else "root"
        lines.append(f"## {item.title}")
        lines.append(f"**Depth**: {item.depth} | **Relation**: {relation} | **Mastery**: {item.mastery}/{settings.max_mastery}")
        lines.append("")
        if item.summary:
            lines.append(item.summary)
            lines.append("")
        lines.append("---")
        lines.append("")

    return "\n".join(lines)


# Global assembler instance
assembler = ContextPackAssembler(
    GraphAccessor(concept_store), query_cache, graph_version, ttl_ms=settings.cache_ttl_ms,
)
