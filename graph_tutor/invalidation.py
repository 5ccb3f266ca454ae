"""
Write-invalidation module for Graph Tutor.

Every concept or edge mutation goes through WriteInvalidationHook. After the
store write it clears the query cache and bumps the graph version before the
caller sees the result.

Cache keys embed the graph version, so a read that started before a write
and stores its result afterwards files it under the old version. No later
read computes that key, so the entry is never served and simply ages out
within the cache TTL.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from .cache import QueryCache, query_cache
from .graph import would_create_prerequisite_cycle
from .models import Concept, Edge, RelationKind, WriteResult
from .store import ConceptStore, concept_store
from .utils import (
    ConceptValidationError,
    EdgeValidationError,
    NotFound,
    TitleValidationError,
)

logger = structlog.get_logger(__name__)

WRITE_ERRORS = (NotFound, TitleValidationError, ConceptValidationError, EdgeValidationError)


class GraphVersion:
    """Monotonic counter identifying the current state of the graph."""

    def __init__(self, start: int = 0):
        self._value = start

    @property
    def value(self) -> int:
        return self._value

    def bump(self) -> int:
        self._value += 1
        return self._value

    def __int__(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return f"GraphVersion({self._value})"


def invalidates(operation: str) -> Callable:
    """Decorate a hook method so the cache is invalidated after the write.

    Invalidation also runs when the store raises, since a failed write may
    have been partially applied. Known write errors become failed
    WriteResults; anything else propagates.
    """

    def decorator(func: Callable[..., Awaitable[WriteResult]]) -> Callable[..., Awaitable[WriteResult]]:
        @functools.wraps(func)
        async def wrapper(self: "WriteInvalidationHook", *args: Any, **kwargs: Any) -> WriteResult:
            await self.store.ensure_loaded()
            try:
                result = await func(self, *args, **kwargs)
            except WRITE_ERRORS as e:
                logger.info("write_rejected", operation=operation, error=str(e))
                result = WriteResult(success=False, error=str(e))
            finally:
                self._invalidate(operation)
            result.graph_version = self.version.value
            if result.success:
                logger.info("write_applied", operation=operation, concept_id=result.concept_id,
                            graph_version=result.graph_version)
            return result

        return wrapper

    return decorator


class WriteInvalidationHook:
    """Routes concept and edge writes to the store and invalidates cached reads."""

    def __init__(self, store: ConceptStore, cache: QueryCache, version: GraphVersion):
        self.store = store
        self.cache = cache
        self.version = version

    def _invalidate(self, operation: str) -> None:
        self.cache.invalidate_all()
        version = self.version.bump()
        logger.debug("graph_version_bumped", operation=operation, graph_version=version)

    # ============== Concepts ==============

    @invalidates("create_concept")
    async def create_concept(
        self,
        title: str,
        summary: str = "",
        mastery: int = 0,
        notes: str = "",
        module: str | None = None,
        concept_id: str | None = None,
    ) -> WriteResult:
        concept = await self.store.create_concept(
            title, summary=summary, mastery=mastery, notes=notes, module=module, concept_id=concept_id,
        )
        return _concept_result(concept)

    @invalidates("update_concept")
    async def update_concept(self, concept_id: str, **fields: Any) -> WriteResult:
        concept = await self.store.update_concept(concept_id, **fields)
        return _concept_result(concept)

    @invalidates("delete_concept")
    async def delete_concept(self, concept_id: str) -> WriteResult:
        removed = await self.store.delete_concept(concept_id)
        return WriteResult(
            success=True,
            concept_id=concept_id,
            data={"removed_edges": [_edge_dict(e) for e in removed]},
        )

    # ============== Edges ==============

    @invalidates("create_edge")
    async def create_edge(
        self,
        source: str,
        target: str,
        kind: RelationKind | str,
        weight: float | None = None,
    ) -> WriteResult:
        cycle = None
        if kind == RelationKind.PREREQUISITE:
            cycle = would_create_prerequisite_cycle(source, target, self.store.all_edges())

        edge = await self.store.create_edge(source, target, kind, weight)

        warnings = None
        if cycle:
            warnings = {
                "cycle": cycle,
                "message": "This prerequisite edge closes a cycle; context packs treat cycle members as already covered.",
            }
            logger.warning("prerequisite_cycle_created", source=source, target=target, cycle=cycle)
        return WriteResult(success=True, concept_id=source, data=_edge_dict(edge), warnings=warnings)

    @invalidates("update_edge")
    async def update_edge(
        self,
        source: str,
        target: str,
        kind: RelationKind | str,
        weight: float | None,
    ) -> WriteResult:
        edge = await self.store.update_edge(source, target, kind, weight)
        return WriteResult(success=True, concept_id=source, data=_edge_dict(edge))

    @invalidates("delete_edge")
    async def delete_edge(self, source: str, target: str, kind: RelationKind | str) -> WriteResult:
        edge = await self.store.delete_edge(source, target, kind)
        return WriteResult(success=True, concept_id=source, data=_edge_dict(edge))


def _concept_result(concept: Concept) -> WriteResult:
    return WriteResult(
        success=True,
        concept_id=concept.id,
        data=concept.model_dump(mode="json"),
    )


def _edge_dict(edge: Edge) -> dict:
    return edge.model_dump(mode="json")


# Global graph version and hook instances
graph_version = GraphVersion()
write_hook = WriteInvalidationHook(concept_store, query_cache, graph_version)
