"""
Concept store module for Graph Tutor.

Contains the ConceptStore class: the record store for concepts and edges.
Records live in memory; when a vault path is configured every concept is
also kept as a markdown file with YAML frontmatter, read on load and
written through on every mutation.

The store itself does not touch the query cache. Callers mutate it through
the write-invalidation hook (see invalidation.py).
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import structlog

from .config import settings
from .models import Concept, Edge, RelationKind
from .utils import (
    ConceptValidationError,
    EdgeValidationError,
    NotFound,
    parse_frontmatter,
    render_frontmatter,
    slugify,
    validate_concept_id,
    validate_mastery,
    validate_notes_size,
    validate_title,
)

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConceptStore:
    """Concept and edge records with optional markdown persistence.

    Outgoing edges are kept per source concept in insertion order, which is
    the order ``outgoing_edges`` returns them in. ``revision`` counts committed
    mutations and serves as the store's changeset marker.
    """

    def __init__(self, vault_path: Path | None = None):
        self.vault_path = vault_path
        self.revision = 0
        self._concepts: dict[str, Concept] = {}
        self._edges: dict[str, list[Edge]] = {}
        self._loaded = vault_path is None

    # ============== Loading ==============

    async def _load_concept_file(self, concept_file: Path) -> tuple[Concept, list[Edge]] | None:
        """Load a single concept file and return (concept, outgoing edges) or None on error."""
        try:
            async with aiofiles.open(concept_file, encoding="utf-8") as f:
                content = await f.read()
            frontmatter, body = parse_frontmatter(content)

            concept_id = str(frontmatter.get("id") or concept_file.stem)
            mtime = datetime.fromtimestamp(concept_file.stat().st_mtime, tz=timezone.utc)
            concept = Concept(
                id=concept_id,
                title=str(frontmatter.get("title") or concept_id),
                summary=str(frontmatter.get("summary") or ""),
                mastery=int(frontmatter.get("mastery") or 0),
                notes=body.strip(),
                module=frontmatter.get("module"),
                created_at=frontmatter.get("created_at") or mtime,
                updated_at=frontmatter.get("updated_at") or mtime,
            )

            edges: list[Edge] = []
            for raw in frontmatter.get("edges") or []:
                try:
                    edges.append(Edge(
                        source=concept_id,
                        target=str(raw["target"]),
                        kind=RelationKind(raw["kind"]),
                        weight=raw.get("weight"),
                    ))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("edge_skipped", path=str(concept_file), edge=raw, error=str(e))

            return concept, edges
        except Exception as e:
            logger.warning("concept_read_failed", path=str(concept_file), error=str(e))
            return None

    async def load(self) -> None:
        """Perform a full reload of every concept file in the vault."""
        if self.vault_path is None:
            self._loaded = True
            return

        self.vault_path.mkdir(parents=True, exist_ok=True)
        concept_files = sorted(
            p for p in self.vault_path.rglob("*.md")
            if not any(part.startswith(".") for part in p.relative_to(self.vault_path).parts)
        )
        results = await asyncio.gather(*(self._load_concept_file(p) for p in concept_files))

        self._concepts.clear()
        self._edges.clear()
        for concept_file, result in zip(concept_files, results):
            if result is None:
                continue
            concept, edges = result
            if concept.id in self._concepts:
                logger.warning("duplicate_concept_id", concept_id=concept.id, path=str(concept_file))
                continue
            self._concepts[concept.id] = concept
            self._edges[concept.id] = self._dedupe_edges(edges)

        self._loaded = True
        logger.info(
            "store_loaded",
            concept_count=len(self._concepts),
            edge_count=sum(len(e) for e in self._edges.values()),
        )

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    @staticmethod
    def _dedupe_edges(edges: list[Edge]) -> list[Edge]:
        seen: set[tuple[str, RelationKind]] = set()
        unique: list[Edge] = []
        for edge in edges:
            if (edge.target, edge.kind) in seen:
                continue
            seen.add((edge.target, edge.kind))
            unique.append(edge)
        return unique

    # ============== Persistence ==============

    def _concept_path(self, concept_id: str) -> Path:
        return self.vault_path / f"{concept_id}.md"

    async def _persist(self, concept: Concept, edges: list[Edge]) -> None:
        """Write a concept and its outgoing edges to its markdown file."""
        if self.vault_path is None:
            return

        frontmatter = {
            "id": concept.id,
            "title": concept.title,
            "summary": concept.summary,
            "mastery": concept.mastery,
            "module": concept.module,
            "created_at": concept.created_at,
            "updated_at": concept.updated_at,
            "edges": [
                {"target": e.target, "kind": e.kind.value, **({"weight": e.weight} if e.weight is not None else {})}
                for e in edges
            ],
        }
        file_path = self._concept_path(concept.id)
        async with aiofiles.open(file_path, mode="w", encoding="utf-8") as f:
            await f.write(render_frontmatter(frontmatter) + concept.notes)

    async def _persist_edges(self, source: str, edges: list[Edge]) -> None:
        await self._persist(self._concepts[source], edges)

    def _remove_file(self, concept_id: str) -> None:
        if self.vault_path is None:
            return
        self._concept_path(concept_id).unlink(missing_ok=True)

    # ============== Reads ==============

    def get_concept(self, concept_id: str) -> Concept | None:
        return self._concepts.get(concept_id)

    def list_concepts(self) -> list[Concept]:
        return list(self._concepts.values())

    def outgoing_edges(self, concept_id: str, kind: RelationKind | None = None) -> list[Edge]:
        """Return outgoing edges of a concept in insertion order, optionally filtered by kind."""
        edges = self._edges.get(concept_id, [])
        if kind is None:
            return list(edges)
        return [e for e in edges if e.kind == kind]

    def all_edges(self) -> list[Edge]:
        return [e for edges in self._edges.values() for e in edges]

    # ============== Concept writes ==============

    def _require(self, concept_id: str) -> Concept:
        concept = self._concepts.get(concept_id)
        if concept is None:
            raise NotFound(concept_id)
        return concept

    async def create_concept(
        self,
        title: str,
        summary: str = "",
        mastery: int = 0,
        notes: str = "",
        module: str | None = None,
        concept_id: str | None = None,
    ) -> Concept:
        """Create a concept. The id defaults to a slug of the title."""
        title = validate_title(title)
        concept_id = validate_concept_id(concept_id or slugify(title))
        if concept_id in self._concepts:
            raise ConceptValidationError(f"Concept already exists: {concept_id}")

        now = _now()
        concept = Concept(
            id=concept_id,
            title=title,
            summary=summary.strip(),
            mastery=validate_mastery(mastery),
            notes=validate_notes_size(notes),
            module=module or None,
            created_at=now,
            updated_at=now,
        )
        await self._persist(concept, [])
        self._concepts[concept_id] = concept
        self._edges[concept_id] = []
        self.revision += 1
        return concept

    async def update_concept(
        self,
        concept_id: str,
        title: str | None = None,
        summary: str | None = None,
        mastery: int | None = None,
        notes: str | None = None,
        module: str | None = None,
    ) -> Concept:
        """Update the given fields of a concept. ``module=""`` clears the module."""
        concept = self._require(concept_id)

        changes: dict = {}
        if title is not None:
            changes["title"] = validate_title(title)
        if summary is not None:
            changes["summary"] = summary.strip()
        if mastery is not None:
            changes["mastery"] = validate_mastery(mastery)
        if notes is not None:
            changes["notes"] = validate_notes_size(notes)
        if module is not None:
            changes["module"] = module or None
        if not changes:
            raise ConceptValidationError("At least one field must be provided")

        changes["updated_at"] = _now()
        updated = concept.model_copy(update=changes)
        await self._persist(updated, self._edges.get(concept_id, []))
        self._concepts[concept_id] = updated
        self.revision += 1
        return updated

    async def delete_concept(self, concept_id: str) -> list[Edge]:
        """Delete a concept and every edge touching it. Returns the removed edges.

        Sources that lose an edge are rewritten before the concept's own file
        is removed; memory is only changed once all file writes succeeded.
        """
        self._require(concept_id)

        removed = list(self._edges.get(concept_id, []))
        rewritten: dict[str, list[Edge]] = {}
        for source, edges in self._edges.items():
            if source == concept_id:
                continue
            kept = [e for e in edges if e.target != concept_id]
            if len(kept) != len(edges):
                removed.extend(e for e in edges if e.target == concept_id)
                rewritten[source] = kept

        for source, kept in rewritten.items():
            await self._persist_edges(source, kept)
        self._remove_file(concept_id)

        self._edges.update(rewritten)
        self._edges.pop(concept_id, None)
        del self._concepts[concept_id]
        self.revision += 1
        return removed

    # ============== Edge writes ==============

    def _find_edge(self, source: str, target: str, kind: RelationKind) -> Edge | None:
        for edge in self._edges.get(source, []):
            if edge.target == target and edge.kind == kind:
                return edge
        return None

    async def create_edge(
        self,
        source: str,
        target: str,
        kind: RelationKind | str,
        weight: float | None = None,
    ) -> Edge:
        """Create an edge. At most one edge may exist per (source, target, kind)."""
        kind = _coerce_kind(kind)
        if source == target:
            raise EdgeValidationError("Edge source and target must differ")
        self._require(source)
        self._require(target)
        if self._find_edge(source, target, kind) is not None:
            raise EdgeValidationError(f"Edge already exists: {source} -[{kind.value}]-> {target}")

        edge = Edge(source=source, target=target, kind=kind, weight=weight)
        edges = [*self._edges.get(source, []), edge]
        await self._persist_edges(source, edges)
        self._edges[source] = edges
        self.revision += 1
        return edge

    async def update_edge(
        self,
        source: str,
        target: str,
        kind: RelationKind | str,
        weight: float | None,
    ) -> Edge:
        """Update an edge's weight in place, keeping its position."""
        kind = _coerce_kind(kind)
        edge = self._find_edge(source, target, kind)
        if edge is None:
            raise NotFound(f"{source} -[{kind.value}]-> {target}", what="Edge")

        updated = edge.model_copy(update={"weight": weight})
        edges = list(self._edges[source])
        edges[edges.index(edge)] = updated
        await self._persist_edges(source, edges)
        self._edges[source] = edges
        self.revision += 1
        return updated

    async def delete_edge(self, source: str, target: str, kind: RelationKind | str) -> Edge:
        """Delete an edge and return it."""
        kind = _coerce_kind(kind)
        edge = self._find_edge(source, target, kind)
        if edge is None:
            raise NotFound(f"{source} -[{kind.value}]-> {target}", what="Edge")

        edges = [e for e in self._edges[source] if e is not edge]
        await self._persist_edges(source, edges)
        self._edges[source] = edges
        self.revision += 1
        return edge


def _coerce_kind(kind: RelationKind | str) -> RelationKind:
    try:
        return RelationKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in RelationKind)
        raise EdgeValidationError(f"Invalid relation kind {kind!r}. Valid kinds: {valid}")


# Global store instance
concept_store = ConceptStore(settings.vault_path)
