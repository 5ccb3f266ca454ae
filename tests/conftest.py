"""
Pytest configuration and fixtures for graph-tutor tests.
"""

from pathlib import Path

import pytest

from graph_tutor.cache import QueryCache
from graph_tutor.context_pack import ContextPackAssembler
from graph_tutor.graph import GraphAccessor
from graph_tutor.invalidation import GraphVersion, WriteInvalidationHook
from graph_tutor.store import ConceptStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """A QueryCache with the default 30s TTL driven by a fake clock."""
    return QueryCache(ttl_ms=30_000, clock=clock)


@pytest.fixture
def store():
    """An in-memory concept store."""
    return ConceptStore()


@pytest.fixture
def version():
    return GraphVersion()


@pytest.fixture
def hook(store, cache, version):
    return WriteInvalidationHook(store, cache, version)


@pytest.fixture
def accessor(store):
    return GraphAccessor(store)


@pytest.fixture
def assembler(accessor, cache, version):
    return ContextPackAssembler(accessor, cache, version, ttl_ms=30_000)


@pytest.fixture
async def kv_graph(hook):
    """KV Cache requires Attention, which requires Transformer."""
    await hook.create_concept("KV Cache", summary="Reuse of attention keys and values across decoding steps.")
    await hook.create_concept("Attention", summary="Weighted mixing of values by query-key similarity.", mastery=2)
    await hook.create_concept("Transformer", summary="Stack of attention and feed-forward blocks.", mastery=1)
    await hook.create_edge("kv-cache", "attention", "prerequisite")
    await hook.create_edge("attention", "transformer", "prerequisite")
    return hook


async def add_concepts(hook: WriteInvalidationHook, *concept_ids: str) -> None:
    """Create concepts titled after their ids."""
    for concept_id in concept_ids:
        result = await hook.create_concept(concept_id.upper(), concept_id=concept_id, summary=f"About {concept_id}")
        assert result.success, result.error


async def add_edges(hook: WriteInvalidationHook, kind: str, *pairs: tuple[str, str]) -> None:
    for source, target in pairs:
        result = await hook.create_edge(source, target, kind)
        assert result.success, result.error


@pytest.fixture
def temp_vault(tmp_path: Path):
    """Create a temporary vault with concept files."""
    vault_path = tmp_path / "vault"
    vault_path.mkdir()
    (vault_path / ".obsidian").mkdir()

    (vault_path / "kv-cache.md").write_text("""---
id: kv-cache
title: KV Cache
summary: Reuse of attention keys and values.
mastery: 1
module: inference
edges:
  - target: attention
    kind: prerequisite
  - target: paged-attention
    kind: example
    weight: 0.5
---

Remember the memory cost grows with sequence length.
""", encoding="utf-8")

    (vault_path / "attention.md").write_text("""---
id: attention
title: Attention
summary: Weighted mixing of values.
mastery: 2
edges:
  - target: transformer
    kind: prerequisite
  - target: nowhere
    kind: sideways
---
""", encoding="utf-8")

    (vault_path / "transformer.md").write_text("""---
title: Transformer
summary: Attention plus feed-forward blocks.
---
""", encoding="utf-8")

    (vault_path / "paged-attention.md").write_text("""---
id: paged-attention
title: Paged Attention
---
""", encoding="utf-8")

    # Hidden folders are ignored
    (vault_path / ".obsidian" / "workspace.md").write_text("---\nid: hidden\ntitle: Hidden\n---\n", encoding="utf-8")

    yield vault_path
