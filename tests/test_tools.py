"""
Tests for the MCP tool handlers.
"""

import json

import pytest

from graph_tutor import tools


@pytest.fixture
def patched_tools(assembler, hook, monkeypatch):
    """Point the tool handlers at the test store, cache and assembler."""
    monkeypatch.setattr(tools, "assembler", assembler)
    monkeypatch.setattr(tools, "write_hook", hook)
    return tools


async def call(name: str, arguments: dict) -> str:
    result = await tools.call_tool(name, arguments)
    return "\n".join(content.text for content in result)


class TestContextPackTool:
    """Tests for tutor_context_pack."""

    async def test_json_output(self, patched_tools, kv_graph):
        """Test the pack is returned as the JSON document."""
        text = await call("tutor_context_pack", {"concept_id": "kv-cache", "budget": 2})
        data = json.loads(text)

        assert data["root"] == "kv-cache"
        assert [i["conceptId"] for i in data["items"]] == ["kv-cache", "attention"]
        assert data["truncated"] is True

    async def test_markdown_output(self, patched_tools, kv_graph):
        text = await call("tutor_context_pack", {"concept_id": "kv-cache", "format": "markdown"})

        assert text.startswith("# Context Pack: KV Cache")
        assert "## Transformer" in text

    async def test_missing_concept(self, patched_tools, kv_graph):
        text = await call("tutor_context_pack", {"concept_id": "nope"})

        assert text == "Error: Concept not found: nope"

    async def test_invalid_budget(self, patched_tools, kv_graph):
        text = await call("tutor_context_pack", {"concept_id": "kv-cache", "budget": 0})

        assert text.startswith("Error: Budget must be a positive integer")


class TestWriteTools:
    """Tests for concept and edge write tools."""

    async def test_concept_create_then_update(self, patched_tools, store):
        """Test the write tool creates, then updates by id."""
        created = json.loads(await call("tutor_concept_write", {"title": "KV Cache", "mastery": 1}))
        assert created["concept_id"] == "kv-cache"

        updated = json.loads(await call("tutor_concept_write", {"concept_id": "kv-cache", "mastery": 3}))

        assert updated["data"]["mastery"] == 3
        assert updated["graph_version"] == 2
        assert store.get_concept("kv-cache").mastery == 3

    async def test_concept_create_requires_title(self, patched_tools):
        text = await call("tutor_concept_write", {"summary": "no title"})

        assert text == "Error: title is required to create a concept"

    async def test_edge_write_then_pack(self, patched_tools, kv_graph):
        """Test an edge written through the tool is visible in the next pack."""
        await call("tutor_context_pack", {"concept_id": "kv-cache"})
        await call("tutor_concept_write", {"title": "Softmax"})
        await call("tutor_edge_write", {"source": "transformer", "target": "softmax", "kind": "prerequisite"})

        data = json.loads(await call("tutor_context_pack", {"concept_id": "kv-cache"}))

        assert data["items"][-1]["conceptId"] == "softmax"
        assert data["items"][-1]["depth"] == 3

    async def test_edge_write_updates_existing_weight(self, patched_tools, kv_graph, store):
        text = await call(
            "tutor_edge_write",
            {"source": "kv-cache", "target": "attention", "kind": "prerequisite", "weight": 0.9},
        )

        assert json.loads(text)["data"]["weight"] == 0.9
        assert len(store.outgoing_edges("kv-cache")) == 1

    async def test_edge_write_cycle_warning(self, patched_tools, kv_graph):
        text = await call("tutor_edge_write", {"source": "transformer", "target": "kv-cache", "kind": "prerequisite"})

        assert "Warning: This prerequisite edge closes a cycle" in text

    async def test_delete_tools(self, patched_tools, kv_graph, store):
        await call("tutor_edge_delete", {"source": "kv-cache", "target": "attention", "kind": "prerequisite"})
        await call("tutor_concept_delete", {"concept_id": "transformer"})

        assert store.all_edges() == []
        assert store.get_concept("transformer") is None

    async def test_delete_missing_concept(self, patched_tools):
        text = await call("tutor_concept_delete", {"concept_id": "nope"})

        assert text == "Error: Concept not found: nope"


class TestMiscTools:
    """Tests for the graph tool, unknown tools and resources."""

    async def test_graph_tool(self, patched_tools, kv_graph):
        data = json.loads(await call("tutor_graph", {}))

        assert data["stats"]["total_nodes"] == 3

    async def test_unknown_tool(self, patched_tools):
        assert await call("nope", {}) == "Unknown tool: nope"

    async def test_list_tools(self):
        names = {tool.name for tool in await tools.list_tools()}

        assert names == {
            "tutor_context_pack",
            "tutor_concept_write",
            "tutor_concept_delete",
            "tutor_edge_write",
            "tutor_edge_delete",
            "tutor_graph",
        }

    async def test_cache_stats_resource(self, patched_tools, kv_graph):
        await call("tutor_context_pack", {"concept_id": "kv-cache"})

        stats = json.loads(await tools.read_resource("tutor://cache-stats"))

        assert stats["entries"] == 1
        assert stats["graph_version"] == 5
        assert stats["store_revision"] == 5

    async def test_cache_stats_resource_leaves_cache_stats_alone(self, patched_tools, kv_graph, cache):
        """Test reading the resource does not add keys to the dict the cache returns."""
        await tools.read_resource("tutor://cache-stats")

        assert set(cache.stats()) == {"entries", "hits", "misses", "invalidations", "ttl_ms"}
