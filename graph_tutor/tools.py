"""
MCP Tools module for Graph Tutor.

Contains the MCP tool handlers (list_tools and call_tool) and resources.
"""

import json
from typing import Any

from mcp.server import Server
from mcp.types import (
    Resource,
    TextContent,
    Tool,
)

from .config import settings
from .context_pack import assembler, render_markdown
from .graph import build_graph
from .invalidation import write_hook
from .models import RelationKind, WriteResult
from .utils import ConceptNotFound, InvalidBudget

# Initialize server
server = Server("graph-tutor")

RELATION_KINDS = [k.value for k in RelationKind]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="tutor_context_pack",
            description="Build a context pack for a concept: its prerequisite closure, breadth-first, "
                       "with example concepts attached, limited to a number of items.",
            inputSchema={
                "type": "object",
                "properties": {
                    "concept_id": {
                        "type": "string",
                        "description": "Id of the root concept (e.g., 'kv-cache')"
                    },
                    "budget": {
                        "type": "integer",
                        "description": f"Maximum number of concepts in the pack (default: {settings.default_budget})",
                        "minimum": 1
                    },
                    "format": {
                        "type": "string",
                        "description": "Output format: 'json' or 'markdown' (default: json)",
                        "enum": ["json", "markdown"],
                        "default": "json"
                    }
                },
                "required": ["concept_id"]
            }
        ),
        Tool(
            name="tutor_concept_write",
            description="Create a concept, or update an existing one when concept_id names it. "
                       "Only provided fields are changed on update.",
            inputSchema={
                "type": "object",
                "properties": {
                    "concept_id": {
                        "type": "string",
                        "description": "Id of the concept. Omit to derive one from the title."
                    },
                    "title": {"type": "string", "description": "Concept title"},
                    "summary": {"type": "string", "description": "Short canonical description (L0)"},
                    "mastery": {
                        "type": "integer",
                        "description": f"Mastery level 0-{settings.max_mastery}",
                        "minimum": 0,
                        "maximum": settings.max_mastery
                    },
                    "notes": {"type": "string", "description": "Free-form markdown notes"},
                    "module": {"type": "string", "description": "Optional grouping label"}
                }
            }
        ),
        Tool(
            name="tutor_concept_delete",
            description="Delete a concept and every edge touching it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "concept_id": {"type": "string", "description": "Id of the concept to delete"}
                },
                "required": ["concept_id"]
            }
        ),
        Tool(
            name="tutor_edge_write",
            description="Create an edge, or update its weight if it already exists. "
                       "'A prerequisite B' means A requires B.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "Source concept id"},
                    "target": {"type": "string", "description": "Target concept id"},
                    "kind": {"type": "string", "enum": RELATION_KINDS, "description": "Relation kind"},
                    "weight": {"type": "number", "description": "Optional edge weight"}
                },
                "required": ["source", "target", "kind"]
            }
        ),
        Tool(
            name="tutor_edge_delete",
            description="Delete an edge.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "Source concept id"},
                    "target": {"type": "string", "description": "Target concept id"},
                    "kind": {"type": "string", "enum": RELATION_KINDS, "description": "Relation kind"}
                },
                "required": ["source", "target", "kind"]
            }
        ),
        Tool(
            name="tutor_graph",
            description="Return every concept and edge as JSON nodes[] and edges[], with orphans and stats.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
    ]


def _write_output(result: WriteResult) -> list[TextContent]:
    if not result.success:
        return [TextContent(type="text", text=f"Error: {result.error}")]
    return [TextContent(type="text", text=json.dumps(result.model_dump(), indent=2, default=str))]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""

    if name == "tutor_context_pack":
        concept_id = arguments.get("concept_id", "")
        budget = arguments.get("budget", settings.default_budget)
        output_format = arguments.get("format", "json")

        try:
            pack = await assembler.assemble(concept_id, budget)
        except (ConceptNotFound, InvalidBudget) as e:
            return [TextContent(type="text", text=f"Error: {e}")]

        if output_format == "markdown":
            return [TextContent(type="text", text=render_markdown(pack))]
        return [TextContent(type="text", text=json.dumps(pack.to_response(), indent=2))]

    elif name == "tutor_concept_write":
        await write_hook.store.ensure_loaded()
        concept_id = arguments.get("concept_id")
        fields = {
            key: arguments[key]
            for key in ("title", "summary", "mastery", "notes", "module")
            if key in arguments
        }

        if concept_id and write_hook.store.get_concept(concept_id) is not None:
            result = await write_hook.update_concept(concept_id, **fields)
        else:
            if not fields.get("title"):
                return [TextContent(type="text", text="Error: title is required to create a concept")]
            result = await write_hook.create_concept(concept_id=concept_id, **fields)

        return _write_output(result)

    elif name == "tutor_concept_delete":
        result = await write_hook.delete_concept(arguments.get("concept_id", ""))
        return _write_output(result)

    elif name == "tutor_edge_write":
        source = arguments.get("source", "")
        target = arguments.get("target", "")
        kind = arguments.get("kind", "")
        weight = arguments.get("weight")
        await write_hook.store.ensure_loaded()

        existing = [
            e for e in write_hook.store.outgoing_edges(source)
            if e.target == target and e.kind == kind
        ]
        if existing:
            result = await write_hook.update_edge(source, target, kind, weight)
        else:
            result = await write_hook.create_edge(source, target, kind, weight)

        output = _write_output(result)
        if result.success and result.warnings:
            output.append(TextContent(type="text", text=f"Warning: {result.warnings['message']}"))
        return output

    elif name == "tutor_edge_delete":
        result = await write_hook.delete_edge(
            arguments.get("source", ""), arguments.get("target", ""), arguments.get("kind", ""),
        )
        return _write_output(result)

    elif name == "tutor_graph":
        result = await build_graph(assembler.accessor, assembler.cache, assembler.version.value)
        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    return [TextContent(type="text", text=f"Unknown tool: {name}")]


# ============== Resources ==============

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="tutor://cache-stats",
            name="Query Cache Statistics",
            description="Entry count and hit/miss counters of the query cache, graph version and store revision",
            mimeType="application/json"
        ),
    ]


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read a resource."""
    if str(uri) == "tutor://cache-stats":
        stats = {
            **assembler.cache.stats(),
            "graph_version": assembler.version.value,
            "store_revision": write_hook.store.revision,
        }
        return json.dumps(stats, indent=2)

    return json.dumps({"error": f"Unknown resource: {uri}"})
