# Graph Tutor
#
# Modular package structure:
# - config.py: Settings loaded from GRAPH_TUTOR_* environment variables
# - utils.py: Exceptions, frontmatter parsing and validation
# - models.py: Pydantic models for concepts, edges and context packs
# - cache.py: QueryCache, the TTL query cache
# - store.py: ConceptStore, concept/edge records with markdown persistence
# - graph.py: GraphAccessor read facade and graph overview
# - invalidation.py: GraphVersion and the write-invalidation hook
# - context_pack.py: ContextPackAssembler
# - tools.py: MCP tool handlers and server instance
# - main.py: Entry point and server initialization
