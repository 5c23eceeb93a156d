"""MirrorPool MCP Tool Schemas -- 8 tools over the reflection engine.

Numeric bounds declared here are the same bounds the handlers clamp to.
"""

TOOL_SCHEMAS = [
    {
        "name": "reflect_thought",
        "description": "Analyze a thought and find its reflections in your history. Stores the thought, links it to earlier thoughts it echoes, and stamps its evolution stage.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "thought": {"type": "string", "description": "The thought to reflect on"},
                "depth": {
                    "type": "string",
                    "enum": ["surface", "deep", "abyss"],
                    "default": "deep",
                    "description": "How far to look: limits echoes (3/7/15) and scales resonance",
                },
                "include_evolution": {
                    "type": "boolean",
                    "default": True,
                    "description": "Assign an evolution stage relative to earlier thoughts",
                },
            },
            "required": ["thought"],
        },
    },
    {
        "name": "find_undercurrents",
        "description": "Discover deep themes flowing beneath surface thoughts within a time window, with the dominant theme and tensions between opposite themes.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "timeframe": {
                    "type": "string",
                    "enum": ["day", "week", "month", "all"],
                    "default": "week",
                },
                "min_depth": {"type": "number", "minimum": 0, "maximum": 1, "default": 0.5},
            },
        },
    },
    {
        "name": "trace_evolution",
        "description": "Show how a concept has evolved through your reflections: stages, timeline, transformations and branch points.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "concept": {"type": "string", "description": "Word or phrase to follow"},
                "show_branches": {"type": "boolean", "default": True},
            },
            "required": ["concept"],
        },
    },
    {
        "name": "discover_patterns",
        "description": "Identify recurring patterns without judgment: emotional, conceptual, behavioral and temporal.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "pattern_types": {
                    "type": "array",
                    "items": {
                        "type": "string",
                        "enum": ["emotional", "conceptual", "behavioral", "temporal"],
                    },
                    "default": ["emotional", "conceptual"],
                },
                "threshold": {"type": "number", "minimum": 0, "maximum": 1, "default": 0.3},
            },
        },
    },
    {
        "name": "synthesis_moments",
        "description": "Find where separate ideas merged into new understanding, with context, ripple effects and emergent qualities.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "min_sources": {"type": "integer", "minimum": 2, "maximum": 15, "default": 2},
                "include_context": {"type": "boolean", "default": True},
            },
        },
    },
    {
        "name": "depth_diving",
        "description": "Take a surface thought to its deepest roots through layered questioning.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "thought": {"type": "string"},
                "questions_per_level": {"type": "integer", "minimum": 1, "maximum": 5, "default": 3},
                "max_depth": {"type": "integer", "minimum": 1, "maximum": 10, "default": 5},
            },
            "required": ["thought"],
        },
    },
    {
        "name": "ripple_effects",
        "description": "Show how one thought created waves throughout your mind, hop by hop through its connections.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "origin_thought": {"type": "string", "description": "Exact text of a stored thought"},
                "ripple_distance": {"type": "integer", "minimum": 1, "maximum": 5, "default": 3},
            },
            "required": ["origin_thought"],
        },
    },
    {
        "name": "clarity_emergence",
        "description": "Help a foggy thought become clear through questions, analogies, decomposition or synthesis.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "foggy_thought": {"type": "string"},
                "clarification_method": {
                    "type": "string",
                    "enum": ["questions", "analogies", "decomposition", "synthesis"],
                    "default": "questions",
                },
            },
            "required": ["foggy_thought"],
        },
    },
]

WRITE_TOOLS = frozenset({"reflect_thought"})
