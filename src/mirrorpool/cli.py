"""MirrorPool CLI -- reflection commands, status, export/import and server management."""

import argparse
import json
import logging
import sys

from mirrorpool.config import log_level
from mirrorpool.errors import MirrorPoolError


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _text(parts) -> str:
    return " ".join(parts).strip()


def cmd_reflect(args):
    """Ingest a thought and print its reflections."""
    thought = _text(args.thought)
    if not thought:
        print("Usage: mirrorpool reflect <thought text>", file=sys.stderr)
        sys.exit(1)
    from mirrorpool.bridge import reflect

    result = reflect(thought, depth=args.depth, track_evolution=not args.no_evolution)
    if args.json:
        _print_json(result)
        return

    label = "Already reflected" if result["duplicate"] else "Reflected"
    print(f"{label}: {result['thoughtId']}")
    print(f"  Keywords:   {', '.join(result['keywords']) or '-'}")
    print(f"  Affect:     {', '.join(result['affectTags'])}")
    print(f"  Style:      {result['expressionStyle']}")
    print(f"  Resonance:  {result['resonance']:.3f}")
    if result["stage"] is not None:
        print(f"  Stage:      {result['stage']}{' (growth)' if result['growthDetected'] else ''}")
    if result["connections"]:
        print(f"  Echoes ({len(result['connections'])}):")
        for conn in result["connections"]:
            print(f"    [{conn['strength']:.2f}] {conn['text'][:80]}")
    for insight in result["insights"]:
        print(f"  * {insight['message']}")
    if result["questions"]:
        print("  Questions:")
        for question in result["questions"]:
            print(f"    - {question}")


def cmd_undercurrents(args):
    """Show themes flowing beneath recent thoughts."""
    from mirrorpool.bridge import find_undercurrents

    _print_json(find_undercurrents(timeframe=args.timeframe, min_depth=args.min_depth))


def cmd_evolution(args):
    """Trace a concept through the corpus."""
    concept = _text(args.concept)
    if not concept:
        print("Usage: mirrorpool evolution <concept>", file=sys.stderr)
        sys.exit(1)
    from mirrorpool.bridge import trace_evolution

    _print_json(trace_evolution(concept, show_branches=not args.no_branches))


def cmd_patterns(args):
    """Discover recurring patterns."""
    from mirrorpool.bridge import discover_patterns

    _print_json(discover_patterns(pattern_types=args.types or None, threshold=args.threshold))


def cmd_ripples(args):
    """Trace ripples from a stored thought."""
    origin = _text(args.origin)
    if not origin:
        print("Usage: mirrorpool ripples <exact thought text>", file=sys.stderr)
        sys.exit(1)
    from mirrorpool.bridge import trace_ripples

    _print_json(trace_ripples(origin, max_distance=args.distance))


def cmd_synthesis(args):
    """List recorded synthesis moments."""
    from mirrorpool.bridge import synthesis_moments

    _print_json(synthesis_moments(min_sources=args.min_sources, include_context=not args.no_context))


def cmd_dive(args):
    """Run a depth-diving session on a thought."""
    thought = _text(args.thought)
    if not thought:
        print("Usage: mirrorpool dive <thought text>", file=sys.stderr)
        sys.exit(1)
    from mirrorpool.bridge import depth_diving

    _print_json(depth_diving(thought, questions_per_level=args.questions, max_depth=args.max_depth))


def cmd_clarify(args):
    """Clarify a foggy thought."""
    thought = _text(args.thought)
    if not thought:
        print("Usage: mirrorpool clarify <thought text>", file=sys.stderr)
        sys.exit(1)
    from mirrorpool.bridge import clarity_emergence

    _print_json(clarity_emergence(thought, method=args.method))


def cmd_status(args):
    """Show corpus size, edge counts and configuration."""
    from mirrorpool.bridge import status

    result = status()
    if args.json or not result.get("ok"):
        _print_json(result)
        return
    print("MirrorPool Status")
    print(f"  Database:     {result['dbPath']}")
    print(f"  Thoughts:     {result['thoughtCount']}")
    print(f"  Connections:  {result['connectionCount']}")
    print(f"  Syntheses:    {result['synthesisCount']}")
    for level, count in result["depthDistribution"].items():
        print(f"    {level:<8} {count}")


def cmd_export(args):
    """Export all thoughts to JSONL."""
    from mirrorpool.bridge import export_thoughts

    _print_json(export_thoughts(args.path))


def cmd_import(args):
    """Re-ingest thoughts from a JSONL export."""
    from mirrorpool.bridge import import_thoughts

    _print_json(import_thoughts(args.path))


def cmd_serve(args):
    """Run the MCP server (stdio by default, Streamable HTTP with --http)."""
    import asyncio

    if args.http:
        from mirrorpool.server.http_server import get_or_create_api_key, run_http

        api_key = None if args.no_auth else get_or_create_api_key()
        if api_key:
            print(f"API key: {api_key}", file=sys.stderr)
        asyncio.run(run_http(args.host, args.port, api_key))
        return

    from mirrorpool.server.mcp_server import main as serve_stdio

    asyncio.run(serve_stdio())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mirrorpool",
        description="MirrorPool -- a reflection graph over your thoughts",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    reflect_parser = subparsers.add_parser("reflect", help="Reflect on a thought and store it")
    reflect_parser.add_argument("thought", nargs="+", help="Thought text")
    reflect_parser.add_argument("--depth", choices=["surface", "deep", "abyss"], default="deep")
    reflect_parser.add_argument("--no-evolution", action="store_true", help="Skip evolution staging")
    reflect_parser.add_argument("--json", action="store_true", help="Print the raw result")

    under_parser = subparsers.add_parser("undercurrents", help="Themes beneath recent thoughts")
    under_parser.add_argument("--timeframe", choices=["day", "week", "month", "all"], default="week")
    under_parser.add_argument("--min-depth", type=float, default=0.5)

    evolution_parser = subparsers.add_parser("evolution", help="Trace how a concept evolved")
    evolution_parser.add_argument("concept", nargs="+")
    evolution_parser.add_argument("--no-branches", action="store_true")

    patterns_parser = subparsers.add_parser("patterns", help="Discover recurring patterns")
    patterns_parser.add_argument(
        "--type",
        dest="types",
        action="append",
        choices=["emotional", "conceptual", "behavioral", "temporal"],
        help="Pattern type (repeatable; default: emotional and conceptual)",
    )
    patterns_parser.add_argument("--threshold", type=float, default=0.3)

    ripples_parser = subparsers.add_parser("ripples", help="Trace ripples from a stored thought")
    ripples_parser.add_argument("origin", nargs="+")
    ripples_parser.add_argument("--distance", type=int, default=3)

    synthesis_parser = subparsers.add_parser("synthesis", help="List synthesis moments")
    synthesis_parser.add_argument("--min-sources", type=int, default=2)
    synthesis_parser.add_argument("--no-context", action="store_true")

    dive_parser = subparsers.add_parser("dive", help="Depth-dive into a thought")
    dive_parser.add_argument("thought", nargs="+")
    dive_parser.add_argument("--questions", type=int, default=3)
    dive_parser.add_argument("--max-depth", type=int, default=5)

    clarify_parser = subparsers.add_parser("clarify", help="Clarify a foggy thought")
    clarify_parser.add_argument("thought", nargs="+")
    clarify_parser.add_argument(
        "--method", choices=["questions", "analogies", "decomposition", "synthesis"], default="questions"
    )

    status_parser = subparsers.add_parser("status", help="Show corpus status")
    status_parser.add_argument("--json", action="store_true")

    export_parser = subparsers.add_parser("export", help="Export thoughts to a JSONL file")
    export_parser.add_argument("path")

    import_parser = subparsers.add_parser("import", help="Import thoughts from a JSONL export")
    import_parser.add_argument("path")

    serve_parser = subparsers.add_parser("serve", help="Run the MCP server")
    serve_parser.add_argument("--http", action="store_true", help="Serve Streamable HTTP instead of stdio")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8765)
    serve_parser.add_argument("--no-auth", action="store_true", help="Disable API key auth (HTTP only)")

    return parser


COMMANDS = {
    "reflect": cmd_reflect,
    "undercurrents": cmd_undercurrents,
    "evolution": cmd_evolution,
    "patterns": cmd_patterns,
    "ripples": cmd_ripples,
    "synthesis": cmd_synthesis,
    "dive": cmd_dive,
    "clarify": cmd_clarify,
    "status": cmd_status,
    "export": cmd_export,
    "import": cmd_import,
    "serve": cmd_serve,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=log_level(), stream=sys.stderr)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return
    try:
        command(args)
    except MirrorPoolError as e:
        print(f"Error ({e.kind}): {e.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
