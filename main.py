"""
INSPECTOR MAIN - Entry Point and CLI

Commands:
    summary  - Show counts for a graph payload, optionally filtered by a view
    export   - Write the rendered graph to Parquet/CSV files, or as a JSON payload
    check    - Validate the structural invariants of a graph payload

Usage:
    # Counts of the embedded, unfiltered graph
    python main.py summary graph.json

    # Counts after applying a view copied from the viewer's URL hash
    python main.py summary graph.json --view "focusId=booking%2FloadOffersEpic"

    # Raw graph (no action embedding)
    python main.py summary graph.json --raw

    # Export the rendered snapshot
    python main.py export graph.json --output ./export --format parquet

    # Invariant report
    python main.py check graph.json

Payload Format:
    JSON object {"nodes": {id: node}, "relations": {id: [target ids]}}
    as produced by the static analyzer.
"""
import logging
import sys
from pathlib import Path

import msgspec

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

logger = logging.getLogger("inspector")


def _load_editor(args):
    """Build a GraphEditor from the payload/view/config arguments."""
    from core.graph_db import create_graph_from_payload
    from core.schemas import load_payload
    from editor.history import GraphEditor
    from infrastructure.config import load_config

    config = load_config(args.config) if args.config else load_config()

    try:
        payload = load_payload(args.payload)
    except FileNotFoundError:
        print(f"Payload not found: {args.payload}")
        sys.exit(1)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        print(f"Invalid payload {args.payload}: {e}")
        sys.exit(1)

    editor = GraphEditor.from_config(create_graph_from_payload(payload), config, args.view)
    if args.raw and editor.state.embed_special_actions:
        editor.change_embed_special_actions(False)
    return editor


def cmd_summary(args):
    """Handle summary command - print counts of the rendered graph."""
    from core.clusters import root_clusters

    editor = _load_editor(args)
    initial = editor.initial_graph
    rendered = editor.rendered_graph
    state = editor.state

    print(f"Graph: {args.payload}")
    print(f"  Raw nodes:       {editor.raw_graph.node_count}")
    print(f"  Embedded:        {'yes' if state.embed_special_actions else 'no'}")
    print(f"  Initial nodes:   {initial.node_count}")
    print(f"  Rendered nodes:  {rendered.node_count}")
    print(f"  Relations:       {rendered.relation_count}")
    print(f"  Port mappings:   {len(rendered.port_mappings)}")
    print(f"  Clusters:        {len(rendered.clusters)} ({len(root_clusters(rendered.clusters))} top-level)")
    if state.focus_id:
        print(f"  Focus:           {state.focus_id}")
    if state.removed_ids:
        print(f"  Hidden:          {len(state.removed_ids)}")
        for entry in editor.removed_entries():
            print(f"    - {entry.name} ({entry.direction.value})")


def cmd_export(args):
    """Handle export command - export the rendered snapshot to files."""
    from core.schemas import serialize_payload
    from viz.core import snapshot_to_polars

    editor = _load_editor(args)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"Exporting graph to {output_dir}...")

    if args.format == "json":
        # Flat analyzer form; port labels are not part of it
        graph_path = output_dir / "graph.json"
        rendered = editor.rendered_graph
        graph_path.write_bytes(serialize_payload(rendered.to_payload()))
        print(f"Exported {rendered.node_count} nodes, {rendered.relation_count} relations")
        print(f"  Graph: {graph_path}")
        return

    nodes_df, edges_df = snapshot_to_polars(editor.snapshot())
    nodes_path = output_dir / f"nodes.{args.format}"
    edges_path = output_dir / f"edges.{args.format}"

    if args.format == "csv":
        nodes_df.write_csv(nodes_path)
        edges_df.write_csv(edges_path)
    else:
        nodes_df.write_parquet(nodes_path)
        edges_df.write_parquet(edges_path)

    print(f"Exported {nodes_df.height} nodes, {edges_df.height} edges")
    print(f"  Nodes: {nodes_path}")
    print(f"  Edges: {edges_path}")


def cmd_check(args):
    """Handle check command - run the invariant checker."""
    from core.graph_db import create_graph_from_payload
    from core.graph_invariants import InvariantSeverity, validate_graph
    from core.schemas import load_payload

    try:
        graph = create_graph_from_payload(load_payload(args.payload))
    except (OSError, msgspec.DecodeError, msgspec.ValidationError) as e:
        print(f"Cannot load {args.payload}: {e}")
        sys.exit(1)

    report = validate_graph(graph)

    print(f"Graph: {args.payload}")
    for key, value in report.metrics.items():
        print(f"  {key}: {value}")

    for violation in report.violations:
        marker = {
            InvariantSeverity.ERROR: "ERROR",
            InvariantSeverity.WARNING: "WARN ",
            InvariantSeverity.INFO: "INFO ",
        }[violation.severity]
        print(f"  [{marker}] {violation.invariant}: {violation.message}")

    if not report.valid:
        sys.exit(1)
    print("OK")


def main():
    """Main entry point with subcommands."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Inspector - Redux dependency graph explorer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_view_arguments(sub):
        sub.add_argument("payload", help="Path to graph payload JSON")
        sub.add_argument("--view", help="View state fragment (URL hash form)")
        sub.add_argument("--raw", action="store_true", help="Do not embed trigger/success/error actions")
        sub.add_argument("--config", help="Path to inspector.toml")

    # summary command
    summary_parser = subparsers.add_parser("summary", help="Show graph counts")
    add_view_arguments(summary_parser)
    summary_parser.set_defaults(func=cmd_summary)

    # export command
    export_parser = subparsers.add_parser("export", help="Export rendered graph to files")
    add_view_arguments(export_parser)
    export_parser.add_argument("--output", "-o", default="./export", help="Output directory")
    export_parser.add_argument("--format", choices=["parquet", "csv", "json"], default="parquet")
    export_parser.set_defaults(func=cmd_export)

    # check command
    check_parser = subparsers.add_parser("check", help="Validate graph invariants")
    check_parser.add_argument("payload", help="Path to graph payload JSON")
    check_parser.set_defaults(func=cmd_check)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    args.func(args)


if __name__ == "__main__":
    main()
