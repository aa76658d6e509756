#!/usr/bin/env python3
"""
mermaid-convert command line.

Commands:
    to-drawio <file>     Convert Mermaid to Draw.io XML
    to-markdown <file>   Convert Mermaid to Markdown documentation
    convert <file>       Full conversion (both outputs)
    validate <file>      Validate Mermaid syntax and Draw.io compatibility

``<file>`` may be ``-`` to read from stdin. Progress goes to stderr so
stdout can carry the converted document.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from mermaid_convert.config import get_settings, load_env
from mermaid_convert.drawio_writer import to_drawio
from mermaid_convert.markdown_writer import to_markdown, validation_report_to_markdown
from mermaid_convert.mermaid_parser import DiagramParseError, parse_mermaid
from mermaid_convert.validator import validate_mermaid

STDIN = '-'


def _info(args, message: str) -> None:
    if not args.quiet:
        print(message, file=sys.stderr)


def read_input(file_arg: str) -> str:
    if file_arg == STDIN:
        return sys.stdin.read()
    path = Path(file_arg)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path.resolve()}")
    return path.read_text(encoding='utf-8')


def write_output(content: str, output: Optional[str]) -> Optional[Path]:
    """Write to *output*, or to stdout when it is None or '-'."""
    if not output or output == STDIN:
        sys.stdout.write(content if content.endswith('\n') else content + '\n')
        return None
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return path


def default_output(file_arg: str, suffix: str, ext: str) -> Optional[str]:
    """``<base><suffix>.<ext>`` for a file input; None for stdin."""
    if file_arg == STDIN:
        return None
    return f"{Path(file_arg).stem}{suffix}.{ext}"


def _parse(args):
    code = read_input(args.file)
    _info(args, "Parsing Mermaid diagram...")
    diagram = parse_mermaid(code)
    _info(args, f"Parsed {diagram.diagram_type} diagram with {len(diagram.nodes)} nodes "
                f"and {len(diagram.edges)} edges")
    return code, diagram


# ──────────────────────────────────────────────────────────────────
# Commands
# ──────────────────────────────────────────────────────────────────

def cmd_to_drawio(args) -> int:
    _, diagram = _parse(args)
    _info(args, "Converting to Draw.io XML...")
    xml = to_drawio(diagram, name=args.name or get_settings().diagram_name)
    written = write_output(xml, args.output or default_output(args.file, '', 'drawio'))
    if written:
        _info(args, f"Output written to: {written.resolve()}")
    return 0


def cmd_to_markdown(args) -> int:
    code, diagram = _parse(args)
    _info(args, "Generating Markdown documentation...")
    markdown = to_markdown(diagram, code)
    written = write_output(markdown, args.output or default_output(args.file, '-docs', 'md'))
    if written:
        _info(args, f"Output written to: {written.resolve()}")
    return 0


def cmd_convert(args) -> int:
    code, diagram = _parse(args)
    base = Path(args.file).stem if args.file != STDIN else 'diagram'
    out_dir = Path(args.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    _info(args, "1. Converting to Draw.io XML...")
    drawio_path = out_dir / f"{base}.drawio"
    drawio_path.write_text(to_drawio(diagram, name=args.name or get_settings().diagram_name), encoding='utf-8')
    _info(args, f"   {drawio_path}")

    _info(args, "2. Generating Markdown documentation...")
    md_path = out_dir / f"{base}-docs.md"
    md_path.write_text(to_markdown(diagram, code), encoding='utf-8')
    _info(args, f"   {md_path}")
    return 0


def _print_validation(result) -> None:
    print("Validation Results")
    print(f"Status: {'Valid' if result.is_valid else 'Invalid'}")
    print(f"Draw.io Compatibility: {result.compatibility.upper()}")
    if result.diagram_type:
        print("\nDiagram Info")
        print(f"  Type: {result.diagram_type}")
        print(f"  Nodes: {result.node_count}")
        print(f"  Edges: {result.edge_count}")
    if result.issues:
        print("\nIssues")
        for finding in result.issues:
            print(f"  Line {finding.line}: {finding.issue}")
            print(f"    -> {finding.suggestion}")
    if result.warnings:
        print("\nWarnings")
        for finding in result.warnings:
            print(f"  Line {finding.line}: {finding.issue}")
            print(f"    -> {finding.suggestion}")


def cmd_validate(args) -> int:
    code = read_input(args.file)
    result = validate_mermaid(code)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif args.output:
        written = write_output(validation_report_to_markdown(result, code), args.output)
        if written:
            _info(args, f"Output written to: {written.resolve()}")
    elif not args.quiet:
        _print_validation(result)

    return 0 if result.is_valid else 1


# ──────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mermaid-convert',
        description='Convert Mermaid diagrams to Draw.io XML and Markdown documentation',
    )
    sub = parser.add_subparsers(dest='command')

    p = sub.add_parser('to-drawio', help='Convert Mermaid diagram to Draw.io XML')
    p.add_argument('file', help="Mermaid file, or '-' for stdin")
    p.add_argument('--output', '-o', help='Output file path (default: <file>.drawio, stdout for stdin)')
    p.add_argument('--name', '-n', help='Diagram name')
    p.add_argument('--quiet', '-q', action='store_true', help='Suppress info messages')
    p.set_defaults(func=cmd_to_drawio)

    p = sub.add_parser('to-markdown', help='Convert Mermaid diagram to Markdown documentation')
    p.add_argument('file', help="Mermaid file, or '-' for stdin")
    p.add_argument('--output', '-o', help='Output file path (default: <file>-docs.md, stdout for stdin)')
    p.add_argument('--quiet', '-q', action='store_true', help='Suppress info messages')
    p.set_defaults(func=cmd_to_markdown)

    p = sub.add_parser('convert', help='Generate both Draw.io XML and Markdown')
    p.add_argument('file', help="Mermaid file, or '-' for stdin")
    p.add_argument('--output-dir', '-d', default='.', help='Output directory')
    p.add_argument('--name', '-n', help='Diagram name')
    p.add_argument('--quiet', '-q', action='store_true', help='Suppress info messages')
    p.set_defaults(func=cmd_convert)

    p = sub.add_parser('validate', help='Validate Mermaid syntax and Draw.io compatibility')
    p.add_argument('file', help="Mermaid file, or '-' for stdin")
    p.add_argument('--output', '-o', help='Write a Markdown validation report')
    p.add_argument('--json', action='store_true', help='Output as JSON')
    p.add_argument('--quiet', '-q', action='store_true', help='Exit status only')
    p.set_defaults(func=cmd_validate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (DiagramParseError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
