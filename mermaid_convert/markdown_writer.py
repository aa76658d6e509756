#!/usr/bin/env python3
"""
AST to Markdown documentation.

Produces a human-readable documentation page for a parsed diagram
(overview, tables of nodes and connections, flow analysis) followed by the
original Mermaid source, plus a Markdown rendering of validation results.
"""

from typing import Dict, List, Optional

from mermaid_convert.diagram_ast import ParsedDiagram, entry_points, exit_points
from mermaid_convert.mermaid_parser import strip_fences
from mermaid_convert.validator import ValidationResult

SHAPE_NAMES = {
    'rectangle': 'Rectangle',
    'roundedRect': 'Rounded Rectangle',
    'diamond': 'Diamond (Decision)',
    'subroutine': 'Subroutine',
    'stadium': 'Stadium (Terminal)',
    'circle': 'Circle',
}

TYPE_NAMES = {
    'flowchart': 'Flowchart',
    'sequence': 'Sequence Diagram',
    'erDiagram': 'Entity Relationship Diagram',
    'class': 'Class Diagram',
    'state': 'State Diagram',
    'gitgraph': 'Git Graph',
    'mindmap': 'Mindmap',
}

DIRECTION_NAMES = {
    'TD': 'Top to Bottom',
    'TB': 'Top to Bottom',
    'BT': 'Bottom to Top',
    'LR': 'Left to Right',
    'RL': 'Right to Left',
}

LEVEL_NAMES = ['Central Topic', 'Main Branches', 'Sub-topics', 'Details', 'Notes']

COMPATIBILITY_NAMES = {'high': '🟢 High', 'medium': '🟡 Medium', 'low': '🔴 Low'}


def _esc(text: Optional[str]) -> str:
    """Make text safe for a Markdown table cell."""
    if not text:
        return ''
    return str(text).replace('|', '\\|').replace('\n', ' ')


def _code_block(lines: List[str], code: str, heading: str = 'Original Mermaid Code') -> None:
    lines += ['---', '', f'## {heading}', '', '```mermaid', code, '```', '']


def _point_list(nodes) -> List[str]:
    items = [f"- `{n.id}` ({n.label})" for n in nodes]
    return items or ['- None identified']


def describe_node(node) -> str:
    """Short role description inferred from shape and label."""
    label = node.label.lower()
    if node.shape == 'stadium':
        if 'start' in label or 'begin' in label:
            return 'Process start point'
        if 'end' in label or 'finish' in label:
            return 'Process end point'
        return 'Terminal node'
    if node.shape == 'diamond':
        return 'Decision/branching point'
    if node.shape == 'subroutine':
        return 'Subprocess or external routine'
    if node.shape == 'circle':
        return 'Connection point or state'
    return 'Process step'


# ─── Flowchart ────────────────────────────────────────────────────

def flowchart_to_markdown(diagram: ParsedDiagram, code: str) -> str:
    nodes, edges, subgraphs = diagram.nodes, diagram.edges, diagram.subgraphs
    direction = diagram.direction or 'TD'

    lines = [
        '# Flowchart Documentation',
        '',
        '## Overview',
        '',
        f"This is a **{TYPE_NAMES['flowchart']}** diagram with a "
        f"**{DIRECTION_NAMES.get(direction, direction)}** layout.",
        '',
        f"- **Total Nodes**: {len(nodes)}",
        f"- **Total Connections**: {len(edges)}",
        f"- **Subgraphs**: {len(subgraphs)}",
        '',
        '---',
        '',
        '## Entities (Nodes)',
        '',
        '| ID | Label | Shape | Description |',
        '|----|-------|-------|-------------|',
    ]
    for node in nodes:
        lines.append(
            f"| `{node.id}` | {_esc(node.label)} | {SHAPE_NAMES.get(node.shape, node.shape)} "
            f"| {describe_node(node)} |"
        )

    lines += [
        '',
        '---',
        '',
        '## Relationships (Connections)',
        '',
        '| # | From | To | Label | Arrow Type |',
        '|---|------|----|-------|------------|',
    ]
    for i, edge in enumerate(edges, 1):
        arrow = edge.arrow.line if edge.arrow else 'solid'
        lines.append(f"| {i} | `{edge.source}` | `{edge.target}` | {_esc(edge.label) or '-'} | {arrow} |")
    lines.append('')

    if subgraphs:
        lines += ['---', '', '## Subgraphs (Groups)', '']
        for sg in subgraphs:
            members = ', '.join(f"`{n}`" for n in sg.nodes)
            lines += [f"### {sg.label}", '', f"**ID**: `{sg.id}`", '', f"**Contains**: {members}", '']

    lines += ['---', '', '## Flow Analysis', '', '### Entry Points']
    lines += _point_list(entry_points(nodes, edges))
    lines += ['', '### Exit Points']
    lines += _point_list(exit_points(nodes, edges))
    lines += ['', '### Decision Points']
    lines += _point_list([n for n in nodes if n.shape == 'diamond'])
    lines.append('')

    _code_block(lines, code)
    return '\n'.join(lines)


# ─── Sequence ─────────────────────────────────────────────────────

def sequence_to_markdown(diagram: ParsedDiagram, code: str) -> str:
    participants = diagram.participants or diagram.nodes
    messages = diagram.messages

    lines = [
        '# Sequence Diagram Documentation',
        '',
        '## Overview',
        '',
        f"This **Sequence Diagram** shows the interactions between {len(participants)} participant(s).",
        '',
        f"- **Participants**: {len(participants)}",
        f"- **Messages**: {len(messages)}",
        '',
        '---',
        '',
        '## Participants',
        '',
        '| ID | Name | Type |',
        '|----|------|------|',
    ]
    for p in participants:
        kind = 'Actor' if getattr(p, 'is_actor', False) else 'Participant'
        lines.append(f"| `{p.id}` | {_esc(p.label)} | {kind} |")
    lines.append('')

    if messages:
        lines += [
            '---',
            '',
            '## Message Sequence',
            '',
            '| # | From | To | Message | Type |',
            '|---|------|----|---------|------|',
        ]
        for i, msg in enumerate(messages, 1):
            kind = 'Response' if msg.line_kind == 'dashed' else 'Request'
            if msg.is_async:
                kind += ' (async)'
            lines.append(f"| {i} | `{msg.source}` | `{msg.target}` | {_esc(msg.text)} | {kind} |")
        lines.append('')

    sent: Dict[str, int] = {p.id: 0 for p in participants}
    received: Dict[str, int] = {p.id: 0 for p in participants}
    for msg in messages:
        if msg.source in sent:
            sent[msg.source] += 1
        if msg.target in received:
            received[msg.target] += 1

    lines += [
        '---',
        '',
        '## Interaction Summary',
        '',
        '| Participant | Messages Sent | Messages Received |',
        '|-------------|---------------|-------------------|',
    ]
    for p in participants:
        lines.append(f"| {_esc(p.label)} | {sent[p.id]} | {received[p.id]} |")
    lines.append('')

    _code_block(lines, code)
    return '\n'.join(lines)


# ─── ER ───────────────────────────────────────────────────────────

def er_to_markdown(diagram: ParsedDiagram, code: str) -> str:
    entities = diagram.entities or diagram.nodes
    relationships = diagram.relationships or diagram.edges

    lines = [
        '# Entity Relationship Diagram Documentation',
        '',
        '## Overview',
        '',
        f"This **ER Diagram** defines {len(entities)} entity(ies) and "
        f"{len(relationships)} relationship(s).",
        '',
        '---',
        '',
        '## Entities',
        '',
    ]
    for entity in entities:
        lines += [f"### {entity.label}", '', f"**ID**: `{entity.id}`", '']
        if not entity.attributes:
            lines += ['*No attributes defined*', '']
            continue
        lines += ['**Attributes**:', '', '| Type | Name | Keys | Comment |', '|------|------|------|---------|']
        for attr in entity.attributes:
            keys = ', '.join(attr.keys)
            lines.append(f"| {_esc(attr.type)} | {_esc(attr.name)} | {keys} | {_esc(attr.comment)} |")
        lines.append('')

    if relationships:
        lines += [
            '---',
            '',
            '## Relationships',
            '',
            '| # | Entity 1 | Cardinality | Entity 2 | Description |',
            '|---|----------|-------------|----------|-------------|',
        ]
        for i, rel in enumerate(relationships, 1):
            cardinality = f"{_esc(rel.cardinality_start)} → {_esc(rel.cardinality_end)}"
            lines.append(
                f"| {i} | `{rel.source}` | {cardinality} | `{rel.target}` | {_esc(rel.label) or '-'} |"
            )
        lines.append('')

    total_attributes = sum(len(e.attributes) for e in entities)
    lines += [
        '---',
        '',
        '## Data Model Summary',
        '',
        f"- **Total Entities**: {len(entities)}",
        f"- **Total Relationships**: {len(relationships)}",
        f"- **Total Attributes**: {total_attributes}",
        '',
    ]

    _code_block(lines, code)
    return '\n'.join(lines)


# ─── Mindmap ──────────────────────────────────────────────────────

def mindmap_to_markdown(diagram: ParsedDiagram, code: str) -> str:
    nodes, edges = diagram.nodes, diagram.edges
    by_id = {n.id: n for n in nodes}
    children: Dict[str, List[str]] = {}
    has_parent = set()
    for edge in edges:
        children.setdefault(edge.source, []).append(edge.target)
        has_parent.add(edge.target)

    depth = max((n.level or 0 for n in nodes), default=-1) + 1
    lines = [
        '# Mindmap Documentation',
        '',
        '## Overview',
        '',
        'This **Mindmap** visualizes ideas and concepts in a hierarchical structure.',
        '',
        f"- **Total Topics**: {len(nodes)}",
        f"- **Total Connections**: {len(edges)}",
        f"- **Depth Levels**: {depth}",
        '',
        '---',
        '',
        '## Structure',
        '',
    ]

    rendered = set()

    def render(node_id: str, indent: str) -> None:
        if node_id in rendered or node_id not in by_id:
            return
        rendered.add(node_id)
        lines.append(f"{indent}- **{by_id[node_id].label}**")
        for child in children.get(node_id, []):
            render(child, indent + '  ')

    for node in nodes:
        if node.id not in has_parent:
            render(node.id, '')

    lines += ['', '---', '', '## Topics by Level', '']
    by_level: Dict[int, List] = {}
    for node in nodes:
        by_level.setdefault(node.level or 0, []).append(node)
    for level, members in by_level.items():
        title = LEVEL_NAMES[level] if level < len(LEVEL_NAMES) else f"Level {level}"
        lines += [f"### {title}", '']
        lines += [f"- {n.label}" for n in members]
        lines.append('')

    _code_block(lines, code)
    return '\n'.join(lines)


# ──────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────

WRITERS = {
    'sequence': sequence_to_markdown,
    'erDiagram': er_to_markdown,
    'mindmap': mindmap_to_markdown,
}


def to_markdown(diagram: ParsedDiagram, original_code: str) -> str:
    """Documentation page for *diagram*; unknown types are documented as flowcharts."""
    writer = WRITERS.get(diagram.diagram_type, flowchart_to_markdown)
    return writer(diagram, strip_fences(original_code))


def validation_report_to_markdown(result: ValidationResult, original_code: str) -> str:
    status = '✅ Valid' if result.is_valid else '❌ Invalid'
    compatibility = COMPATIBILITY_NAMES.get(result.compatibility, '⚪ Unknown')

    lines = [
        '# Mermaid Validation Report',
        '',
        '## Summary',
        '',
        f"**Status**: {status}",
        f"**Draw.io Compatibility**: {compatibility}",
        '',
        '---',
        '',
        '## Checklist',
        '',
    ]
    if not result.issues and not result.warnings:
        lines.append('- ✅ All checks passed')
    else:
        lines.append(f"- {'❌' if result.issues else '✅'} Syntax validation")
        lines.append(f"- {'⚠️' if result.warnings else '✅'} Best practices")
    lines.append('')

    if result.issues:
        lines += ['---', '', '## Issues Found', '', '| Line | Issue | Suggestion |', '|------|-------|------------|']
        for f in result.issues:
            lines.append(f"| {f.line} | {_esc(f.issue)} | {_esc(f.suggestion)} |")
        lines.append('')

    if result.warnings:
        lines += ['---', '', '## Warnings', '', '| Line | Warning | Suggestion |', '|------|---------|------------|']
        for f in result.warnings:
            lines.append(f"| {f.line} | {_esc(f.issue)} | {_esc(f.suggestion)} |")
        lines.append('')

    _code_block(lines, strip_fences(original_code) if isinstance(original_code, str) else '',
                heading='Original Code')
    return '\n'.join(lines)
