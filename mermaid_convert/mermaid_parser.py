#!/usr/bin/env python3
"""
Mermaid to AST Parser

Parses Mermaid diagram text into a ParsedDiagram with:
- Flowchart / graph support (inline shapes, labelled arrows, subgraphs)
- Sequence diagram support (participants, actors, messages)
- ER diagram support (entity blocks, attributes, cardinalities)
- Mindmap support (indentation hierarchy, depth palette)

Parsing is deliberately permissive: lines that match no construct of the
detected dialect are skipped. Only empty input is fatal.
"""

import argparse
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from mermaid_convert.diagram_ast import (
    ArrowStyle, DiagramEdge, DiagramNode, Entity, EntityAttribute, Message,
    ParsedDiagram, Participant, Relationship, Subgraph, save_ast,
)
from mermaid_convert.lexicon import (
    CIRCLE, RECTANGLE, ROUNDED_RECT,
    level_colors, parse_arrow, parse_node_shape,
)


class DiagramParseError(ValueError):
    """Raised when Mermaid text cannot be parsed at all."""


class EmptyDiagramError(DiagramParseError):
    """Raised when the diagram text has no non-blank lines."""


_DIRECTION_RE = re.compile(r'\b(td|tb|bt|lr|rl)\b', re.IGNORECASE)

_DIAGRAM_KEYWORDS = [
    ('flowchart', 'flowchart'),
    ('graph', 'flowchart'),
    ('sequencediagram', 'sequence'),
    ('classdiagram', 'class'),
    ('erdiagram', 'erDiagram'),
    ('statediagram', 'state'),
    ('gitgraph', 'gitgraph'),
    ('mindmap', 'mindmap'),
]

SUPPORTED_TYPES = ('flowchart', 'sequence', 'erDiagram', 'mindmap')


# ─── Preprocessing ────────────────────────────────────────────────

def strip_fences(code: str) -> str:
    """Remove one leading and one trailing ``` fence, with or without a language tag."""
    code = code.strip()
    if code.startswith('```'):
        code = re.sub(r'^```[\w-]*[ \t]*\n?', '', code)
        code = re.sub(r'\n?```\s*$', '', code)
    return code


def _is_comment(line: str) -> bool:
    return line.strip().startswith('%%')


def detect_diagram_type(first_line: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (kind, direction) for a diagram header line.

    kind is None when the header names no known dialect. direction is only
    reported for flowchart/graph headers and defaults to TD there.
    """
    header = first_line.strip().lower()
    for keyword, kind in _DIAGRAM_KEYWORDS:
        if header.startswith(keyword):
            if kind == 'flowchart':
                m = _DIRECTION_RE.search(header)
                return kind, m.group(1).upper() if m else 'TD'
            return kind, None
    return None, None


# ─── Flowchart ────────────────────────────────────────────────────

_SHAPE_FRAGMENT = r'[\[\(\{].*?[\]\)\}]'

_CONNECTION_RE = re.compile(
    r'^(\w+)(' + _SHAPE_FRAGMENT + r')?\s*(-->|---|-\.->|-\.-|==>)(\|([^|]*)\|)?\s*(.+)$'
)
_INLINE_NODE_RE = re.compile(r'^(\w+)(' + _SHAPE_FRAGMENT + r')$')
_NODE_DECL_RE = re.compile(r'^(\w+)([\[\(\{].+[\]\)\}])$')
_SUBGRAPH_RE = re.compile(r'^subgraph\s+(\w+)(?:\s*\[([^\]]+)\])?')
_LEADING_ID_RE = re.compile(r'^(\w+)')


def _shaped_node(node_id: str, fragment: str) -> DiagramNode:
    parsed = parse_node_shape(fragment)
    return DiagramNode(
        id=node_id,
        label=parsed.label,
        shape=parsed.shape,
        style=parsed.style,
        fill_color=parsed.fill_color,
        stroke_color=parsed.stroke_color,
    )


def _default_node(node_id: str) -> DiagramNode:
    return DiagramNode(
        id=node_id,
        label=node_id,
        shape=RECTANGLE.shape,
        style=RECTANGLE.style,
        fill_color=RECTANGLE.fill_color,
        stroke_color=RECTANGLE.stroke_color,
    )


def _split_target(target_part: str) -> Tuple[Optional[str], Optional[str]]:
    """Split a connection target into (id, shape fragment or None)."""
    text = target_part.strip().rstrip(';').strip()
    m = _INLINE_NODE_RE.match(text)
    if m:
        return m.group(1), m.group(2)
    m = _LEADING_ID_RE.match(text)
    if m:
        return m.group(1), None
    return None, None


class _FlowchartScan:
    """Running state of one flowchart parse."""

    def __init__(self) -> None:
        self.nodes: Dict[str, DiagramNode] = {}
        self.edges: List[DiagramEdge] = []
        self.subgraphs: List[Subgraph] = []
        self.current: Optional[Subgraph] = None

    def declare(self, node_id: str, fragment: Optional[str]) -> None:
        if fragment:
            self.nodes[node_id] = _shaped_node(node_id, fragment)
        elif node_id not in self.nodes:
            self.nodes[node_id] = _default_node(node_id)

    def join_group(self, node_id: str) -> None:
        if self.current is not None and node_id not in self.current.nodes:
            self.current.nodes.append(node_id)

    def feed(self, line: str) -> None:
        if re.match(r'^subgraph\b', line):
            m = _SUBGRAPH_RE.match(line)
            if m:
                self.current = Subgraph(id=m.group(1), label=m.group(2) or m.group(1))
            return

        if line == 'end':
            if self.current is not None:
                self.subgraphs.append(self.current)
                self.current = None
            return

        m = _CONNECTION_RE.match(line)
        if m:
            source, source_shape, arrow_token, _, edge_label, target_part = m.groups()
            target, target_shape = _split_target(target_part)
            if target is None:
                return
            self.declare(source, source_shape)
            self.declare(target, target_shape)
            self.join_group(source)
            self.join_group(target)
            self.edges.append(DiagramEdge(
                id=f"e{len(self.edges) + 1}",
                source=source,
                target=target,
                label=(edge_label or '').strip(),
                arrow=parse_arrow(arrow_token),
            ))
            return

        m = _NODE_DECL_RE.match(line)
        if m:
            self.declare(m.group(1), m.group(2))
            self.join_group(m.group(1))


def parse_flowchart(lines: List[str], direction: str) -> ParsedDiagram:
    """Parse flowchart body lines (header excluded)."""
    scan = _FlowchartScan()
    for raw in lines:
        line = raw.strip()
        if not line or _is_comment(line):
            continue
        scan.feed(line)

    return ParsedDiagram(
        diagram_type='flowchart',
        direction=direction,
        nodes=list(scan.nodes.values()),
        edges=scan.edges,
        subgraphs=scan.subgraphs,
    )


# ─── Sequence ─────────────────────────────────────────────────────

_PARTICIPANT_RE = re.compile(r'^(participant|actor)\s+(\w+)(?:\s+as\s+(.+))?$', re.IGNORECASE)
_MESSAGE_RE = re.compile(r'^(\w+)\s*(--?>>?)\s*(\w+)\s*:\s*(.+)$')


def parse_sequence(lines: List[str]) -> ParsedDiagram:
    """Parse sequence diagram body lines (header excluded)."""
    participants: Dict[str, Participant] = {}
    messages: List[Message] = []

    for raw in lines:
        line = raw.strip()
        if not line or _is_comment(line):
            continue

        m = _PARTICIPANT_RE.match(line)
        if m:
            kind, pid, alias = m.groups()
            label = alias.strip() if alias else pid
            is_actor = kind.lower() == 'actor'
            if pid in participants:
                participants[pid].label = label
                participants[pid].is_actor = is_actor
            else:
                participants[pid] = Participant(id=pid, label=label, is_actor=is_actor)
            continue

        m = _MESSAGE_RE.match(line)
        if m:
            source, arrow, target, text = m.groups()
            for pid in (source, target):
                if pid not in participants:
                    participants[pid] = Participant(id=pid, label=pid)
            messages.append(Message(
                source=source,
                target=target,
                text=text.strip(),
                line_kind='dashed' if '--' in arrow else 'solid',
                is_async='>>' in arrow,
            ))

    edges = [
        DiagramEdge(
            id=f"e{i + 1}",
            source=msg.source,
            target=msg.target,
            label=msg.text,
            arrow=ArrowStyle(msg.line_kind, 'classic'),
        )
        for i, msg in enumerate(messages)
    ]
    participant_list = list(participants.values())

    return ParsedDiagram(
        diagram_type='sequence',
        direction=None,
        nodes=participant_list,
        edges=edges,
        participants=participant_list,
        messages=messages,
    )


# ─── ER ───────────────────────────────────────────────────────────

CARDINALITY_TOKENS = ['||', 'o|', '|o', 'o{', '{o', '}o', '|{', '}|', '{|']

_CARD = '(' + '|'.join(re.escape(t) for t in CARDINALITY_TOKENS) + ')?'

_ENTITY_OPEN_RE = re.compile(r'^(\w+)\s*\{$')
_ATTRIBUTE_RE = re.compile(
    r'^(\w+(?:\[\])?)\s+(\w+)((?:\s*,?\s*(?:PK|FK|UK))*)\s*(?:"([^"]*)")?\s*$'
)
_RELATIONSHIP_RE = re.compile(
    r'^(\w+)\s*' + _CARD + r'\s*(--|\.\.)\s*' + _CARD + r'\s*(\w+)\s*:\s*"?([^"]+)"?'
)
_SHORTHAND_RE = re.compile(r'^(\w+)\s*\{\s*(.+?)\s*\}$')


def _parse_attribute(line: str) -> Optional[EntityAttribute]:
    m = _ATTRIBUTE_RE.match(line)
    if not m:
        return None
    attr_type, name, keys, comment = m.groups()
    return EntityAttribute(
        type=attr_type,
        name=name,
        keys=re.findall(r'PK|FK|UK', keys or ''),
        comment=comment or '',
    )


def parse_er(lines: List[str]) -> ParsedDiagram:
    """Parse erDiagram body lines (header excluded)."""
    entities: Dict[str, Entity] = {}
    relationships: List[Relationship] = []
    current: Optional[Entity] = None

    def entity(name: str) -> Entity:
        if name not in entities:
            entities[name] = Entity(id=name, label=name)
        return entities[name]

    for raw in lines:
        line = raw.strip()
        if not line or _is_comment(line):
            continue

        if line == '}':
            current = None
            continue

        m = _ENTITY_OPEN_RE.match(line)
        if m:
            current = entity(m.group(1))
            continue

        if current is not None:
            attr = _parse_attribute(line)
            if attr:
                current.attributes.append(attr)
                continue

        m = _RELATIONSHIP_RE.match(line)
        if m:
            left, card_start, link, card_end, right, label = m.groups()
            entity(left)
            entity(right)
            relationships.append(Relationship(
                id=f"r{len(relationships) + 1}",
                source=left,
                target=right,
                cardinality_start=card_start or '||',
                cardinality_end=card_end or '||',
                label=label.strip(),
                identifying=link == '--',
            ))
            continue

        m = _SHORTHAND_RE.match(line)
        if m:
            tokens = m.group(2).split()
            if tokens and len(tokens) % 2 == 0:
                target = entity(m.group(1))
                for attr_type, name in zip(tokens[::2], tokens[1::2]):
                    target.attributes.append(EntityAttribute(type=attr_type, name=name))

    entity_list = list(entities.values())
    return ParsedDiagram(
        diagram_type='erDiagram',
        direction=None,
        nodes=entity_list,
        edges=relationships,
        entities=entity_list,
        relationships=relationships,
    )


# ─── Mindmap ──────────────────────────────────────────────────────

_MINDMAP_SHAPES = [
    (re.compile(r'^root\(\((.+)\)\)$'), CIRCLE),
    (re.compile(r'^\((.+)\)$'), ROUNDED_RECT),
    (re.compile(r'^\[(.+)\]$'), RECTANGLE),
]


def _classify_topic(content: str) -> Tuple[str, str, str]:
    """Return (label, shape, style) for a mindmap line."""
    for pattern, descriptor in _MINDMAP_SHAPES:
        m = pattern.match(content)
        if m:
            return m.group(1).strip(), descriptor.shape, descriptor.style
    return content, RECTANGLE.shape, RECTANGLE.style


def parse_mindmap(lines: List[str]) -> ParsedDiagram:
    """Parse mindmap body lines (header excluded, indentation preserved)."""
    nodes: List[DiagramNode] = []
    edges: List[DiagramEdge] = []
    last_at_depth: Dict[int, DiagramNode] = {}

    for raw in lines:
        content = raw.strip()
        if not content or _is_comment(content) or content.startswith('::icon('):
            continue

        indent = len(raw) - len(raw.lstrip())
        depth = indent // 2
        label, shape, style = _classify_topic(content)
        fill, stroke = level_colors(depth)

        node = DiagramNode(
            id=f"node{len(nodes)}",
            label=label,
            shape=shape,
            style=style,
            fill_color=fill,
            stroke_color=stroke,
            level=depth,
        )
        nodes.append(node)
        last_at_depth[depth] = node

        parent = last_at_depth.get(depth - 1) if depth > 0 else None
        if parent is not None:
            edges.append(DiagramEdge(
                id=f"e{len(edges) + 1}",
                source=parent.id,
                target=node.id,
            ))

    return ParsedDiagram(
        diagram_type='mindmap',
        direction='LR',
        nodes=nodes,
        edges=edges,
    )


# ──────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────

def parse_mermaid(code: str) -> ParsedDiagram:
    """Parse Mermaid text into a ParsedDiagram.

    Raises EmptyDiagramError when no non-blank line is present.
    """
    if not isinstance(code, str):
        raise DiagramParseError(f"Mermaid source must be text, got {type(code).__name__}")

    lines = strip_fences(code).split('\n')
    content = [l for l in lines if l.strip() and not _is_comment(l)]
    if not content:
        raise EmptyDiagramError("Empty Mermaid diagram")

    kind, direction = detect_diagram_type(content[0])
    header_index = lines.index(content[0])
    body = lines[header_index + 1:]

    if kind == 'sequence':
        diagram = parse_sequence(body)
    elif kind == 'erDiagram':
        diagram = parse_er(body)
    elif kind == 'mindmap':
        diagram = parse_mindmap(body)
    else:
        diagram = parse_flowchart(body, direction or 'TD')

    if kind not in SUPPORTED_TYPES:
        diagram.metadata['declared_type'] = kind or 'unknown'
    return diagram


# ──────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Parse a Mermaid diagram to AST JSON")
    parser.add_argument("--input", "-i", required=True, help="Input .mmd file")
    parser.add_argument("--output", "-o", required=True, help="Output .ast.json path")
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    diagram = parse_mermaid(input_path.read_text(encoding='utf-8'))
    save_ast(diagram, args.output)
    print(f"  Extracted: {len(diagram.nodes)} nodes, {len(diagram.edges)} edges", file=sys.stderr)
    print(f"  AST written to {args.output}", file=sys.stderr)


if __name__ == "__main__":
    main()
