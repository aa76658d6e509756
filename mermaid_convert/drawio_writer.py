#!/usr/bin/env python3
"""
AST to Draw.io Converter

Renders a ParsedDiagram into a Draw.io (diagrams.net) ``mxfile`` document:
- Flowcharts: Start/Stop terminals, layered layout, subgraph swimlanes,
  orthogonal edges with decision-branch and back-edge routing
- Sequence diagrams: participant boxes or actors, dashed lifelines, messages
- ER diagrams: swimlane tables with attribute rows, cardinality arrows
- Mindmaps: depth-colored topics joined by curved connectors

Usage:
    python -m mermaid_convert.drawio_writer --input diagram.ast.json --output diagram.drawio
"""

import argparse
import math
import random
import string
import sys
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from mermaid_convert.diagram_ast import DiagramEdge, DiagramNode, ParsedDiagram, Position, load_ast
from mermaid_convert.layout import (
    add_terminal_nodes, layout_er, layout_flowchart, layout_mindmap,
    layout_sequence, lifeline_length, message_y,
)
from mermaid_convert.lexicon import RECTANGLE, cardinality_style

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
HOST = 'app.diagrams.net'
AGENT = 'mermaid-convert'
VERSION = '21.0.0'

DEFAULT_NAMES = {
    'flowchart': 'Converted Diagram',
    'sequence': 'Sequence Diagram',
    'erDiagram': 'ER Diagram',
    'mindmap': 'Mindmap',
}

FLOW_EDGE_STYLE = 'edgeStyle=orthogonalEdgeStyle;rounded=0;orthogonalLoop=1;jettySize=auto;html=1;'
SWIMLANE_STYLE = 'swimlane;startSize=30;fillColor=#f5f5f5;strokeColor=#666666;'
SUBGRAPH_PADDING = 20
SUBGRAPH_HEADER = 30

BRANCH_SPREAD = 80
BACK_EDGE_OFFSET = 60
VERTICAL_TOLERANCE = 20

BRANCH_LABEL_OFFSETS = [(0, -10), (0, 10), (-20, 0), (20, 0)]
DEFAULT_LABEL_OFFSET = (0, -10)

PARTICIPANT_STYLE = 'rounded=0;whiteSpace=wrap;html=1;fillColor=#dae8fc;strokeColor=#6c8ebf;'
ACTOR_STYLE = 'shape=umlActor;verticalLabelPosition=bottom;verticalAlign=top;html=1;'
LIFELINE_STYLE = 'endArrow=none;dashed=1;html=1;strokeWidth=1;strokeColor=#999999;'

TABLE_STYLE = (
    'swimlane;fontStyle=1;childLayout=stackLayout;horizontal=1;startSize=30;'
    'horizontalStack=0;resizeParent=1;resizeParentMax=0;resizeLast=0;collapsible=0;'
    'marginBottom=0;whiteSpace=wrap;html=1;fillColor=#dae8fc;strokeColor=#6c8ebf;rounded=0;'
)
ATTRIBUTE_STYLE = (
    'text;strokeColor=none;fillColor=none;align=left;verticalAlign=middle;'
    'spacingLeft=4;spacingRight=4;overflow=hidden;points=[[0,0.5],[1,0.5]];'
    'portConstraint=eastwest;rotatable=0;whiteSpace=wrap;html=1;'
)
PLACEHOLDER_STYLE = (
    'text;strokeColor=none;fillColor=none;align=center;verticalAlign=middle;'
    'spacingLeft=4;spacingRight=4;overflow=hidden;points=[[0,0.5],[1,0.5]];'
    'portConstraint=eastwest;rotatable=0;whiteSpace=wrap;html=1;fontStyle=2;fontColor=#999999;'
)
ER_EDGE_STYLE = 'edgeStyle=orthogonalEdgeStyle;rounded=0;orthogonalLoop=1;jettySize=auto;html=1;'
ER_LABEL_OFFSETS = [(-20, -15), (20, -15), (-20, 15), (20, 15)]
ATTRIBUTE_ROW_HEIGHT = 24
TABLE_HEADER = 30

MINDMAP_EDGE_STYLE = (
    'edgeStyle=orthogonalEdgeStyle;curved=1;rounded=1;orthogonalLoop=1;jettySize=auto;'
    'html=1;endArrow=none;strokeWidth=2;strokeColor=#666666;'
    'exitX=1;exitY=0.5;exitDx=0;exitDy=0;entryX=0;entryY=0.5;entryDx=0;entryDy=0;'
)


# ──────────────────────────────────────────────────────────────────
# Document helpers
# ──────────────────────────────────────────────────────────────────

def _num(value) -> str:
    """Format a coordinate without a trailing ``.0``."""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


class CellIds:
    """Issues mxCell ids that are unique within one document."""

    def __init__(self) -> None:
        self.issued: Set[str] = {'0', '1'}

    def issue(self, preferred: str) -> str:
        candidate = preferred
        suffix = 1
        while candidate in self.issued:
            candidate = f"{preferred}_{suffix}"
            suffix += 1
        self.issued.add(candidate)
        return candidate


def diagram_id(rng: random.Random) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return ''.join(rng.choice(alphabet) for _ in range(8))


def _document(name: str, rng: random.Random, page_width: int = 850, page_height: int = 1100,
              dx: int = 1000, dy: int = 600) -> Tuple[ET.Element, ET.Element]:
    """Build the mxfile envelope; return (mxfile, root) with cells 0 and 1 in place."""
    modified = datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
    mxfile = ET.Element('mxfile', host=HOST, modified=modified, agent=AGENT, version=VERSION)
    diagram = ET.SubElement(mxfile, 'diagram', name=name, id=diagram_id(rng))
    model = ET.SubElement(
        diagram, 'mxGraphModel',
        dx=str(dx), dy=str(dy), grid='1', gridSize='10', guides='1', tooltips='1',
        connect='1', arrows='1', fold='1', page='1', pageScale='1',
        pageWidth=str(page_width), pageHeight=str(page_height), math='0', shadow='0',
    )
    root = ET.SubElement(model, 'root')
    ET.SubElement(root, 'mxCell', id='0')
    ET.SubElement(root, 'mxCell', id='1', parent='0')
    return mxfile, root


def _vertex(root: ET.Element, cell_id: str, value: str, style: str, pos: Position,
            parent: str = '1') -> ET.Element:
    cell = ET.SubElement(root, 'mxCell', id=cell_id, value=value, style=style, vertex='1', parent=parent)
    ET.SubElement(
        cell, 'mxGeometry',
        x=_num(pos.x), y=_num(pos.y), width=_num(pos.width), height=_num(pos.height),
        **{'as': 'geometry'},
    )
    return cell


def _edge(root: ET.Element, cell_id: str, value: str, style: str,
          source: Optional[str] = None, target: Optional[str] = None) -> ET.Element:
    """Add an edge cell and return its (relative) mxGeometry element."""
    attrs = {'id': cell_id, 'value': value, 'style': style, 'edge': '1', 'parent': '1'}
    if source is not None:
        attrs['source'] = source
    if target is not None:
        attrs['target'] = target
    cell = ET.SubElement(root, 'mxCell', attrs)
    return ET.SubElement(cell, 'mxGeometry', relative='1', **{'as': 'geometry'})


def _point(parent: ET.Element, x, y, role: Optional[str] = None) -> None:
    attrs = {'x': _num(x), 'y': _num(y)}
    if role:
        attrs['as'] = role
    ET.SubElement(parent, 'mxPoint', attrs)


def _serialize(mxfile: ET.Element) -> str:
    ET.indent(mxfile, space='  ')
    return XML_DECLARATION + '\n' + ET.tostring(mxfile, encoding='unicode')


def _anchor_style(exit_xy: Tuple[float, float], entry_xy: Tuple[float, float]) -> str:
    return (
        f"exitX={_num(exit_xy[0])};exitY={_num(exit_xy[1])};exitDx=0;exitDy=0;"
        f"entryX={_num(entry_xy[0])};entryY={_num(entry_xy[1])};entryDx=0;entryDy=0;"
    )


def _center(pos: Position) -> Tuple[float, float]:
    return pos.x + pos.width / 2, pos.y + pos.height / 2


# ──────────────────────────────────────────────────────────────────
# Flowchart
# ──────────────────────────────────────────────────────────────────

def node_style(node: DiagramNode) -> str:
    style = node.style or RECTANGLE.style
    fill = node.fill_color or RECTANGLE.fill_color
    stroke = node.stroke_color or RECTANGLE.stroke_color
    return f"{style}fillColor={fill};strokeColor={stroke};"


def edge_style(edge: DiagramEdge) -> str:
    style = FLOW_EDGE_STYLE
    arrow = edge.arrow
    if arrow is not None and arrow.line == 'dashed':
        style += 'dashed=1;'
    if arrow is not None and arrow.head == 'none':
        style += 'endArrow=none;'
    else:
        style += 'endArrow=classic;'
    return style + 'startArrow=none;'


Route = Tuple[Tuple[float, float], Tuple[float, float], List[Tuple[float, float]]]


def route_edge(source: DiagramNode, source_pos: Position, target_pos: Position) -> Route:
    """Pick (exit anchor, entry anchor, waypoints) for a flowchart edge."""
    sx, sy = _center(source_pos)
    tx, ty = _center(target_pos)
    dx = tx - sx
    dy = ty - sy

    if source.shape == 'diamond':
        if dx > BRANCH_SPREAD:
            return (1, 0.5), (0.5, 0), [(tx, sy)]
        if dx < -BRANCH_SPREAD:
            return (0, 0.5), (0.5, 0), [(tx, sy)]
        return (0.5, 1), (0.5, 0), []

    if dy > VERTICAL_TOLERANCE:
        return (0.5, 1), (0.5, 0), []
    if dy < -VERTICAL_TOLERANCE:
        # Back-edge: loop around the right-hand side.
        route_x = max(source_pos.x + source_pos.width, target_pos.x + target_pos.width) + BACK_EDGE_OFFSET
        return (1, 0.5), (1, 0.5), [(route_x, sy), (route_x, ty)]
    if dx > 0:
        return (1, 0.5), (0, 0.5), []
    return (0, 0.5), (1, 0.5), []


def _label_offset(edge: DiagramEdge, edges: Sequence[DiagramEdge]) -> Tuple[int, int]:
    labelled = [e for e in edges if e.source == edge.source and e.label]
    if len(labelled) <= 1:
        return DEFAULT_LABEL_OFFSET
    index = next((i for i, e in enumerate(labelled) if e.id == edge.id), 0)
    if index < len(BRANCH_LABEL_OFFSETS):
        return BRANCH_LABEL_OFFSETS[index]
    return BRANCH_LABEL_OFFSETS[0]


def _subgraph_box(member_ids: Sequence[str], positions: Dict[str, Position]) -> Optional[Position]:
    boxes = [positions[nid] for nid in member_ids if nid in positions]
    if not boxes:
        return None
    min_x = min(p.x for p in boxes)
    min_y = min(p.y for p in boxes)
    max_x = max(p.x + p.width for p in boxes)
    max_y = max(p.y + p.height for p in boxes)
    return Position(
        x=min_x - SUBGRAPH_PADDING,
        y=min_y - SUBGRAPH_PADDING - SUBGRAPH_HEADER,
        width=max_x - min_x + SUBGRAPH_PADDING * 2,
        height=max_y - min_y + SUBGRAPH_PADDING * 2 + SUBGRAPH_HEADER,
    )


def flowchart_to_drawio(diagram: ParsedDiagram, name: str, rng: random.Random) -> str:
    nodes, edges = add_terminal_nodes(diagram)
    positions = layout_flowchart(nodes, edges, diagram.direction or 'TD')
    mxfile, root = _document(name, rng)

    ids = CellIds()
    cell_of = {node.id: ids.issue(node.id) for node in nodes}

    # Swimlanes first so they render behind their members.
    for index, subgraph in enumerate(diagram.subgraphs):
        box = _subgraph_box(subgraph.nodes, positions)
        if box is None:
            continue
        _vertex(root, ids.issue(f"sg{index}"), subgraph.label, SWIMLANE_STYLE, box)

    node_by_id = {node.id: node for node in nodes}
    for node in nodes:
        _vertex(root, cell_of[node.id], node.label, node_style(node), positions[node.id])

    seen: Set[Tuple[str, str]] = set()
    for edge in edges:
        key = (edge.source, edge.target)
        if key in seen or edge.source not in cell_of or edge.target not in cell_of:
            continue
        seen.add(key)

        exit_xy, entry_xy, waypoints = route_edge(
            node_by_id[edge.source], positions[edge.source], positions[edge.target],
        )
        geometry = _edge(
            root, ids.issue(edge.id), edge.label,
            edge_style(edge) + _anchor_style(exit_xy, entry_xy),
            source=cell_of[edge.source], target=cell_of[edge.target],
        )
        if waypoints:
            points = ET.SubElement(geometry, 'Array', **{'as': 'points'})
            for x, y in waypoints:
                _point(points, _round(x), _round(y))
        if edge.label:
            ox, oy = _label_offset(edge, edges)
            _point(geometry, ox, oy, role='offset')

    return _serialize(mxfile)


# ──────────────────────────────────────────────────────────────────
# Sequence
# ──────────────────────────────────────────────────────────────────

def message_style(line_kind: str, is_async: bool = False) -> str:
    if line_kind == 'dashed':
        return 'html=1;dashed=1;endArrow=open;'
    if is_async:
        return 'html=1;endArrow=open;'
    return 'html=1;endArrow=block;endFill=1;'


def sequence_to_drawio(diagram: ParsedDiagram, name: str, rng: random.Random) -> str:
    participants = diagram.participants or diagram.nodes
    messages = diagram.messages
    positions = layout_sequence(participants)
    length = lifeline_length(len(messages))
    mxfile, root = _document(name, rng)

    ids = CellIds()
    cell_of = {p.id: ids.issue(p.id) for p in participants}

    for p in participants:
        style = ACTOR_STYLE if getattr(p, 'is_actor', False) else PARTICIPANT_STYLE
        _vertex(root, cell_of[p.id], p.label, style, positions[p.id])

    for p in participants:
        pos = positions[p.id]
        x = pos.x + pos.width / 2
        y = pos.y + pos.height
        geometry = _edge(root, ids.issue(f"{p.id}_lifeline"), '', LIFELINE_STYLE)
        _point(geometry, x, y, role='sourcePoint')
        _point(geometry, x, y + length, role='targetPoint')

    for index, msg in enumerate(messages):
        source_pos = positions.get(msg.source)
        target_pos = positions.get(msg.target)
        if source_pos is None or target_pos is None:
            continue
        y = message_y(index)
        geometry = _edge(root, ids.issue(f"msg{index}"), msg.text, message_style(msg.line_kind, msg.is_async))
        _point(geometry, source_pos.x + source_pos.width / 2, y, role='sourcePoint')
        _point(geometry, target_pos.x + target_pos.width / 2, y, role='targetPoint')

    return _serialize(mxfile)


# ──────────────────────────────────────────────────────────────────
# ER
# ──────────────────────────────────────────────────────────────────

def attribute_label(attr) -> str:
    return ' '.join([attr.type, attr.name] + list(attr.keys))


def er_anchors(source_pos: Position, target_pos: Position) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Connect top/bottom when the vertical offset dominates, else left/right."""
    sx, sy = _center(source_pos)
    tx, ty = _center(target_pos)
    dx = tx - sx
    dy = ty - sy
    if abs(dy) > abs(dx) * 0.5:
        if dy > 0:
            return (0.5, 1), (0.5, 0)
        return (0.5, 0), (0.5, 1)
    if dx > 0:
        return (1, 0.5), (0, 0.5)
    return (0, 0.5), (1, 0.5)


def _page_size(positions: Dict[str, Position], min_x: int, min_y: int) -> Tuple[int, int]:
    max_x, max_y = min_x, min_y
    for pos in positions.values():
        max_x = max(max_x, pos.x + pos.width + 100)
        max_y = max(max_y, pos.y + pos.height + 100)
    return max(1100, max_x), max(850, max_y)


def er_to_drawio(diagram: ParsedDiagram, name: str, rng: random.Random) -> str:
    entities = diagram.entities or diagram.nodes
    relationships = diagram.relationships or diagram.edges
    positions = layout_er(entities, relationships)
    page_width, page_height = _page_size(positions, 850, 600)
    mxfile, root = _document(name, rng, page_width, page_height, dx=1200, dy=800)

    ids = CellIds()
    cell_of = {e.id: ids.issue(e.id) for e in entities}

    for entity in entities:
        pos = positions[entity.id]
        table = cell_of[entity.id]
        _vertex(root, table, entity.label, TABLE_STYLE, pos)
        if not entity.attributes:
            row = Position(x=0, y=TABLE_HEADER, width=pos.width, height=ATTRIBUTE_ROW_HEIGHT)
            cell = ET.SubElement(root, 'mxCell', id=ids.issue(f"{table}_placeholder"),
                                 value='(no attributes)', style=PLACEHOLDER_STYLE, vertex='1', parent=table)
            ET.SubElement(cell, 'mxGeometry', y=_num(row.y), width=_num(row.width),
                          height=_num(row.height), **{'as': 'geometry'})
            continue
        for i, attr in enumerate(entity.attributes):
            cell = ET.SubElement(root, 'mxCell', id=ids.issue(f"{table}_attr{i}"),
                                 value=attribute_label(attr), style=ATTRIBUTE_STYLE, vertex='1', parent=table)
            ET.SubElement(cell, 'mxGeometry', y=_num(TABLE_HEADER + i * ATTRIBUTE_ROW_HEIGHT),
                          width=_num(pos.width), height=_num(ATTRIBUTE_ROW_HEIGHT), **{'as': 'geometry'})

    for index, rel in enumerate(relationships):
        source_pos = positions.get(rel.source)
        target_pos = positions.get(rel.target)
        if source_pos is None or target_pos is None:
            continue
        exit_xy, entry_xy = er_anchors(source_pos, target_pos)
        style = (
            ER_EDGE_STYLE
            + cardinality_style(rel.cardinality_start, at_start=True)
            + cardinality_style(rel.cardinality_end, at_start=False)
            + 'strokeWidth=1;'
        )
        if not getattr(rel, 'identifying', True):
            style += 'dashed=1;'
        geometry = _edge(
            root, ids.issue(f"rel_{index}"), rel.label or '',
            style + _anchor_style(exit_xy, entry_xy),
            source=cell_of[rel.source], target=cell_of[rel.target],
        )
        ox, oy = ER_LABEL_OFFSETS[index % len(ER_LABEL_OFFSETS)]
        _point(geometry, ox, oy, role='offset')

    return _serialize(mxfile)


# ──────────────────────────────────────────────────────────────────
# Mindmap
# ──────────────────────────────────────────────────────────────────

def mindmap_to_drawio(diagram: ParsedDiagram, name: str, rng: random.Random) -> str:
    positions = layout_mindmap(diagram.nodes, diagram.edges)
    page_width, page_height = _page_size(positions, 800, 600)
    mxfile, root = _document(name, rng, page_width, page_height, dx=1200, dy=800)

    ids = CellIds()
    cell_of = {node.id: ids.issue(node.id) for node in diagram.nodes}
    fallback = Position(x=100, y=100, width=120, height=36)

    for node in diagram.nodes:
        style = (
            f"{node.style}fillColor={node.fill_color};strokeColor={node.stroke_color};"
            "fontStyle=1;fontSize=11;"
        )
        _vertex(root, cell_of[node.id], node.label, style, positions.get(node.id, fallback))

    for edge in diagram.edges:
        if edge.source not in cell_of or edge.target not in cell_of:
            continue
        _edge(root, ids.issue(edge.id), '', MINDMAP_EDGE_STYLE,
              source=cell_of[edge.source], target=cell_of[edge.target])

    return _serialize(mxfile)


# ──────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────

WRITERS = {
    'sequence': sequence_to_drawio,
    'erDiagram': er_to_drawio,
    'mindmap': mindmap_to_drawio,
}


def to_drawio(diagram: ParsedDiagram, name: Optional[str] = None,
              rng: Optional[random.Random] = None) -> str:
    """Render *diagram* as Draw.io XML. Unknown types render as flowcharts."""
    writer = WRITERS.get(diagram.diagram_type, flowchart_to_drawio)
    title = name or DEFAULT_NAMES.get(diagram.diagram_type, DEFAULT_NAMES['flowchart'])
    return writer(diagram, title, rng or random.Random())


def main():
    parser = argparse.ArgumentParser(description="Render a diagram AST as Draw.io XML")
    parser.add_argument("--input", "-i", required=True, help="Input .ast.json file")
    parser.add_argument("--output", "-o", required=True, help="Output .drawio path")
    parser.add_argument("--name", "-n", default=None, help="Diagram page name")
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    diagram = load_ast(str(input_path))
    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(to_drawio(diagram, name=args.name), encoding='utf-8')
    print(f"  Draw.io written to {out}", file=sys.stderr)


if __name__ == "__main__":
    main()
