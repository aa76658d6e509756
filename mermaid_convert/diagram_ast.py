#!/usr/bin/env python3
"""
Diagram AST — Intermediate Representation for Mermaid Diagrams

Shared schema produced by the Mermaid parser and consumed by the layout
engine and the Draw.io / Markdown writers. Every dialect (flowchart,
sequence, ER, mindmap) produces a ParsedDiagram that always exposes
``nodes`` and ``edges``; sequence and ER diagrams additionally carry their
dialect-specific views (participants/messages, entities/relationships).

The AST can be serialized to .ast.json for inspection and round-tripping.
"""

import json
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

AST_SCHEMA_VERSION = "1.0.0"


# ──────────────────────────────────────────────────────────────────
# Dataclasses
# ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ArrowStyle:
    line: str = "solid"
    head: str = "classic"
    has_label: bool = False

    @property
    def kind(self) -> str:
        """Camel-cased arrow kind, e.g. ``dashedClassic``."""
        return f"{self.line}{self.head.capitalize()}"


@dataclass
class DiagramNode:
    id: str
    label: str
    shape: str = "rectangle"
    style: str = ""
    fill_color: Optional[str] = None
    stroke_color: Optional[str] = None
    level: Optional[int] = None


@dataclass
class DiagramEdge:
    id: str
    source: str
    target: str
    label: str = ""
    arrow: Optional[ArrowStyle] = None


@dataclass
class Subgraph:
    id: str
    label: str
    nodes: List[str] = field(default_factory=list)


@dataclass
class EntityAttribute:
    type: str
    name: str
    keys: List[str] = field(default_factory=list)
    comment: str = ""


@dataclass
class Entity:
    id: str
    label: str
    attributes: List[EntityAttribute] = field(default_factory=list)


@dataclass
class Relationship:
    id: str
    source: str
    target: str
    cardinality_start: str = "||"
    cardinality_end: str = "||"
    label: str = ""
    identifying: bool = True


@dataclass
class Participant:
    id: str
    label: str
    is_actor: bool = False


@dataclass
class Message:
    source: str
    target: str
    text: str
    line_kind: str = "solid"
    is_async: bool = False


@dataclass(frozen=True)
class Position:
    x: int
    y: int
    width: int
    height: int


@dataclass
class ParsedDiagram:
    diagram_type: str = "flowchart"
    direction: Optional[str] = "TD"
    nodes: List[Any] = field(default_factory=list)
    edges: List[Any] = field(default_factory=list)
    subgraphs: List[Subgraph] = field(default_factory=list)
    participants: List[Participant] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)
    entities: List[Entity] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.diagram_type


# ──────────────────────────────────────────────────────────────────
# JSON Serialization
# ──────────────────────────────────────────────────────────────────

def to_json(diagram: ParsedDiagram) -> dict:
    """Serialize a ParsedDiagram to a JSON-compatible dict."""
    data = asdict(diagram)
    data['schema_version'] = AST_SCHEMA_VERSION
    return data


def _build(cls, data: dict):
    """Instantiate a dataclass from a dict, dropping unknown keys."""
    names = {f.name for f in cls.__dataclass_fields__.values()}
    return cls(**{k: v for k, v in data.items() if k in names})


def _node_from_json(data: dict):
    if 'attributes' in data:
        return _entity_from_json(data)
    if 'is_actor' in data:
        return _build(Participant, data)
    return _build(DiagramNode, data)


def _edge_from_json(data: dict):
    if 'cardinality_start' in data:
        return _build(Relationship, data)
    edge = _build(DiagramEdge, data)
    if isinstance(edge.arrow, dict):
        edge.arrow = _build(ArrowStyle, edge.arrow)
    return edge


def _entity_from_json(data: dict) -> Entity:
    entity = _build(Entity, data)
    entity.attributes = [_build(EntityAttribute, a) for a in data.get('attributes', [])]
    return entity


def from_json(data: dict) -> ParsedDiagram:
    """Deserialize a dict (from JSON) into a ParsedDiagram."""
    diagram_type = data.get('diagram_type', 'flowchart')
    participants = [_build(Participant, p) for p in data.get('participants', [])]
    entities = [_entity_from_json(e) for e in data.get('entities', [])]
    relationships = [_build(Relationship, r) for r in data.get('relationships', [])]

    # Sequence and ER diagrams share their node/edge objects with the
    # dialect-specific lists, so rebuild them from those lists.
    if diagram_type == 'sequence':
        nodes = participants
    elif diagram_type == 'erDiagram':
        nodes = entities
    else:
        nodes = [_node_from_json(n) for n in data.get('nodes', [])]
    if diagram_type == 'erDiagram':
        edges = relationships
    else:
        edges = [_edge_from_json(e) for e in data.get('edges', [])]

    return ParsedDiagram(
        diagram_type=diagram_type,
        direction=data.get('direction'),
        nodes=nodes,
        edges=edges,
        subgraphs=[_build(Subgraph, s) for s in data.get('subgraphs', [])],
        participants=participants,
        messages=[_build(Message, m) for m in data.get('messages', [])],
        entities=entities,
        relationships=relationships,
        metadata=data.get('metadata', {}),
    )


def save_ast(diagram: ParsedDiagram, path: str) -> None:
    """Write a ParsedDiagram to a .ast.json file."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, 'w', encoding='utf-8') as f:
        json.dump(to_json(diagram), f, indent=2, default=str)


def load_ast(path: str) -> ParsedDiagram:
    """Read a .ast.json file and return a ParsedDiagram."""
    with open(path, 'r', encoding='utf-8') as f:
        return from_json(json.load(f))


# ──────────────────────────────────────────────────────────────────
# Graph helpers
# ──────────────────────────────────────────────────────────────────

def entry_points(nodes: List[Any], edges: List[Any]) -> List[Any]:
    """Nodes with no incoming edge, in declaration order."""
    has_incoming = {e.target for e in edges}
    return [n for n in nodes if n.id not in has_incoming]


def exit_points(nodes: List[Any], edges: List[Any]) -> List[Any]:
    """Nodes with no outgoing edge, in declaration order."""
    has_outgoing = {e.source for e in edges}
    return [n for n in nodes if n.id not in has_outgoing]


# ──────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────

def main() -> int:
    import argparse
    parser = argparse.ArgumentParser(description='Diagram AST utilities')
    sub = parser.add_subparsers(dest='command')

    show = sub.add_parser('show', help='Pretty-print an .ast.json file')
    show.add_argument('file', help='Path to .ast.json')

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 0

    diagram = load_ast(args.file)
    print(json.dumps(to_json(diagram), indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
