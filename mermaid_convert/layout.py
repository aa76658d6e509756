"""
Layout engine: assigns Draw.io coordinates to parsed diagrams.

Flowcharts get a layered layout:

1. longest-path levels from the roots, tolerant of cycles;
2. tree-edge selection (forward edges, plus every edge leaving a node
   with more than one outgoing edge so each branch gets its own column);
3. subtree widths in leaf columns over the tree edges;
4. column assignment, parents centered over their branches;
5. level/column → (x, y), honoring the diagram direction, snapped to a
   10-unit grid.

Sequence, ER and mindmap diagrams use simpler dedicated layouts. All
traversals carry explicit visited / on-path sets so cyclic input always
terminates.
"""

import math
from typing import Dict, List, Optional, Sequence, Set, Tuple

from mermaid_convert.diagram_ast import (
    DiagramEdge, DiagramNode, Entity, ParsedDiagram, Participant, Position,
    Relationship,
)
from mermaid_convert.lexicon import STADIUM

GRID = 10

NODE_WIDTH = 140
NODE_HEIGHT = 50
DIAMOND_MIN_WIDTH = 160
DIAMOND_HEIGHT = 80
HORIZONTAL_GAP = 200
VERTICAL_GAP = 90
START_X = 100
START_Y = 40

PARTICIPANT_WIDTH = 120
PARTICIPANT_HEIGHT = 40
PARTICIPANT_GAP = 180
MESSAGE_GAP = 60

ENTITY_WIDTH = 180
ENTITY_HEADER_HEIGHT = 40
ENTITY_MIN_HEIGHT = 60
ATTRIBUTE_HEIGHT = 24
ENTITY_H_GAP = 300
ENTITY_V_GAP = 250
ENTITY_START_X = 100
ENTITY_START_Y = 60

TOPIC_WIDTH = 120
TOPIC_HEIGHT = 36
TOPIC_LEVEL_GAP = 200
TOPIC_SIBLING_GAP = 15
TOPIC_START_X = 50
TOPIC_START_Y = 50

STOP_FILL = '#f8cecc'
STOP_STROKE = '#b85450'


def snap(value: float) -> int:
    """Round half-up to the nearest grid multiple."""
    return int(math.floor(value / GRID + 0.5)) * GRID


# ──────────────────────────────────────────────────────────────────
# Start / Stop synthesis
# ──────────────────────────────────────────────────────────────────

def _has_terminal(nodes: Sequence[DiagramNode], names: Tuple[str, ...]) -> bool:
    return any(n.id.lower() in names or n.label.lower() in names for n in nodes)


def add_terminal_nodes(diagram: ParsedDiagram) -> Tuple[List[DiagramNode], List[DiagramEdge]]:
    """Return flowchart nodes/edges with Start and Stop terminals added.

    Start is wired to every node without incoming edges unless some node is
    already called "start"; Stop is wired from every node without outgoing
    edges unless some node is already called "stop" or "end". The parsed
    diagram itself is left untouched.
    """
    nodes = list(diagram.nodes)
    edges = list(diagram.edges)
    if diagram.diagram_type != 'flowchart' or not nodes:
        return nodes, edges

    has_incoming = {e.target for e in edges}
    has_outgoing = {e.source for e in edges}
    start_nodes = [n for n in nodes if n.id not in has_incoming]
    end_nodes = [n for n in nodes if n.id not in has_outgoing]

    if start_nodes and not _has_terminal(nodes, ('start',)):
        nodes.insert(0, DiagramNode(
            id='Start',
            label='Start',
            shape=STADIUM.shape,
            style=STADIUM.style,
            fill_color=STADIUM.fill_color,
            stroke_color=STADIUM.stroke_color,
        ))
        start_edges = [
            DiagramEdge(id=f"e_start_{n.id}", source='Start', target=n.id)
            for n in start_nodes
        ]
        edges = start_edges[::-1] + edges

    if end_nodes and not _has_terminal(nodes, ('stop', 'end')):
        nodes.append(DiagramNode(
            id='Stop',
            label='Stop',
            shape=STADIUM.shape,
            style=STADIUM.style,
            fill_color=STOP_FILL,
            stroke_color=STOP_STROKE,
        ))
        edges.extend(
            DiagramEdge(id=f"e_{n.id}_stop", source=n.id, target='Stop')
            for n in end_nodes
        )

    return nodes, edges


# ──────────────────────────────────────────────────────────────────
# Flowchart layout
# ──────────────────────────────────────────────────────────────────

def node_size(node: DiagramNode) -> Tuple[int, int]:
    """Box size for a flowchart node; diamonds grow with their label."""
    if node.shape == 'diamond':
        return max(DIAMOND_MIN_WIDTH, len(node.label) * 8), DIAMOND_HEIGHT
    return NODE_WIDTH, NODE_HEIGHT


def _adjacency(node_ids: List[str], edges: Sequence[DiagramEdge]) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
    known = set(node_ids)
    out_edges: Dict[str, List[str]] = {nid: [] for nid in node_ids}
    in_edges: Dict[str, List[str]] = {nid: [] for nid in node_ids}
    for edge in edges:
        if edge.source in known and edge.target in known:
            out_edges[edge.source].append(edge.target)
            in_edges[edge.target].append(edge.source)
    return out_edges, in_edges


def find_roots(node_ids: List[str], in_edges: Dict[str, List[str]]) -> List[str]:
    """Nodes without incoming edges; the first node when every node has one."""
    roots = [nid for nid in node_ids if not in_edges[nid]]
    if not roots and node_ids:
        roots = [node_ids[0]]
    return roots


def assign_levels(node_ids: List[str], out_edges: Dict[str, List[str]], roots: List[str]) -> Dict[str, int]:
    """Longest-path level of every node, measured from the roots.

    A node already on the current DFS path is a back-edge target and is not
    re-entered. A node reached again off-path is only re-traversed when the
    new path is longer. Unreached nodes get level 0.
    """
    levels: Dict[str, int] = {}
    visited: Set[str] = set()
    on_path: Set[str] = set()

    def enter(node_id: str, level: int) -> bool:
        if node_id in on_path:
            return False
        if node_id in visited and level <= levels[node_id]:
            return False
        visited.add(node_id)
        levels[node_id] = max(levels.get(node_id, 0), level)
        on_path.add(node_id)
        return True

    for root in roots:
        if not enter(root, 0):
            continue
        stack = [(root, 0, iter(out_edges[root]))]
        while stack:
            node_id, level, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                on_path.discard(node_id)
            elif enter(child, level + 1):
                stack.append((child, level + 1, iter(out_edges[child])))

    for nid in node_ids:
        levels.setdefault(nid, 0)
    return levels


def select_tree_edges(node_ids: List[str], edges: Sequence[DiagramEdge], levels: Dict[str, int]) -> Dict[str, List[str]]:
    """Children of each node along layout (tree) edges."""
    known = set(node_ids)
    out_degree: Dict[str, int] = {nid: 0 for nid in node_ids}
    for edge in edges:
        if edge.source in known and edge.target in known:
            out_degree[edge.source] += 1

    tree_children: Dict[str, List[str]] = {nid: [] for nid in node_ids}
    for edge in edges:
        if edge.source not in known or edge.target not in known:
            continue
        if out_degree[edge.source] > 1 or levels[edge.target] > levels[edge.source]:
            tree_children[edge.source].append(edge.target)
    return tree_children


def subtree_width(node_id: str, tree_children: Dict[str, List[str]], path: Optional[Set[str]] = None,
                  cache: Optional[Dict[str, int]] = None) -> int:
    """Leaf columns needed below *node_id*; nodes already on *path* count as 1.

    Widths are memoized in *cache* when one is given.
    """
    path = set() if path is None else path
    if node_id in path:
        return 1
    if cache is not None and node_id in cache:
        return cache[node_id]
    children = tree_children.get(node_id, [])
    if not children:
        width = 1
    else:
        path.add(node_id)
        try:
            width = max(1, sum(subtree_width(child, tree_children, path, cache) for child in children))
        finally:
            path.discard(node_id)
    if cache is not None:
        cache[node_id] = width
    return width


class _ColumnAssigner:
    """Step 4: place nodes in (possibly fractional) columns."""

    def __init__(self, tree_children: Dict[str, List[str]]) -> None:
        self.tree_children = tree_children
        self.columns: Dict[str, float] = {}
        self.positioned: Set[str] = set()
        self.widths: Dict[str, int] = {}

    def width(self, node_id: str) -> int:
        return subtree_width(node_id, self.tree_children, cache=self.widths)

    def place(self, node_id: str, start: float) -> float:
        """Place *node_id* and its subtree from column *start*; return the next free column."""
        if node_id in self.positioned:
            return start
        self.positioned.add(node_id)
        children = self.tree_children.get(node_id, [])

        if not children:
            self.columns[node_id] = start
            return start + 1

        if len(children) >= 2:
            current = start
            centers: List[float] = []
            for child in children:
                if child in self.positioned:
                    # Ancestors still being placed have no column yet.
                    if child in self.columns:
                        centers.append(self.columns[child])
                    continue
                width = self.width(child)
                center = current + (width - 1) / 2
                self.columns[child] = center
                self.positioned.add(child)
                self._place_below(child, current)
                centers.append(center)
                current += width
            self.columns[node_id] = (min(centers) + max(centers)) / 2 if centers else start
            return current

        child = children[0]
        after = self.place(child, start)
        self.columns[node_id] = self.columns.get(child, start)
        return after

    def _place_below(self, node_id: str, start: float) -> None:
        current = start
        for child in self.tree_children.get(node_id, []):
            if child in self.positioned:
                continue
            width = self.width(child)
            self.columns[child] = current + (width - 1) / 2
            self.positioned.add(child)
            self._place_below(child, current)
            current += width


def layout_flowchart(nodes: Sequence[DiagramNode], edges: Sequence[DiagramEdge], direction: Optional[str] = 'TD') -> Dict[str, Position]:
    """Assign grid-aligned positions to flowchart nodes."""
    node_ids = [n.id for n in nodes]
    out_edges, in_edges = _adjacency(node_ids, edges)
    roots = find_roots(node_ids, in_edges)

    levels = assign_levels(node_ids, out_edges, roots)
    tree_children = select_tree_edges(node_ids, edges, levels)

    assigner = _ColumnAssigner(tree_children)
    column = 0.0
    for root in roots:
        column = assigner.place(root, column)
    for nid in node_ids:
        if nid not in assigner.columns:
            assigner.columns[nid] = column
            column += 1

    horizontal = direction in ('LR', 'RL')
    sign = -1 if direction in ('BT', 'RL') else 1

    positions: Dict[str, Position] = {}
    for node in nodes:
        level = levels[node.id]
        col = assigner.columns[node.id]
        if horizontal:
            x = START_X + sign * level * HORIZONTAL_GAP
            y = START_Y + col * VERTICAL_GAP
        else:
            x = START_X + col * HORIZONTAL_GAP
            y = START_Y + sign * level * VERTICAL_GAP
        width, height = node_size(node)
        positions[node.id] = Position(x=snap(x), y=snap(y), width=width, height=height)
    return positions


# ──────────────────────────────────────────────────────────────────
# Sequence layout
# ──────────────────────────────────────────────────────────────────

def layout_sequence(participants: Sequence[Participant]) -> Dict[str, Position]:
    """Participants side by side in declaration order."""
    return {
        p.id: Position(
            x=START_X + index * PARTICIPANT_GAP,
            y=START_Y,
            width=PARTICIPANT_WIDTH,
            height=PARTICIPANT_HEIGHT,
        )
        for index, p in enumerate(participants)
    }


def message_y(index: int) -> int:
    """Vertical position of the *index*-th message (0-based)."""
    return START_Y + PARTICIPANT_HEIGHT + (index + 1) * MESSAGE_GAP


def lifeline_length(message_count: int) -> int:
    return (message_count + 2) * MESSAGE_GAP


# ──────────────────────────────────────────────────────────────────
# ER layout
# ──────────────────────────────────────────────────────────────────

def entity_height(entity: Entity) -> int:
    return max(ENTITY_HEADER_HEIGHT + len(entity.attributes) * ATTRIBUTE_HEIGHT, ENTITY_MIN_HEIGHT)


def junction_entities(entities: Sequence[Entity], relationships: Sequence[Relationship]) -> List[Entity]:
    """Entities that are the target of two or more relationships."""
    target_count: Dict[str, int] = {}
    for rel in relationships:
        target_count[rel.target] = target_count.get(rel.target, 0) + 1
    return [e for e in entities if target_count.get(e.id, 0) >= 2]


def grid_columns(count: int) -> int:
    if count <= 3:
        return count
    if count == 4:
        return 2
    return max(2, math.ceil(math.sqrt(count)))


def layout_er(entities: Sequence[Entity], relationships: Sequence[Relationship]) -> Dict[str, Position]:
    """Junction layout for three entities around one junction table, grid otherwise."""
    positions: Dict[str, Position] = {}
    junctions = junction_entities(entities, relationships)

    if len(entities) == 3 and len(junctions) == 1:
        junction = junctions[0]
        positions[junction.id] = Position(
            x=ENTITY_START_X + ENTITY_H_GAP,
            y=ENTITY_START_Y + ENTITY_V_GAP,
            width=ENTITY_WIDTH,
            height=entity_height(junction),
        )
        others = [e for e in entities if e.id != junction.id]
        for index, entity in enumerate(others):
            positions[entity.id] = Position(
                x=ENTITY_START_X + index * ENTITY_H_GAP * 2,
                y=ENTITY_START_Y,
                width=ENTITY_WIDTH,
                height=entity_height(entity),
            )
        return positions

    cols = grid_columns(len(entities))
    for index, entity in enumerate(entities):
        row, col = divmod(index, cols)
        positions[entity.id] = Position(
            x=ENTITY_START_X + col * ENTITY_H_GAP,
            y=ENTITY_START_Y + row * ENTITY_V_GAP,
            width=ENTITY_WIDTH,
            height=entity_height(entity),
        )
    return positions


# ──────────────────────────────────────────────────────────────────
# Mindmap layout
# ──────────────────────────────────────────────────────────────────

def _topic_height(node_id: str, children: Dict[str, List[str]], visited: Set[str]) -> float:
    if node_id in visited:
        return 0
    visited.add(node_id)
    kids = children.get(node_id, [])
    if not kids:
        return TOPIC_HEIGHT
    total = sum(_topic_height(k, children, visited) + TOPIC_SIBLING_GAP for k in kids)
    return max(total - TOPIC_SIBLING_GAP, TOPIC_HEIGHT)


def layout_mindmap(nodes: Sequence[DiagramNode], edges: Sequence[DiagramEdge]) -> Dict[str, Position]:
    """Left-to-right tree; every parentless topic roots its own tree."""
    children: Dict[str, List[str]] = {}
    has_parent: Set[str] = set()
    for edge in edges:
        children.setdefault(edge.source, []).append(edge.target)
        has_parent.add(edge.target)

    positions: Dict[str, Position] = {}
    placed: Set[str] = set()

    def place(node_id: str, x: float, y_start: float, y_end: float) -> None:
        if node_id in placed:
            return
        placed.add(node_id)
        y_center = (y_start + y_end) / 2
        positions[node_id] = Position(
            x=snap(x),
            y=snap(y_center - TOPIC_HEIGHT / 2),
            width=TOPIC_WIDTH,
            height=TOPIC_HEIGHT,
        )
        kids = [k for k in children.get(node_id, []) if k not in placed]
        if not kids:
            return
        heights = [_topic_height(k, children, set()) for k in kids]
        total = sum(heights) + TOPIC_SIBLING_GAP * (len(kids) - 1)
        current = y_center - total / 2
        for kid, height in zip(kids, heights):
            place(kid, x + TOPIC_LEVEL_GAP, current, current + height)
            current += height + TOPIC_SIBLING_GAP

    y = float(TOPIC_START_Y)
    for node in nodes:
        if node.id in has_parent or node.id in placed:
            continue
        height = _topic_height(node.id, children, set())
        place(node.id, TOPIC_START_X, y, y + height)
        y += height + TOPIC_SIBLING_GAP

    return positions


# ──────────────────────────────────────────────────────────────────
# Dispatch
# ──────────────────────────────────────────────────────────────────

def layout_diagram(diagram: ParsedDiagram) -> Dict[str, Position]:
    """Position map for any parsed diagram (flowcharts include Start/Stop)."""
    if diagram.diagram_type == 'sequence':
        return layout_sequence(diagram.participants or diagram.nodes)
    if diagram.diagram_type == 'erDiagram':
        return layout_er(diagram.entities or diagram.nodes, diagram.relationships or diagram.edges)
    if diagram.diagram_type == 'mindmap':
        return layout_mindmap(diagram.nodes, diagram.edges)
    nodes, edges = add_terminal_nodes(diagram)
    return layout_flowchart(nodes, edges, diagram.direction or 'TD')
