import time

import pytest

from mermaid_convert.diagram_ast import DiagramNode, Entity, EntityAttribute, Participant
from mermaid_convert.layout import (
    add_terminal_nodes, entity_height, grid_columns, layout_diagram, layout_er,
    layout_flowchart, layout_mindmap, layout_sequence, lifeline_length, message_y,
    node_size, select_tree_edges, snap, subtree_width,
)
from mermaid_convert.mermaid_parser import parse_mermaid


def flow_positions(code, direction=None):
    diagram = parse_mermaid(code)
    return layout_flowchart(diagram.nodes, diagram.edges, direction or diagram.direction)


def xy(positions, node_id):
    pos = positions[node_id]
    return pos.x, pos.y


# ─── Grid snapping ───────────────────────────────────────────────

def test_snap_rounds_half_up():
    assert snap(15) == 20
    assert snap(25) == 30
    assert snap(24.9) == 20
    assert snap(-15) == -10
    assert snap(-50) == -50


# ─── Flowchart ───────────────────────────────────────────────────

def test_chain_top_down():
    positions = flow_positions("flowchart TD\nA --> B\nB --> C")
    assert xy(positions, "A") == (100, 40)
    assert xy(positions, "B") == (100, 130)
    assert xy(positions, "C") == (100, 220)
    assert positions["A"].width == 140
    assert positions["A"].height == 50


def test_branch_parent_is_centered():
    positions = flow_positions("flowchart TD\nA --> B\nA --> C")
    assert xy(positions, "B") == (100, 130)
    assert xy(positions, "C") == (300, 130)
    assert xy(positions, "A") == (200, 40)


def test_left_right_swaps_axes():
    positions = flow_positions("flowchart LR\nA --> B\nB --> C")
    assert xy(positions, "A") == (100, 40)
    assert xy(positions, "B") == (300, 40)
    assert xy(positions, "C") == (500, 40)


def test_bottom_top_negates_levels():
    positions = flow_positions("flowchart BT\nA --> B\nB --> C")
    assert [positions[n].y for n in "ABC"] == [40, -50, -140]


def test_right_left_negates_levels():
    positions = flow_positions("flowchart RL\nA --> B")
    assert positions["B"].x == -100


def test_longest_path_level():
    positions = flow_positions("flowchart TD\nA --> B\nA --> C\nC --> B")
    assert positions["B"].y == 220
    assert positions["C"].y == 130


def test_cycle_terminates():
    positions = flow_positions("flowchart TD\nA --> B\nB --> C\nC --> A")
    assert set(positions) == {"A", "B", "C"}
    assert [positions[n].y for n in "ABC"] == [40, 130, 220]


def test_self_loop_on_branching_node_terminates():
    positions = flow_positions("flowchart TD\nA --> A\nA --> B")
    assert set(positions) == {"A", "B"}


def test_dense_cyclic_graph_is_grid_aligned():
    code = "flowchart TD\n" + "\n".join(
        f"N{i} --> N{j}" for i in range(6) for j in range(6) if i != j
    )
    positions = flow_positions(code)
    assert len(positions) == 6
    for pos in positions.values():
        assert pos.x % 10 == 0
        assert pos.y % 10 == 0


def test_unreached_nodes_get_own_columns():
    positions = flow_positions("flowchart TD\nA --> B\nB --> A\nC[Island]")
    assert positions["C"].y == 40
    assert positions["C"].x != positions["A"].x


def test_tree_edges_increase_level_for_single_out_edges():
    diagram = parse_mermaid("flowchart TD\nA --> B\nB --> C\nC --> A\nC --> D")
    ids = [n.id for n in diagram.nodes]
    levels = {"A": 0, "B": 1, "C": 2, "D": 3}
    children = select_tree_edges(ids, diagram.edges, levels)
    assert children["A"] == ["B"]
    assert children["B"] == ["C"]
    # C has two out-edges so both count, including the back-edge.
    assert children["C"] == ["A", "D"]


def test_subtree_width_guards_cycles():
    children = {"A": ["B", "C"], "B": ["A"], "C": []}
    assert subtree_width("A", children) == 2
    assert subtree_width("C", children) == 1


def test_diamond_size_grows_with_label():
    small = DiagramNode(id="d", label="Ok?", shape="diamond")
    large = DiagramNode(id="d", label="Is the payment authorised?", shape="diamond")
    assert node_size(small) == (160, 80)
    assert node_size(large) == (len(large.label) * 8, 80)
    assert node_size(DiagramNode(id="r", label="x")) == (140, 50)


# ─── Start / Stop synthesis ──────────────────────────────────────

def test_existing_terminals_suppress_synthesis():
    diagram = parse_mermaid("flowchart TD\nA[Start] --> B[End]")
    nodes, edges = add_terminal_nodes(diagram)
    assert len(nodes) == 2
    assert len(edges) == 1


def test_terminals_are_synthesized():
    diagram = parse_mermaid("flowchart TD\nX[Go] --> Y[Stop2]")
    nodes, edges = add_terminal_nodes(diagram)
    assert [n.id for n in nodes] == ["Start", "X", "Y", "Stop"]
    assert [e.id for e in edges] == ["e_start_X", "e1", "e_Y_stop"]
    start, stop = nodes[0], nodes[-1]
    assert start.shape == stop.shape == "stadium"
    assert stop.fill_color == "#f8cecc"
    assert stop.stroke_color == "#b85450"
    assert start.fill_color == "#d5e8d4"


def test_synthesis_does_not_mutate_diagram():
    diagram = parse_mermaid("flowchart TD\nX --> Y")
    add_terminal_nodes(diagram)
    assert [n.id for n in diagram.nodes] == ["X", "Y"]
    assert len(diagram.edges) == 1


def test_terminal_matching_is_case_insensitive():
    diagram = parse_mermaid("flowchart TD\nstart --> work\nwork --> STOP")
    nodes, edges = add_terminal_nodes(diagram)
    assert [n.id for n in nodes] == ["start", "work", "STOP"]


def test_multiple_entry_nodes_are_all_wired():
    diagram = parse_mermaid("flowchart TD\nA --> C\nB --> C\nC[Done]")
    nodes, edges = add_terminal_nodes(diagram)
    assert [e.id for e in edges[:2]] == ["e_start_B", "e_start_A"]
    assert edges[-1].id == "e_C_stop"


def test_non_flowchart_is_untouched():
    diagram = parse_mermaid("sequenceDiagram\nA->>B: hi")
    nodes, edges = add_terminal_nodes(diagram)
    assert [n.id for n in nodes] == ["A", "B"]
    assert len(edges) == 1


def test_layout_diagram_includes_terminals():
    positions = layout_diagram(parse_mermaid("flowchart TD\nA --> B"))
    assert set(positions) == {"Start", "A", "B", "Stop"}
    assert positions["Start"].y < positions["A"].y < positions["B"].y < positions["Stop"].y


# ─── Sequence ────────────────────────────────────────────────────

def test_sequence_layout():
    participants = [Participant(id=i, label=i) for i in ("A", "B", "C")]
    positions = layout_sequence(participants)
    assert [positions[p].x for p in "ABC"] == [100, 280, 460]
    assert {positions[p].y for p in "ABC"} == {40}
    assert positions["A"].width == 120
    assert positions["A"].height == 40


def test_message_rows_and_lifeline():
    assert message_y(0) == 140
    assert message_y(2) == 260
    assert lifeline_length(2) == 240


# ─── ER ──────────────────────────────────────────────────────────

def test_er_junction_layout():
    diagram = parse_mermaid(
        "erDiagram\n"
        "STUDENT ||--o{ ENROLLMENT : has\n"
        "COURSE ||--o{ ENROLLMENT : includes\n"
    )
    positions = layout_er(diagram.entities, diagram.relationships)
    assert xy(positions, "ENROLLMENT") == (400, 310)
    assert xy(positions, "STUDENT") == (100, 60)
    assert xy(positions, "COURSE") == (700, 60)


def test_er_grid_layout():
    entities = [Entity(id=f"E{i}", label=f"E{i}") for i in range(4)]
    positions = layout_er(entities, [])
    assert [xy(positions, f"E{i}") for i in range(4)] == [
        (100, 60), (400, 60), (100, 310), (400, 310),
    ]


@pytest.mark.parametrize("count, cols", [(1, 1), (2, 2), (3, 3), (4, 2), (5, 3), (9, 3), (10, 4)])
def test_grid_columns(count, cols):
    assert grid_columns(count) == cols


def test_entity_height():
    entity = Entity(id="E", label="E", attributes=[EntityAttribute("int", f"a{i}") for i in range(3)])
    assert entity_height(entity) == 112
    assert entity_height(Entity(id="F", label="F")) == 60


# ─── Mindmap ─────────────────────────────────────────────────────

def test_mindmap_children_centered_on_parent():
    diagram = parse_mermaid("mindmap\nroot((Center))\n  A\n  B")
    positions = layout_mindmap(diagram.nodes, diagram.edges)
    root, a, b = (n.id for n in diagram.nodes)
    assert xy(positions, root) == (50, 80)
    assert xy(positions, a) == (250, 50)
    assert xy(positions, b) == (250, 100)
    assert positions[a].width == 120
    assert positions[a].height == 36


def test_mindmap_multiple_roots_stack():
    diagram = parse_mermaid("mindmap\nOne\nTwo")
    positions = layout_mindmap(diagram.nodes, diagram.edges)
    assert [xy(positions, n.id) for n in diagram.nodes] == [(50, 50), (50, 100)]


def test_mindmap_orphaned_deep_node_roots_its_own_tree():
    diagram = parse_mermaid("mindmap\nroot\n  a\n      deep\n  b")
    positions = layout_mindmap(diagram.nodes, diagram.edges)
    root, _, deep, _ = (n.id for n in diagram.nodes)
    assert xy(positions, root) == (50, 80)
    assert xy(positions, deep) == (50, 150)


# ─── Scaling ─────────────────────────────────────────────────────

def test_decision_ladder_lays_out_quickly():
    # Every node branches to the next two, so uncached widths grow like Fibonacci.
    size = 40
    code = "flowchart TD\n" + "\n".join(
        f"N{i} --> N{j}" for i in range(size) for j in (i + 1, i + 2) if j < size
    )
    started = time.perf_counter()
    positions = layout_diagram(parse_mermaid(code))
    assert time.perf_counter() - started < 2.0
    assert len(positions) == size + 2
    assert positions["N0"].y < positions["N1"].y < positions["N2"].y


def test_subtree_width_cache_is_filled():
    children = {"A": ["B", "C"], "B": ["C"], "C": []}
    cache = {}
    assert subtree_width("A", children, cache=cache) == 2
    assert cache == {"A": 2, "B": 1, "C": 1}
