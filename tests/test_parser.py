import pytest

from mermaid_convert.mermaid_parser import (
    DiagramParseError, EmptyDiagramError, detect_diagram_type, parse_mermaid, strip_fences,
)


# ─── Dialect detection ───────────────────────────────────────────

@pytest.mark.parametrize(
    "header, kind, direction",
    [
        ("flowchart TD", "flowchart", "TD"),
        ("FLOWCHART lr", "flowchart", "LR"),
        ("graph BT", "flowchart", "BT"),
        ("graph", "flowchart", "TD"),
        ("sequenceDiagram", "sequence", None),
        ("SequenceDiagram", "sequence", None),
        ("erDiagram", "erDiagram", None),
        ("mindmap", "mindmap", None),
        ("classDiagram", "class", None),
        ("stateDiagram-v2", "state", None),
        ("gitGraph", "gitgraph", None),
        ("pie title Pets", None, None),
    ],
)
def test_detect_diagram_type(header, kind, direction):
    assert detect_diagram_type(header) == (kind, direction)


def test_unknown_dialect_falls_back_to_flowchart():
    diagram = parse_mermaid("pie title Pets\nA --> B")
    assert diagram.type == "flowchart"
    assert diagram.direction == "TD"
    assert diagram.metadata["declared_type"] == "unknown"


def test_unsupported_dialect_is_recorded():
    diagram = parse_mermaid("classDiagram\nA --> B")
    assert diagram.diagram_type == "flowchart"
    assert diagram.metadata["declared_type"] == "class"


def test_strip_fences():
    assert strip_fences("```mermaid\nflowchart TD\nA --> B\n```") == "flowchart TD\nA --> B"
    assert strip_fences("```\ngraph LR\n```") == "graph LR"
    assert strip_fences("flowchart TD") == "flowchart TD"


# ─── Errors ──────────────────────────────────────────────────────

@pytest.mark.parametrize("code", ["", "   \n\t\n", "%% only a comment", "```mermaid\n```"])
def test_empty_input_is_fatal(code):
    with pytest.raises(EmptyDiagramError, match="Empty Mermaid diagram"):
        parse_mermaid(code)


def test_non_text_input_raises_distinct_error():
    with pytest.raises(DiagramParseError) as excinfo:
        parse_mermaid(None)
    assert not isinstance(excinfo.value, EmptyDiagramError)
    assert "text" in str(excinfo.value)


def test_parse_errors_are_value_errors():
    assert issubclass(DiagramParseError, ValueError)


# ─── Flowchart ───────────────────────────────────────────────────

def test_simple_flowchart():
    diagram = parse_mermaid("flowchart TD\nA[Start] --> B[End]")
    assert diagram.direction == "TD"
    assert [n.id for n in diagram.nodes] == ["A", "B"]
    assert [n.label for n in diagram.nodes] == ["Start", "End"]
    assert len(diagram.edges) == 1
    edge = diagram.edges[0]
    assert (edge.id, edge.source, edge.target) == ("e1", "A", "B")


def test_fenced_flowchart():
    diagram = parse_mermaid("```mermaid\nflowchart LR\n  A --> B\n```")
    assert diagram.direction == "LR"
    assert len(diagram.nodes) == 2


def test_bare_reference_keeps_shape():
    diagram = parse_mermaid("flowchart TD\nA{Decide} --> B\nB --> A")
    node = next(n for n in diagram.nodes if n.id == "A")
    assert node.shape == "diamond"
    assert node.label == "Decide"


def test_explicit_redeclaration_overwrites_shape():
    diagram = parse_mermaid("flowchart TD\nA[One]\nA(Two)")
    assert len(diagram.nodes) == 1
    assert diagram.nodes[0].shape == "roundedRect"
    assert diagram.nodes[0].label == "Two"


def test_bare_node_gets_default_rectangle():
    diagram = parse_mermaid("flowchart TD\nA --> B")
    node = diagram.nodes[1]
    assert node.label == "B"
    assert node.shape == "rectangle"
    assert node.fill_color == "#dae8fc"


def test_edge_labels_and_arrow_kinds():
    diagram = parse_mermaid(
        "flowchart TD\n"
        "A -->|yes| B\n"
        "B -.-> C\n"
        "C ==> D\n"
        "D --- E\n"
    )
    assert diagram.edges[0].label == "yes"
    assert [e.arrow.kind for e in diagram.edges] == [
        "solidClassic", "dashedClassic", "thickClassic", "solidNone",
    ]


def test_target_shape_and_trailing_semicolon():
    diagram = parse_mermaid("flowchart TD\nA --> B{Check}\nB --> C;")
    by_id = {n.id: n for n in diagram.nodes}
    assert by_id["B"].shape == "diamond"
    assert by_id["B"].label == "Check"
    assert "C" in by_id
    assert diagram.edges[1].target == "C"


def test_standalone_declaration_and_comments():
    diagram = parse_mermaid("flowchart TD\n%% a comment\nA([Begin])\n\nthis is noise")
    assert len(diagram.nodes) == 1
    assert diagram.nodes[0].shape == "stadium"
    assert diagram.edges == []


def test_edges_keep_duplicates():
    diagram = parse_mermaid("flowchart TD\nA --> B\nA --> B")
    assert [e.id for e in diagram.edges] == ["e1", "e2"]


def test_subgraph_membership():
    diagram = parse_mermaid(
        "flowchart TD\n"
        "subgraph S1 [Group One]\n"
        "A --> B\n"
        "B --> A\n"
        "C[Solo]\n"
        "end\n"
        "C --> A\n"
    )
    assert len(diagram.subgraphs) == 1
    group = diagram.subgraphs[0]
    assert group.id == "S1"
    assert group.label == "Group One"
    assert group.nodes == ["A", "B", "C"]


def test_subgraph_without_label_uses_id():
    diagram = parse_mermaid("flowchart TD\nsubgraph Backend\nA --> B\nend")
    assert diagram.subgraphs[0].label == "Backend"


def test_unclosed_subgraph_is_dropped():
    diagram = parse_mermaid("flowchart TD\nsubgraph S1\nA --> B")
    assert diagram.subgraphs == []
    assert len(diagram.nodes) == 2


def test_second_subgraph_abandons_open_one():
    diagram = parse_mermaid("flowchart TD\nsubgraph S1\nA\nsubgraph S2\nB[Bee]\nend")
    assert [s.id for s in diagram.subgraphs] == ["S2"]
    assert diagram.subgraphs[0].nodes == ["B"]


# ─── Sequence ────────────────────────────────────────────────────

SEQUENCE = """sequenceDiagram
    participant A as Alice
    actor B
    A->>B: Hello
    B-->>A: Hi back
    A->B: sync
    B-->A: done
"""


def test_sequence_participants():
    diagram = parse_mermaid(SEQUENCE)
    assert diagram.type == "sequence"
    assert [(p.id, p.label, p.is_actor) for p in diagram.participants] == [
        ("A", "Alice", False), ("B", "B", True),
    ]
    assert diagram.nodes == diagram.participants


def test_sequence_messages():
    diagram = parse_mermaid(SEQUENCE)
    kinds = [(m.line_kind, m.is_async) for m in diagram.messages]
    assert kinds == [("solid", True), ("dashed", True), ("solid", False), ("dashed", False)]
    assert diagram.messages[0].text == "Hello"
    assert [e.label for e in diagram.edges] == ["Hello", "Hi back", "sync", "done"]


def test_sequence_auto_creates_participants():
    diagram = parse_mermaid("sequenceDiagram\nA->>C: ping\nparticipant C as Cache")
    assert [p.id for p in diagram.participants] == ["A", "C"]
    assert diagram.participants[1].label == "Cache"


# ─── ER ──────────────────────────────────────────────────────────

def test_er_relationship():
    diagram = parse_mermaid('erDiagram\nA ||--o{ B : "has"')
    assert [e.id for e in diagram.entities] == ["A", "B"]
    assert all(e.attributes == [] for e in diagram.entities)
    rel = diagram.relationships[0]
    assert (rel.source, rel.target) == ("A", "B")
    assert rel.cardinality_start == "||"
    assert rel.cardinality_end == "o{"
    assert rel.label == "has"
    assert rel.identifying is True


def test_er_entity_block_with_keys_and_comments():
    diagram = parse_mermaid(
        "erDiagram\n"
        "CUSTOMER {\n"
        '    string name PK "full name"\n'
        "    int account_id PK, FK\n"
        "    int age\n"
        "}\n"
        "CUSTOMER ||--o{ ORDER : places\n"
    )
    customer = diagram.entities[0]
    assert [a.name for a in customer.attributes] == ["name", "account_id", "age"]
    assert customer.attributes[0].keys == ["PK"]
    assert customer.attributes[0].comment == "full name"
    assert customer.attributes[1].keys == ["PK", "FK"]
    assert diagram.entities[1].id == "ORDER"
    assert diagram.relationships[0].label == "places"


def test_er_non_identifying_relationship():
    diagram = parse_mermaid("erDiagram\nA }|..|{ B : links")
    rel = diagram.relationships[0]
    assert rel.cardinality_start == "}|"
    assert rel.cardinality_end == "|{"
    assert rel.identifying is False


def test_er_shorthand_entity():
    diagram = parse_mermaid("erDiagram\nUSER { string name int age }")
    user = diagram.entities[0]
    assert [(a.type, a.name) for a in user.attributes] == [("string", "name"), ("int", "age")]


def test_er_nodes_and_edges_alias_dialect_lists():
    diagram = parse_mermaid("erDiagram\nA ||--|{ B : has")
    assert diagram.nodes == diagram.entities
    assert diagram.edges == diagram.relationships


# ─── Mindmap ─────────────────────────────────────────────────────

MINDMAP = """mindmap
root((Central))
  [Branch]
    a1
    ::icon(fa fa-book)
  (Other)
"""


def test_mindmap_hierarchy():
    diagram = parse_mermaid(MINDMAP)
    assert diagram.type == "mindmap"
    assert diagram.direction == "LR"
    assert [n.label for n in diagram.nodes] == ["Central", "Branch", "a1", "Other"]
    assert [n.id for n in diagram.nodes] == ["node0", "node1", "node2", "node3"]
    assert [(e.source, e.target) for e in diagram.edges] == [
        ("node0", "node1"), ("node1", "node2"), ("node0", "node3"),
    ]


def test_mindmap_shapes_and_colors():
    diagram = parse_mermaid(MINDMAP)
    root, branch, leaf, other = diagram.nodes
    assert root.shape == "circle"
    assert branch.shape == "rectangle"
    assert leaf.shape == "rectangle"
    assert other.shape == "roundedRect"
    assert [n.level for n in diagram.nodes] == [0, 1, 2, 1]
    assert root.fill_color == "#f8cecc"
    assert branch.fill_color == "#dae8fc"


@pytest.mark.parametrize(
    "content, shape, label",
    [
        ("x(y)", "rectangle", "x(y)"),
        ("a((Circle))", "rectangle", "a((Circle))"),
        ("root(Round)", "rectangle", "root(Round)"),
        ("id[Box]", "rectangle", "id[Box]"),
    ],
)
def test_mindmap_prefixed_brackets_stay_plain_text(content, shape, label):
    diagram = parse_mermaid(f"mindmap\nroot((Main))\n  {content}")
    topic = diagram.nodes[1]
    assert (topic.shape, topic.label) == (shape, label)


def test_mindmap_node_without_parent_depth_is_a_root():
    diagram = parse_mermaid("mindmap\nroot\n  a\n      deep\n  b")
    deep = diagram.nodes[2]
    assert deep.label == "deep"
    assert deep.level == 3
    assert all(e.target != deep.id for e in diagram.edges)
    assert [(e.source, e.target) for e in diagram.edges] == [("node0", "node1"), ("node0", "node3")]
