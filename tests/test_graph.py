from acroflow.graph import FlowGraph
from acroflow.models import Catalog, Pose, Transition


def test_starting_poses_in_catalog_order() -> None:
    poses = [
        Pose(id="p1", name="One", description="", difficulty="beginner", is_starting_pose=True),
        Pose(id="p2", name="Two", description="", difficulty="beginner"),
        Pose(id="p3", name="Three", description="", difficulty="beginner", is_starting_pose=True),
        Pose(id="p4", name="Four", description="", difficulty="beginner", is_starting_pose=False),
    ]
    graph = FlowGraph(poses, [])
    assert [pose.id for pose in graph.starting_poses()] == ["p1", "p3"]


def test_outgoing_edges_for_known_dead_end_and_unknown(abc_catalog: Catalog) -> None:
    graph = FlowGraph.from_catalog(abc_catalog)
    assert [edge.name for edge in graph.outgoing_edges("a")] == ["X"]
    assert graph.outgoing_edges("c") == []
    assert graph.outgoing_edges("missing") == []


def test_outgoing_edges_keep_edge_order() -> None:
    poses = [Pose(id=pid, name=pid, description="", difficulty="beginner") for pid in ("s", "t", "u")]
    edges = [
        Transition(id="e2", name="second", from_pose_id="s", to_pose_id="u"),
        Transition(id="e1", name="first", from_pose_id="s", to_pose_id="t"),
    ]
    graph = FlowGraph(poses, edges)
    assert [edge.id for edge in graph.outgoing_edges("s")] == ["e2", "e1"]


def test_dangling_references_do_not_break_construction() -> None:
    poses = [Pose(id="p", name="P", description="", difficulty="beginner", is_starting_pose=True)]
    edges = [
        Transition(id="e1", name="to nowhere", from_pose_id="p", to_pose_id="ghost"),
        Transition(id="e2", name="from nowhere", from_pose_id="ghost", to_pose_id="p"),
    ]
    graph = FlowGraph(poses, edges)
    assert len(graph.transitions) == 2
    assert graph.get_pose("ghost") is None
    assert [edge.id for edge in graph.outgoing_edges("p")] == ["e1"]


def test_duplicate_pose_id_keeps_first() -> None:
    first = Pose(id="p", name="First", description="", difficulty="beginner")
    second = Pose(id="p", name="Second", description="", difficulty="advanced")
    graph = FlowGraph([first, second], [])
    assert graph.poses == (first,)


def test_lookups(abc_catalog: Catalog) -> None:
    graph = FlowGraph.from_catalog(abc_catalog)
    assert graph.get_pose("b") is not None
    assert graph.get_transition("y") is not None
    assert graph.get_transition("missing") is None
    assert graph.get_pose("missing") is None
