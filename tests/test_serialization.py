import json

from acroflow.models import Catalog, FlowStep, Pose, Transition
from acroflow.serialization import (
    ENCODING_VERSION,
    DecodeError,
    StructuralDecodeError,
    deserialize,
    flow_preview,
    serialize,
)


def _expect_decode_error(text: str) -> StructuralDecodeError:
    try:
        deserialize(text)
    except StructuralDecodeError as exc:
        return exc
    raise AssertionError(f"Expected StructuralDecodeError for {text!r}.")


def test_round_trip_preserves_every_field(abc_catalog: Catalog) -> None:
    pose_a, pose_b, _ = abc_catalog.poses
    full_pose = Pose(
        id="full",
        name="Full",
        description="all fields",
        difficulty="advanced",
        is_starting_pose=False,
        image_url="https://img/full.png",
        base_image_url="https://img/base.png",
        flyer_image_url="https://img/flyer.png",
        created_at=1700000000000,
    )
    full_edge = Transition(
        id="t-full",
        name="Full Edge",
        from_pose_id="b",
        to_pose_id="full",
        description="described",
        created_at=1700000000001,
    )
    steps = (
        FlowStep(pose=pose_a),
        FlowStep(pose=pose_b, transition=abc_catalog.transitions[0]),
        FlowStep(pose=full_pose, transition=full_edge),
    )
    assert deserialize(serialize(steps)) == steps


def test_serialize_writes_versioned_camel_case_envelope(abc_catalog: Catalog) -> None:
    pose_a, pose_b, _ = abc_catalog.poses
    text = serialize([FlowStep(pose=pose_a), FlowStep(pose=pose_b, transition=abc_catalog.transitions[0])])
    payload = json.loads(text)
    assert payload["version"] == ENCODING_VERSION
    first, second = payload["steps"]
    assert "transition" not in first
    assert first["pose"]["isStartingPose"] is True
    assert "imageUrl" not in first["pose"]
    assert second["transition"] == {"id": "x", "name": "X", "fromPoseId": "a", "toPoseId": "b"}


def test_empty_array_decodes_to_empty_flow() -> None:
    assert deserialize("[]") == ()
    assert deserialize(serialize([])) == ()


def test_legacy_bare_array_is_accepted() -> None:
    legacy = json.dumps(
        [
            {
                "pose": {
                    "id": "p1",
                    "name": "Bird",
                    "description": "L-basing",
                    "difficulty": "beginner",
                    "isStartingPose": True,
                    "createdAt": 1712345678901,
                }
            },
            {
                "pose": {"id": "p2", "name": "Throne", "description": "", "difficulty": "beginner"},
                "transition": {
                    "id": "t1",
                    "name": "Bird to Throne",
                    "fromPoseId": "p1",
                    "toPoseId": "p2",
                    "createdAt": 1712345678902,
                },
            },
        ]
    )
    steps = deserialize(legacy)
    assert [step.pose.name for step in steps] == ["Bird", "Throne"]
    assert steps[0].transition is None
    assert steps[1].transition is not None
    assert steps[1].transition.from_pose_id == "p1"
    assert steps[0].pose.created_at == 1712345678901


def test_stale_catalog_ids_are_not_an_error() -> None:
    text = json.dumps([{"pose": {"id": "gone", "name": "Retired", "description": "", "difficulty": "beginner"}}])
    assert deserialize(text)[0].pose.id == "gone"


def test_not_json_raises_decode_error() -> None:
    _expect_decode_error("not json")


def test_empty_object_raises_decode_error() -> None:
    _expect_decode_error("{}")


def test_decode_error_is_value_error() -> None:
    assert isinstance(_expect_decode_error("not json"), ValueError)
    assert DecodeError is StructuralDecodeError


def test_deeply_nested_json_raises_decode_error() -> None:
    exc = _expect_decode_error("[" * 100000 + "]" * 100000)
    assert "nested too deeply" in str(exc)


def test_structural_mismatches_raise_decode_error() -> None:
    pose = {"id": "p", "name": "P", "description": "", "difficulty": "beginner"}
    cases = [
        "42",
        '"text"',
        "[1]",
        json.dumps([{"transition": None}]),
        json.dumps([{"pose": "p"}]),
        json.dumps([{"pose": {"id": "p"}}]),
        json.dumps([{"pose": {**pose, "id": 7}}]),
        json.dumps([{"pose": {**pose, "isStartingPose": "yes"}}]),
        json.dumps([{"pose": {**pose, "createdAt": "today"}}]),
        json.dumps([{"pose": pose, "transition": {"id": "t", "name": "T"}}]),
        json.dumps({"steps": [{"pose": pose}]}),
        json.dumps({"version": "1", "steps": []}),
        json.dumps({"version": 1, "steps": {}}),
    ]
    for text in cases:
        _expect_decode_error(text)


def test_newer_version_is_rejected() -> None:
    exc = _expect_decode_error(json.dumps({"version": ENCODING_VERSION + 1, "steps": []}))
    assert "newer than supported" in str(exc)


def test_null_transition_is_treated_as_absent() -> None:
    pose = {"id": "p", "name": "P", "description": "", "difficulty": "beginner"}
    steps = deserialize(json.dumps([{"pose": pose, "transition": None}]))
    assert steps[0].transition is None


def test_flow_preview_joins_pose_names(abc_catalog: Catalog) -> None:
    pose_a, pose_b, pose_c = abc_catalog.poses
    steps = [FlowStep(pose=pose_a), FlowStep(pose=pose_b), FlowStep(pose=pose_c)]
    assert flow_preview(steps) == "A → B → C"
    assert flow_preview([]) == ""
