import json
from pathlib import Path

from acroflow.catalog_loader import catalog_from_dict, load_catalog_from_file


def _pose(pose_id: str, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {"id": pose_id, "name": pose_id.title(), "difficulty": "beginner"}
    payload.update(extra)
    return payload


def test_load_catalog_from_file(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    payload = {
        "poses": [_pose("base", isStartingPose=True, description="Flat on back"), _pose("top")],
        "transitions": [{"id": "up", "name": "Up", "fromPoseId": "base", "toPoseId": "top"}],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")

    catalog = load_catalog_from_file(path)
    assert [pose.id for pose in catalog.poses] == ["base", "top"]
    assert catalog.poses[0].is_starting_pose is True
    assert catalog.poses[0].description == "Flat on back"
    assert catalog.poses[1].description == ""
    assert catalog.transitions[0].from_pose_id == "base"


def test_missing_arrays_give_empty_catalog() -> None:
    catalog = catalog_from_dict({})
    assert catalog.poses == ()
    assert catalog.transitions == ()


def test_root_must_be_object() -> None:
    try:
        catalog_from_dict([])
        raise AssertionError("Expected ValueError for non-object root.")
    except ValueError as exc:
        assert "JSON object" in str(exc)


def test_arrays_must_be_lists() -> None:
    try:
        catalog_from_dict({"poses": {}, "transitions": []})
        raise AssertionError("Expected ValueError for non-array poses.")
    except ValueError as exc:
        assert "must be arrays" in str(exc)


def test_duplicate_pose_id_raises() -> None:
    try:
        catalog_from_dict({"poses": [_pose("same"), _pose("same")], "transitions": []})
        raise AssertionError("Expected ValueError for duplicate pose ids.")
    except ValueError as exc:
        assert "Duplicate pose id" in str(exc)


def test_duplicate_transition_id_raises() -> None:
    edge = {"id": "e", "name": "E", "fromPoseId": "a", "toPoseId": "b"}
    try:
        catalog_from_dict({"poses": [_pose("a"), _pose("b")], "transitions": [edge, dict(edge)]})
        raise AssertionError("Expected ValueError for duplicate transition ids.")
    except ValueError as exc:
        assert "Duplicate transition id" in str(exc)


def test_unknown_difficulty_raises() -> None:
    try:
        catalog_from_dict({"poses": [_pose("p", difficulty="expert")]})
        raise AssertionError("Expected ValueError for unknown difficulty.")
    except ValueError as exc:
        assert "unknown difficulty" in str(exc)


def test_blank_name_raises() -> None:
    try:
        catalog_from_dict({"poses": [_pose("p", name="  ")]})
        raise AssertionError("Expected ValueError for blank pose name.")
    except ValueError as exc:
        assert "non-empty id and name" in str(exc)


def test_missing_transition_endpoint_raises() -> None:
    try:
        catalog_from_dict({"poses": [_pose("a")], "transitions": [{"id": "e", "name": "E", "fromPoseId": "a"}]})
        raise AssertionError("Expected ValueError for missing toPoseId.")
    except ValueError:
        pass


def test_dangling_transition_is_kept() -> None:
    catalog = catalog_from_dict(
        {
            "poses": [_pose("a", isStartingPose=True)],
            "transitions": [{"id": "e", "name": "E", "fromPoseId": "a", "toPoseId": "ghost"}],
        }
    )
    assert catalog.transitions[0].to_pose_id == "ghost"


def test_utf8_bom_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "bom.json"
    path.write_text(json.dumps({"poses": [_pose("a")]}), encoding="utf-8-sig")
    assert load_catalog_from_file(path).poses[0].id == "a"
