"""Load the pose/transition catalog from bundled or on-disk JSON."""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import cast

from .models import DIFFICULTIES, Catalog, Pose, Transition
from .serialization import pose_from_record, transition_from_record

CONTENT_PACKAGE = "acroflow.content"
CATALOG_RESOURCE = "catalog.json"


def _pose_from_dict(raw: object) -> Pose:
    """Build a catalog pose and check its difficulty tier."""
    pose = pose_from_record(raw, "catalog pose")
    if not pose.id.strip() or not pose.name.strip():
        raise ValueError(f"Pose '{pose.id or '<unknown>'}' needs a non-empty id and name.")
    if pose.difficulty not in DIFFICULTIES:
        raise ValueError(f"Pose '{pose.id}' has unknown difficulty '{pose.difficulty}'.")
    return pose


def _transition_from_dict(raw: object) -> Transition:
    """Build a catalog transition."""
    transition = transition_from_record(raw, "catalog transition")
    if not transition.id.strip() or not transition.name.strip():
        raise ValueError(f"Transition '{transition.id or '<unknown>'}' needs a non-empty id and name.")
    return transition


def catalog_from_dict(raw: object) -> Catalog:
    """Build a catalog from parsed JSON with `poses` and `transitions` arrays."""
    if not isinstance(raw, dict):
        raise ValueError("Catalog root must be a JSON object.")
    root = cast(dict[str, object], raw)
    raw_poses = root.get("poses", [])
    raw_transitions = root.get("transitions", [])
    if not isinstance(raw_poses, list) or not isinstance(raw_transitions, list):
        raise ValueError("Catalog 'poses' and 'transitions' must be arrays.")

    poses = [_pose_from_dict(item) for item in cast(list[object], raw_poses)]
    transitions = [_transition_from_dict(item) for item in cast(list[object], raw_transitions)]
    _validate_unique_ids("pose", [pose.id for pose in poses])
    _validate_unique_ids("transition", [transition.id for transition in transitions])
    return Catalog(poses=tuple(poses), transitions=tuple(transitions))


def load_catalog() -> Catalog:
    """Load the bundled catalog."""
    entry = resources.files(CONTENT_PACKAGE).joinpath(CATALOG_RESOURCE)
    return catalog_from_dict(json.loads(entry.read_text(encoding="utf-8-sig")))


def load_catalog_from_file(path: Path | str) -> Catalog:
    """Load a catalog from a JSON file for tests/tools."""
    text = Path(path).read_text(encoding="utf-8-sig")
    return catalog_from_dict(json.loads(text))


def _validate_unique_ids(kind: str, ids: list[str]) -> None:
    """Reject catalogs that reuse an identifier."""
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise ValueError(f"Duplicate {kind} id: {item_id}")
        seen.add(item_id)
