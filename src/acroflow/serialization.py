"""Encode flows to the persisted JSON text form and decode them back.

Persisted flows are snapshots: every step carries a full copy of its pose and
transition, so a stored flow stays displayable after the catalog changes.
Field names follow the persisted camelCase schema.

Two encodings are accepted on decode:

- version 1 envelope: ``{"version": 1, "steps": [...]}`` (what ``serialize``
  writes)
- legacy bare array: ``[{"pose": {...}, "transition": {...}}, ...]`` written
  before the envelope existed
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import cast

from .models import Flow, FlowStep, Pose, Transition

ENCODING_VERSION = 1


class StructuralDecodeError(ValueError):
    """Persisted flow text is not parseable or has the wrong shape."""


DecodeError = StructuralDecodeError


def serialize(steps: Iterable[FlowStep]) -> str:
    """Encode steps as versioned JSON text."""
    payload = {
        "version": ENCODING_VERSION,
        "steps": [step_to_record(step) for step in steps],
    }
    return json.dumps(payload, ensure_ascii=False)


def deserialize(text: str) -> Flow:
    """Decode persisted JSON text into an ordered tuple of steps."""
    try:
        raw: object = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise StructuralDecodeError(f"Flow data is not valid JSON: {exc}") from exc
    except RecursionError as exc:
        raise StructuralDecodeError("Flow data is nested too deeply.") from exc

    if isinstance(raw, list):
        items = cast(list[object], raw)
    elif isinstance(raw, dict):
        items = _envelope_steps(cast(dict[str, object], raw))
    else:
        raise StructuralDecodeError("Flow data root must be a JSON array or object.")

    return tuple(step_from_record(item, index) for index, item in enumerate(items))


def flow_preview(steps: Iterable[FlowStep], separator: str = " → ") -> str:
    """Return a one-line summary of pose names."""
    return separator.join(step.pose.name for step in steps)


def _envelope_steps(raw: dict[str, object]) -> list[object]:
    """Validate the versioned envelope and return its step list."""
    if "version" not in raw:
        if "steps" not in raw:
            raise StructuralDecodeError("Flow data object has no steps; missing required pose data.")
        raise StructuralDecodeError("Flow data envelope is missing its version.")
    version = raw["version"]
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise StructuralDecodeError(f"Flow data has invalid version: {version!r}")
    if version > ENCODING_VERSION:
        raise StructuralDecodeError(
            f"Flow data version {version} is newer than supported {ENCODING_VERSION}."
        )
    steps = raw.get("steps")
    if not isinstance(steps, list):
        raise StructuralDecodeError("Flow data envelope 'steps' must be an array.")
    return cast(list[object], steps)


def step_to_record(step: FlowStep) -> dict[str, object]:
    """Convert one step to its persisted mapping."""
    record: dict[str, object] = {"pose": pose_to_record(step.pose)}
    if step.transition is not None:
        record["transition"] = transition_to_record(step.transition)
    return record


def step_from_record(raw: object, index: int = 0) -> FlowStep:
    """Build one step from its persisted mapping."""
    if not isinstance(raw, dict):
        raise StructuralDecodeError(f"Step {index} must be a JSON object.")
    record = cast(dict[str, object], raw)
    if "pose" not in record:
        raise StructuralDecodeError(f"Step {index} is missing required field 'pose'.")
    pose = pose_from_record(record["pose"], f"step {index} pose")
    transition_raw = record.get("transition")
    transition = None
    if transition_raw is not None:
        transition = transition_from_record(transition_raw, f"step {index} transition")
    return FlowStep(pose=pose, transition=transition)


def pose_to_record(pose: Pose) -> dict[str, object]:
    """Convert a pose to persisted camelCase fields, omitting unset optionals."""
    record: dict[str, object] = {
        "id": pose.id,
        "name": pose.name,
        "description": pose.description,
        "difficulty": pose.difficulty,
    }
    optional: dict[str, object | None] = {
        "isStartingPose": pose.is_starting_pose,
        "imageUrl": pose.image_url,
        "baseImageUrl": pose.base_image_url,
        "flyerImageUrl": pose.flyer_image_url,
        "createdAt": pose.created_at,
    }
    record.update({key: value for key, value in optional.items() if value is not None})
    return record


def pose_from_record(raw: object, where: str = "pose") -> Pose:
    """Build a pose from persisted fields."""
    if not isinstance(raw, dict):
        raise StructuralDecodeError(f"{where} must be a JSON object.")
    record = cast(dict[str, object], raw)
    return Pose(
        id=_required_str(record, "id", where),
        name=_required_str(record, "name", where),
        description=_optional_str(record, "description", where) or "",
        difficulty=_required_str(record, "difficulty", where),
        is_starting_pose=_optional_bool(record, "isStartingPose", where),
        image_url=_optional_str(record, "imageUrl", where),
        base_image_url=_optional_str(record, "baseImageUrl", where),
        flyer_image_url=_optional_str(record, "flyerImageUrl", where),
        created_at=_optional_int(record, "createdAt", where),
    )


def transition_to_record(transition: Transition) -> dict[str, object]:
    """Convert a transition to persisted camelCase fields."""
    record: dict[str, object] = {
        "id": transition.id,
        "name": transition.name,
        "fromPoseId": transition.from_pose_id,
        "toPoseId": transition.to_pose_id,
    }
    if transition.description is not None:
        record["description"] = transition.description
    if transition.created_at is not None:
        record["createdAt"] = transition.created_at
    return record


def transition_from_record(raw: object, where: str = "transition") -> Transition:
    """Build a transition from persisted fields."""
    if not isinstance(raw, dict):
        raise StructuralDecodeError(f"{where} must be a JSON object.")
    record = cast(dict[str, object], raw)
    return Transition(
        id=_required_str(record, "id", where),
        name=_required_str(record, "name", where),
        from_pose_id=_required_str(record, "fromPoseId", where),
        to_pose_id=_required_str(record, "toPoseId", where),
        description=_optional_str(record, "description", where),
        created_at=_optional_int(record, "createdAt", where),
    )


def _required_str(record: dict[str, object], key: str, where: str) -> str:
    value = record.get(key)
    if not isinstance(value, str):
        raise StructuralDecodeError(f"{where} field '{key}' must be a string.")
    return value


def _optional_str(record: dict[str, object], key: str, where: str) -> str | None:
    value = record.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise StructuralDecodeError(f"{where} field '{key}' must be a string.")
    return value


def _optional_bool(record: dict[str, object], key: str, where: str) -> bool | None:
    value = record.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise StructuralDecodeError(f"{where} field '{key}' must be a boolean.")
    return value


def _optional_int(record: dict[str, object], key: str, where: str) -> int | None:
    value = record.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise StructuralDecodeError(f"{where} field '{key}' must be a number.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise StructuralDecodeError(f"{where} field '{key}' must be an integer timestamp.")
