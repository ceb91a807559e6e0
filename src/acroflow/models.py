"""Core domain models for poses, transitions, and authored flows."""

from __future__ import annotations

from dataclasses import dataclass

DIFFICULTIES: tuple[str, ...] = ("beginner", "intermediate", "advanced")


@dataclass(frozen=True)
class Pose:
    """One node of the flow graph: a named body position."""

    id: str
    name: str
    description: str
    difficulty: str
    is_starting_pose: bool | None = None
    image_url: str | None = None
    base_image_url: str | None = None
    flyer_image_url: str | None = None
    created_at: int | None = None


@dataclass(frozen=True)
class Transition:
    """Named directed edge between two poses."""

    id: str
    name: str
    from_pose_id: str
    to_pose_id: str
    description: str | None = None
    created_at: int | None = None


@dataclass(frozen=True)
class FlowStep:
    """Snapshot of the pose at one step and the transition that reached it."""

    pose: Pose
    transition: Transition | None = None


@dataclass(frozen=True)
class NextOption:
    """Legal continuation of a flow."""

    pose: Pose
    transition: Transition | None = None


Flow = tuple[FlowStep, ...]


@dataclass(frozen=True)
class Catalog:
    """Full in-memory snapshot of poses and transitions."""

    poses: tuple[Pose, ...]
    transitions: tuple[Transition, ...]


@dataclass(frozen=True)
class SavedFlow:
    """Persisted flow record."""

    id: str
    name: str
    description: str | None
    is_public: bool
    owner_id: int
    steps_data: str
    created_at: str
    updated_at: str
