"""Static pose/transition graph built from a catalog snapshot."""

from __future__ import annotations

from collections.abc import Iterable

from .models import Catalog, Pose, Transition


class FlowGraph:
    """Read-only view of poses and directed transitions.

    The graph never fails to build: transitions that point at unknown poses
    are kept, they simply resolve to no option during traversal. Callers
    rebuild the graph when the upstream catalog changes.
    """

    def __init__(self, poses: Iterable[Pose], transitions: Iterable[Transition]) -> None:
        """Index poses by id and transitions by source pose."""
        self._poses: dict[str, Pose] = {}
        for pose in poses:
            self._poses.setdefault(pose.id, pose)
        self._transitions: tuple[Transition, ...] = tuple(transitions)
        self._transitions_by_id: dict[str, Transition] = {}
        self._outgoing: dict[str, list[Transition]] = {}
        for transition in self._transitions:
            self._transitions_by_id.setdefault(transition.id, transition)
            self._outgoing.setdefault(transition.from_pose_id, []).append(transition)

    @classmethod
    def from_catalog(cls, catalog: Catalog) -> FlowGraph:
        """Build a graph from a loaded catalog."""
        return cls(catalog.poses, catalog.transitions)

    @property
    def poses(self) -> tuple[Pose, ...]:
        """All poses in catalog order."""
        return tuple(self._poses.values())

    @property
    def transitions(self) -> tuple[Transition, ...]:
        """All transitions in catalog order."""
        return self._transitions

    def get_pose(self, pose_id: str) -> Pose | None:
        """Get pose by id."""
        return self._poses.get(pose_id)

    def get_transition(self, transition_id: str) -> Transition | None:
        """Get transition by id."""
        return self._transitions_by_id.get(transition_id)

    def starting_poses(self) -> list[Pose]:
        """Return poses flagged as legal flow entry points."""
        return [pose for pose in self._poses.values() if pose.is_starting_pose is True]

    def outgoing_edges(self, pose_id: str) -> list[Transition]:
        """Return transitions leaving a pose; empty for dead ends and unknown ids."""
        return list(self._outgoing.get(pose_id, ()))
