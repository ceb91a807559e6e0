"""Legal continuations, step editing, and random walks over a flow graph."""

from __future__ import annotations

import random
from collections.abc import Collection, Sequence

from .graph import FlowGraph
from .models import Flow, FlowStep, NextOption, Pose, Transition


class IllegalTransitionError(ValueError):
    """Appended step is not a legal continuation of the flow."""


class TraversalEngine:
    """Compute next moves and random flows for one graph snapshot."""

    def __init__(self, graph: FlowGraph, rng: random.Random | None = None) -> None:
        """Initialize engine with a graph and optional random source."""
        self.graph = graph
        self._rng = rng if rng is not None else random.Random()

    def next_options(self, flow: Sequence[FlowStep]) -> list[NextOption]:
        """Return legal continuations in edge order.

        An empty flow can start at any starting pose. Otherwise every
        outgoing edge of the last pose whose destination resolves becomes one
        option; two edges to the same pose give two options.
        """
        if not flow:
            return [NextOption(pose=pose) for pose in self.graph.starting_poses()]

        last_pose_id = flow[-1].pose.id
        options: list[NextOption] = []
        for transition in self.graph.outgoing_edges(last_pose_id):
            pose = self.graph.get_pose(transition.to_pose_id)
            if pose is None:
                continue
            options.append(NextOption(pose=pose, transition=transition))
        return options

    def is_legal(self, flow: Sequence[FlowStep], pose: Pose, transition: Transition | None = None) -> bool:
        """Return whether a pose/transition pair is among the next options."""
        transition_id = transition.id if transition is not None else None
        for option in self.next_options(flow):
            option_transition_id = option.transition.id if option.transition is not None else None
            if option.pose.id == pose.id and option_transition_id == transition_id:
                return True
        return False

    def append_step(
        self,
        flow: Sequence[FlowStep],
        pose: Pose,
        transition: Transition | None = None,
        *,
        validate: bool = False,
    ) -> Flow:
        """Return a new flow with one step appended."""
        if validate and not self.is_legal(flow, pose, transition):
            via = f" via '{transition.name}'" if transition is not None else ""
            raise IllegalTransitionError(f"Pose '{pose.name}'{via} is not a legal next step.")
        return append_step(flow, pose, transition)

    def generate_random_flow(self, max_length: int) -> Flow:
        """Random walk of at most `max_length` steps.

        Stops early at a pose with no continuation. Returns an empty flow when
        the graph has no starting poses.
        """
        if isinstance(max_length, bool) or not isinstance(max_length, int) or max_length < 1:
            raise ValueError(f"max_length must be a positive integer, got {max_length!r}.")

        flow: Flow = ()
        while len(flow) < max_length:
            options = self.next_options(flow)
            if not options:
                break
            choice = self._rng.choice(options)
            flow = append_step(flow, choice.pose, choice.transition)
        return flow


def append_step(flow: Sequence[FlowStep], pose: Pose, transition: Transition | None = None) -> Flow:
    """Return a new flow with one step appended, without validation."""
    return (*flow, FlowStep(pose=pose, transition=transition))


def remove_last_step(flow: Sequence[FlowStep]) -> Flow:
    """Drop the last step; an empty flow stays empty."""
    return tuple(flow[:-1])


def clear_flow(flow: Sequence[FlowStep]) -> Flow:
    """Return an empty flow."""
    return ()


def filter_options(
    options: Sequence[NextOption],
    difficulty: str | None = None,
    favorite_ids: Collection[str] | None = None,
) -> list[NextOption]:
    """Return options matching every active filter, in input order."""
    selected: list[NextOption] = []
    for option in options:
        if difficulty is not None and option.pose.difficulty != difficulty:
            continue
        if favorite_ids is not None and option.pose.id not in favorite_ids:
            continue
        selected.append(option)
    return selected
