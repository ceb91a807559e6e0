"""Application service for profiles, flow building, and saved flows."""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from . import __version__
from .catalog_loader import load_catalog
from .graph import FlowGraph
from .models import Catalog, Flow, FlowStep, NextOption, Pose, SavedFlow
from .serialization import StructuralDecodeError, deserialize, flow_preview, serialize
from .store import SCHEMA_VERSION, FlowStore, PoseComment, Profile
from .traversal import TraversalEngine, filter_options, remove_last_step

EXPORT_FORMAT_VERSION = 1
RANDOM_FLOW_MIN_MOVES = 1
RANDOM_FLOW_MAX_MOVES = 20
REMIX_DEFAULT_DESCRIPTION = "Remixed from public gallery"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedFlow:
    """Saved flow together with its decoded steps."""

    flow: SavedFlow
    steps: Flow


@dataclass(frozen=True)
class FlowSummary:
    """Gallery row for one saved flow."""

    flow: SavedFlow
    step_count: int
    preview: str


@dataclass(frozen=True)
class FlowTransferSummary:
    """Result of a flow export or import."""

    profile_id: int
    profile_name: str
    flow_count: int
    skipped_count: int


@dataclass(frozen=True)
class ImportedFlowRow:
    """Validated flow row from an import file."""

    name: str
    description: str | None
    steps_data: str
    created_at: str | None
    updated_at: str | None


class FlowService:
    """Coordinates catalog, traversal, and saved flows."""

    def __init__(self, db_path: Path | str, catalog: Catalog | None = None, rng: random.Random | None = None) -> None:
        """Initialize service with database path and catalog snapshot."""
        self._rng = rng
        self.refresh_catalog(catalog if catalog is not None else load_catalog())
        self.store = FlowStore(db_path)

    def refresh_catalog(self, catalog: Catalog) -> None:
        """Rebuild graph and engine from a new catalog snapshot."""
        self.catalog = catalog
        self.graph = FlowGraph.from_catalog(catalog)
        self.engine = TraversalEngine(self.graph, rng=self._rng)
        logger.debug(
            "Loaded catalog with %s poses and %s transitions", len(catalog.poses), len(catalog.transitions)
        )

    def list_profiles(self) -> list[Profile]:
        """Return all profiles."""
        return self.store.list_profiles()

    def create_profile(self, name: str) -> Profile:
        """Create profile by name."""
        return self.store.create_profile(name.strip())

    def delete_profile(self, profile_id: int) -> bool:
        """Delete one profile by id."""
        return self.store.delete_profile(profile_id)

    def list_poses(
        self,
        difficulty: str | None = None,
        favorites_only: bool = False,
        profile_id: int | None = None,
    ) -> list[Pose]:
        """Return catalog poses matching the gallery filters."""
        favorite_ids: set[str] | None = None
        if favorites_only:
            favorite_ids = self.favorite_pose_ids(profile_id) if profile_id is not None else set()
        return [
            pose
            for pose in self.graph.poses
            if (difficulty is None or pose.difficulty == difficulty)
            and (favorite_ids is None or pose.id in favorite_ids)
        ]

    def get_pose(self, pose_id: str) -> Pose:
        """Return a catalog pose or raise KeyError."""
        pose = self.graph.get_pose(pose_id)
        if pose is None:
            raise KeyError(pose_id)
        return pose

    def options_for(
        self,
        steps: Sequence[FlowStep],
        difficulty: str | None = None,
        favorites_only: bool = False,
        profile_id: int | None = None,
    ) -> list[NextOption]:
        """Return legal next moves with builder filters applied."""
        favorite_ids: set[str] | None = None
        if favorites_only:
            favorite_ids = self.favorite_pose_ids(profile_id) if profile_id is not None else set()
        return filter_options(self.engine.next_options(steps), difficulty=difficulty, favorite_ids=favorite_ids)

    def add_step(self, steps: Sequence[FlowStep], option: NextOption) -> Flow:
        """Append a chosen option after checking it is legal."""
        return self.engine.append_step(steps, option.pose, option.transition, validate=True)

    def undo_step(self, steps: Sequence[FlowStep]) -> Flow:
        """Remove the most recent step."""
        return remove_last_step(steps)

    def random_flow(self, move_count: int) -> Flow:
        """Generate a random flow of up to `move_count` moves."""
        if not (RANDOM_FLOW_MIN_MOVES <= move_count <= RANDOM_FLOW_MAX_MOVES):
            raise ValueError(
                f"Move count must be between {RANDOM_FLOW_MIN_MOVES} and {RANDOM_FLOW_MAX_MOVES}, got {move_count}."
            )
        flow = self.engine.generate_random_flow(move_count)
        logger.debug("Generated random flow with %s of %s requested moves", len(flow), move_count)
        return flow

    def save_flow(
        self,
        profile_id: int,
        steps: Sequence[FlowStep],
        name: str,
        description: str | None = None,
        is_public: bool = False,
    ) -> SavedFlow:
        """Persist a new flow owned by a profile."""
        if self.store.get_profile(profile_id) is None:
            raise KeyError(profile_id)
        clean_name, clean_description = _validate_flow_fields(steps, name, description)
        return self.store.create_flow(profile_id, clean_name, clean_description, is_public, serialize(steps))

    def update_flow(
        self,
        profile_id: int,
        flow_id: str,
        steps: Sequence[FlowStep],
        name: str,
        description: str | None = None,
        is_public: bool = False,
    ) -> SavedFlow:
        """Replace an owned flow's name, description, visibility, and steps."""
        self._owned_flow(profile_id, flow_id)
        clean_name, clean_description = _validate_flow_fields(steps, name, description)
        updated = self.store.update_flow(flow_id, clean_name, clean_description, is_public, serialize(steps))
        if updated is None:
            raise KeyError(flow_id)
        return updated

    def delete_flow(self, profile_id: int, flow_id: str) -> bool:
        """Delete an owned flow."""
        self._owned_flow(profile_id, flow_id)
        return self.store.delete_flow(flow_id)

    def toggle_visibility(self, profile_id: int, flow_id: str) -> SavedFlow:
        """Flip an owned flow between public and private."""
        flow = self._owned_flow(profile_id, flow_id)
        updated = self.store.set_flow_visibility(flow_id, not flow.is_public)
        if updated is None:
            raise KeyError(flow_id)
        return updated

    def open_flow(self, flow_id: str, viewer_id: int | None = None) -> LoadedFlow:
        """Load a flow for viewing: public to anyone, private to its owner."""
        flow = self.store.get_flow(flow_id)
        if flow is None:
            raise KeyError(flow_id)
        if not flow.is_public and flow.owner_id != viewer_id:
            raise PermissionError("This flow is private and cannot be viewed.")
        return LoadedFlow(flow=flow, steps=deserialize(flow.steps_data))

    def load_shared_flow(self, flow_id: str) -> LoadedFlow:
        """Load a flow from a share link; only public flows can be shared."""
        flow = self.store.get_flow(flow_id)
        if flow is None:
            raise KeyError(flow_id)
        if not flow.is_public:
            raise PermissionError("This flow is private and cannot be shared.")
        return LoadedFlow(flow=flow, steps=deserialize(flow.steps_data))

    def remix_flow(self, profile_id: int, flow_id: str) -> SavedFlow:
        """Copy a viewable flow into the profile's private flows."""
        if self.store.get_profile(profile_id) is None:
            raise KeyError(profile_id)
        source = self.open_flow(flow_id, viewer_id=profile_id)
        description = (
            f"{source.flow.description} (remixed)" if source.flow.description else REMIX_DEFAULT_DESCRIPTION
        )
        return self.store.create_flow(
            profile_id,
            f"Remix of {source.flow.name}",
            description,
            False,
            serialize(source.steps),
        )

    def list_my_flows(self, profile_id: int) -> list[SavedFlow]:
        """Return flows owned by a profile, newest first."""
        return self.store.list_flows(owner_id=profile_id)

    def list_public_flows(self) -> list[SavedFlow]:
        """Return public flows, newest first."""
        return self.store.list_flows(include_public=True)

    def summarize_flows(self, flows: Sequence[SavedFlow]) -> list[FlowSummary]:
        """Build gallery rows, skipping flows whose data cannot be decoded."""
        summaries: list[FlowSummary] = []
        for flow in flows:
            try:
                steps = deserialize(flow.steps_data)
            except StructuralDecodeError as exc:
                logger.warning("Skipping flow %s with invalid data: %s", flow.id, exc)
                continue
            summaries.append(FlowSummary(flow=flow, step_count=len(steps), preview=flow_preview(steps)))
        return summaries

    def toggle_favorite(self, profile_id: int, pose_id: str) -> bool:
        """Flip favourite state for a pose; returns the new state."""
        if pose_id in self.store.favorite_pose_ids(profile_id):
            self.store.remove_favorite(profile_id, pose_id)
            return False
        self.store.add_favorite(profile_id, pose_id)
        return True

    def favorite_pose_ids(self, profile_id: int) -> set[str]:
        """Return favourite pose ids for a profile."""
        return self.store.favorite_pose_ids(profile_id)

    def add_comment(self, profile_id: int, pose_id: str, content: str) -> PoseComment:
        """Post a comment on a catalog pose."""
        if self.store.get_profile(profile_id) is None:
            raise KeyError(profile_id)
        self.get_pose(pose_id)
        text = content.strip()
        if not text:
            raise ValueError("Comment cannot be empty.")
        return self.store.add_comment(profile_id, pose_id, text)

    def list_comments(self, pose_id: str) -> list[PoseComment]:
        """Return comments on a pose, newest first."""
        return self.store.list_comments(pose_id)

    def export_flows(self, profile_id: int, export_path: Path | str) -> FlowTransferSummary:
        """Export a profile's flows to a JSON file."""
        profile = self.store.get_profile(profile_id)
        if profile is None:
            raise KeyError(profile_id)

        flows = self.store.list_flows(owner_id=profile_id)
        payload = {
            "format_version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "source": {
                "app_version": __version__,
                "schema_version": SCHEMA_VERSION,
            },
            "profile": {
                "name": profile.name,
            },
            "flows": [
                {
                    "name": flow.name,
                    "description": flow.description,
                    "is_public": flow.is_public,
                    "steps_data": flow.steps_data,
                    "created_at": flow.created_at,
                    "updated_at": flow.updated_at,
                }
                for flow in flows
            ],
        }

        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return FlowTransferSummary(
            profile_id=profile.id,
            profile_name=profile.name,
            flow_count=len(flows),
            skipped_count=0,
        )

    def import_flows(self, profile_id: int, import_path: Path | str) -> FlowTransferSummary:
        """Import flows from an export file into a profile as private copies."""
        profile = self.store.get_profile(profile_id)
        if profile is None:
            raise KeyError(profile_id)

        path = Path(import_path)
        raw_obj: object = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw_obj, dict):
            raise ValueError("Import file root must be a JSON object.")
        raw = cast(dict[str, object], raw_obj)

        format_version = _coerce_int(raw.get("format_version", 0))
        if format_version is None:
            raise ValueError("Import file has invalid format_version.")
        if format_version > EXPORT_FORMAT_VERSION:
            raise ValueError(
                f"Import file format version {format_version} is newer than supported {EXPORT_FORMAT_VERSION}."
            )

        rows, skipped = _normalize_flow_rows(raw.get("flows"))
        for row in rows:
            self.store.create_flow(
                profile_id,
                row.name,
                row.description,
                False,
                row.steps_data,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
        if skipped:
            logger.warning("Skipped %s malformed flows while importing %s", skipped, path)
        return FlowTransferSummary(
            profile_id=profile.id,
            profile_name=profile.name,
            flow_count=len(rows),
            skipped_count=skipped,
        )

    def _owned_flow(self, profile_id: int, flow_id: str) -> SavedFlow:
        """Return a flow the profile owns, or raise."""
        flow = self.store.get_flow(flow_id)
        if flow is None:
            raise KeyError(flow_id)
        if flow.owner_id != profile_id:
            raise PermissionError("Only the owner can change this flow.")
        return flow

    def close(self) -> None:
        """Close resources."""
        self.store.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass


def _validate_flow_fields(
    steps: Sequence[FlowStep], name: str, description: str | None
) -> tuple[str, str | None]:
    """Return cleaned name/description for a savable flow."""
    clean_name = name.strip()
    if not clean_name:
        raise ValueError("Flow name is required.")
    if not steps:
        raise ValueError("Flow needs at least one step.")
    clean_description = (description or "").strip() or None
    return clean_name, clean_description


def _normalize_flow_rows(raw: object) -> tuple[list[ImportedFlowRow], int]:
    """Normalize flow rows from an import payload; returns rows and skipped count."""
    if not isinstance(raw, list):
        return [], 0
    rows: list[ImportedFlowRow] = []
    skipped = 0
    for item in cast(list[object], raw):
        if not isinstance(item, dict):
            skipped += 1
            continue
        row = cast(dict[str, object], item)
        name: object = row.get("name")
        steps_data: object = row.get("steps_data")
        if not isinstance(name, str) or not name.strip() or not isinstance(steps_data, str):
            skipped += 1
            continue
        try:
            steps = deserialize(steps_data)
        except StructuralDecodeError:
            skipped += 1
            continue
        if not steps:
            skipped += 1
            continue
        description: object = row.get("description")
        created_at: object = row.get("created_at")
        updated_at: object = row.get("updated_at")
        rows.append(
            ImportedFlowRow(
                name=name.strip(),
                description=(description.strip() or None) if isinstance(description, str) else None,
                steps_data=serialize(steps),
                created_at=created_at if isinstance(created_at, str) and created_at else None,
                updated_at=updated_at if isinstance(updated_at, str) and updated_at else None,
            )
        )
    return rows, skipped


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce value to int for import normalization."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default
