"""CLI entrypoint for the acroyoga flow builder."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable, Sequence

from .catalog_loader import load_catalog_from_file
from .config import configure_logging, load_config
from .models import DIFFICULTIES, Flow, FlowStep, Pose, SavedFlow
from .player import FlowPlayer
from .serialization import StructuralDecodeError, flow_preview
from .service import RANDOM_FLOW_MAX_MOVES, RANDOM_FLOW_MIN_MOVES, FlowService, LoadedFlow
from .traversal import IllegalTransitionError

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}
DEFAULT_RANDOM_MOVES = 5

logger = logging.getLogger(__name__)


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service() -> FlowService:
    """Create app service from environment configuration."""
    config = load_config()
    catalog = load_catalog_from_file(config.catalog_path) if config.catalog_path is not None else None
    return FlowService(db_path=config.db_path, catalog=catalog)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="acroflow", description="Build and share acroyoga flows")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "view"])
    parser.add_argument("flow_id", nargs="?", help="shared flow id for the view command")
    parser.add_argument("--log-level", default=None, help="override ACROFLOW_LOG_LEVEL")
    args = parser.parse_args(argv)
    configure_logging(args.log_level or load_config().log_level)
    if args.command == "view":
        if not args.flow_id:
            parser.error("view requires a flow id")
        return view_shared(args.flow_id)
    return play_shell()


def view_shared(flow_id: str, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Open a shared flow by id without selecting a profile."""
    service = _service()
    try:
        loaded = _load_shared(service, flow_id, print_fn)
        if loaded is None:
            return 1
        try:
            _play_flow(loaded, input_fn, print_fn)
        except QuitApp:
            pass
        return 0
    finally:
        service.close()


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run persistent menu-driven shell."""
    service = _service()
    try:
        selected = _select_profile(service, input_fn, print_fn)
        if selected is None:
            return 0
        profile_id, profile_name = selected
        try:
            while True:
                print_fn("\n=== Acroyoga Flows ===")
                print_fn(f"Profile: {profile_name}")
                print_fn("1) Build a flow")
                print_fn("2) Random flow")
                print_fn("3) My flows")
                print_fn("4) Public flows")
                print_fn("5) Poses")
                print_fn("6) Open shared flow")
                print_fn("b) Back")
                print_fn("q) Quit")
                choice = input_fn("Choose: ").strip().lower()

                if choice == "1":
                    _build_flow(service, profile_id, input_fn, print_fn)
                elif choice == "2":
                    _random_flow_flow(service, profile_id, input_fn, print_fn)
                elif choice == "3":
                    _my_flows_flow(service, profile_id, input_fn, print_fn)
                elif choice == "4":
                    _public_flows_flow(service, profile_id, input_fn, print_fn)
                elif choice == "5":
                    _poses_flow(service, profile_id, input_fn, print_fn)
                elif choice == "6":
                    _open_shared_flow(service, input_fn, print_fn)
                elif choice in MENU_BACK_COMMANDS:
                    switched = _select_profile(service, input_fn, print_fn)
                    if switched is None:
                        return 0
                    profile_id, profile_name = switched
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
        except QuitApp:
            return 0
    finally:
        service.close()


def _select_profile(service: FlowService, input_fn: InputFn, print_fn: PrintFn) -> tuple[int, str] | None:
    """Select existing profile or create new one."""
    while True:
        profiles = service.list_profiles()
        print_fn("\n=== Profiles ===")
        if profiles:
            for idx, profile in enumerate(profiles, start=1):
                print_fn(f"{idx}) {profile.name}")
        else:
            print_fn("No profiles yet.")
        print_fn("n) New profile")
        print_fn("d) Delete profile")
        print_fn("q) Quit")

        choice = input_fn("Select profile: ").strip().lower()
        if choice in MENU_QUIT_COMMANDS:
            return None
        if choice == "n":
            name = input_fn("New profile name: ").strip()
            if not name:
                print_fn("Profile name is required.")
                continue
            try:
                created = service.create_profile(name)
            except Exception:
                logger.debug("Could not create profile %r", name, exc_info=True)
                print_fn("Could not create profile (name may already exist).")
                continue
            return (created.id, created.name)
        if choice == "d":
            _delete_profile_flow(service, input_fn, print_fn)
            continue

        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(profiles):
                selected = profiles[index]
                return (selected.id, selected.name)

        print_fn("Invalid profile selection.")


def _delete_profile_flow(service: FlowService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Delete a profile with explicit confirmation safeguard."""
    profiles = service.list_profiles()
    if not profiles:
        print_fn("No profiles available to delete.")
        return

    print_fn("\nDelete profile")
    for idx, profile in enumerate(profiles, start=1):
        print_fn(f"{idx}) {profile.name}")
    print_fn("b) Back")
    choice = input_fn("Choose profile to delete: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    index = _parse_index(choice, len(profiles))
    if index is None:
        print_fn("Invalid choice.")
        return

    target = profiles[index]
    print_fn(f"WARNING: This permanently deletes profile '{target.name}', its flows and favourites.")
    confirm = input_fn("Type YES to confirm deletion: ").strip()
    if confirm != "YES":
        print_fn("Deletion cancelled.")
        return
    if service.delete_profile(target.id):
        print_fn(f"Deleted profile '{target.name}'.")
    else:
        print_fn("Profile was not found.")


def _print_steps(steps: Sequence[FlowStep], print_fn: PrintFn) -> None:
    """Print a numbered flow with transition names."""
    if not steps:
        print_fn("Add your first move or load a flow to get started.")
        return
    for idx, step in enumerate(steps, start=1):
        via = f" (via {step.transition.name})" if step.transition is not None else ""
        print_fn(f"{idx:>2}. {step.pose.name}{via}")


def _build_flow(
    service: FlowService,
    profile_id: int,
    input_fn: InputFn,
    print_fn: PrintFn,
    steps: Flow = (),
    editing: SavedFlow | None = None,
) -> None:
    """Interactive builder: only legal next moves are offered."""
    difficulty: str | None = None
    favorites_only = False
    while True:
        title = f"Editing: {editing.name}" if editing is not None else "Build Flow"
        print_fn(f"\n=== {title} ===")
        print_fn(f"Your flow ({len(steps)} moves):")
        _print_steps(steps, print_fn)

        options = service.options_for(
            steps, difficulty=difficulty, favorites_only=favorites_only, profile_id=profile_id
        )
        filters = []
        if difficulty is not None:
            filters.append(difficulty)
        if favorites_only:
            filters.append("favourites")
        heading = "Starting poses" if not steps else "Next moves"
        print_fn(f"\n{heading}{' [' + ', '.join(filters) + ']' if filters else ''}:")
        if not options:
            if filters:
                print_fn("No moves match the current filters.")
            elif steps:
                print_fn("No valid transitions from here.")
            else:
                print_fn("No starting poses available.")
        for idx, option in enumerate(options, start=1):
            via = f" via {option.transition.name}" if option.transition is not None else ""
            print_fn(f"{idx}) {option.pose.name} [{option.pose.difficulty}]{via}")

        print_fn("u) Undo last move")
        print_fn("c) Clear flow")
        print_fn("d) Difficulty filter")
        print_fn("f) Toggle favourites filter")
        print_fn("s) Save flow")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose move: ").strip().lower()

        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "u":
            steps = service.undo_step(steps)
        elif choice == "c":
            steps = ()
        elif choice == "d":
            difficulty = _prompt_difficulty(input_fn, print_fn, difficulty)
        elif choice == "f":
            favorites_only = not favorites_only
        elif choice == "s":
            saved = _save_flow_prompt(service, profile_id, steps, editing, input_fn, print_fn)
            if saved is not None:
                return
        else:
            index = _parse_index(choice, len(options))
            if index is None:
                print_fn("Invalid choice.")
                continue
            try:
                steps = service.add_step(steps, options[index])
            except IllegalTransitionError as exc:
                print_fn(str(exc))


def _prompt_difficulty(input_fn: InputFn, print_fn: PrintFn, current: str | None) -> str | None:
    """Ask for a difficulty tier; blank clears the filter."""
    print_fn(f"Tiers: {', '.join(DIFFICULTIES)}")
    value = input_fn("Difficulty (blank = all): ").strip().lower()
    if not value:
        return None
    if value not in DIFFICULTIES:
        print_fn("Unknown difficulty.")
        return current
    return value


def _save_flow_prompt(
    service: FlowService,
    profile_id: int,
    steps: Flow,
    editing: SavedFlow | None,
    input_fn: InputFn,
    print_fn: PrintFn,
) -> SavedFlow | None:
    """Collect name/description/visibility and persist the flow."""
    if not steps:
        print_fn("Add at least one move before saving.")
        return None
    print_fn(f"\nPreview: {flow_preview(steps)}")
    default_name = editing.name if editing is not None else ""
    name = input_fn(f"Flow name{f' [{default_name}]' if default_name else ''}: ").strip() or default_name
    if not name:
        print_fn("Flow name is required.")
        return None
    description = input_fn("Description (optional): ").strip()
    if not description and editing is not None:
        description = editing.description or ""
    default_public = editing.is_public if editing is not None else False
    public_text = input_fn(f"Make public? ({'Y/n' if default_public else 'y/N'}): ").strip().lower()
    is_public = public_text in {"y", "yes"} if public_text else default_public
    try:
        if editing is not None:
            saved = service.update_flow(profile_id, editing.id, steps, name, description, is_public)
            print_fn("Flow updated successfully!")
        else:
            saved = service.save_flow(profile_id, steps, name, description, is_public)
            print_fn("Flow saved successfully!")
    except (KeyError, PermissionError, ValueError) as exc:
        logger.debug("Saving flow failed: %s", exc)
        print_fn(f"Error saving flow: {exc}")
        return None
    if saved.is_public:
        print_fn(f"Share id: {saved.id}")
    return saved


def _random_flow_flow(service: FlowService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Generate a random flow and open it in the builder."""
    print_fn("\n=== Create random flow ===")
    text = input_fn(
        f"How many moves? ({RANDOM_FLOW_MIN_MOVES}-{RANDOM_FLOW_MAX_MOVES}, blank = {DEFAULT_RANDOM_MOVES}): "
    ).strip()
    if not text:
        count = DEFAULT_RANDOM_MOVES
    elif text.isdigit():
        count = int(text)
    else:
        print_fn("Invalid number.")
        return
    try:
        steps = service.random_flow(count)
    except ValueError as exc:
        print_fn(str(exc))
        return
    if not steps:
        print_fn("No starting poses available.")
        return
    print_fn(f"Generated random flow with {len(steps)} moves!")
    _build_flow(service, profile_id, input_fn, print_fn, steps=steps)


def _my_flows_flow(service: FlowService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """List owned flows and manage one."""
    while True:
        summaries = service.summarize_flows(service.list_my_flows(profile_id))
        print_fn("\n=== My Flows ===")
        if not summaries:
            print_fn("No saved flows yet.")
        for idx, summary in enumerate(summaries, start=1):
            visibility = "public" if summary.flow.is_public else "private"
            print_fn(f"{idx}) {summary.flow.name} ({summary.step_count} moves, {visibility}): {summary.preview}")
        print_fn("e) Export flows")
        print_fn("i) Import flows")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose flow: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "e":
            _export_flows_flow(service, profile_id, input_fn, print_fn)
            continue
        if choice == "i":
            _import_flows_flow(service, profile_id, input_fn, print_fn)
            continue
        index = _parse_index(choice, len(summaries))
        if index is None:
            print_fn("Invalid choice.")
            continue
        _manage_flow(service, profile_id, summaries[index].flow, input_fn, print_fn)


def _manage_flow(
    service: FlowService, profile_id: int, flow: SavedFlow, input_fn: InputFn, print_fn: PrintFn
) -> None:
    """Actions on one owned flow."""
    print_fn(f"\n=== {flow.name} ===")
    if flow.description:
        print_fn(flow.description)
    print_fn("1) View")
    print_fn("2) Edit")
    print_fn(f"3) Make {'private' if flow.is_public else 'public'}")
    print_fn("4) Delete")
    print_fn("5) Share id")
    print_fn("b) Back")
    choice = input_fn("Choose action: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    try:
        if choice == "1":
            _play_flow(service.open_flow(flow.id, viewer_id=profile_id), input_fn, print_fn)
        elif choice == "2":
            loaded = service.open_flow(flow.id, viewer_id=profile_id)
            _build_flow(service, profile_id, input_fn, print_fn, steps=loaded.steps, editing=loaded.flow)
        elif choice == "3":
            updated = service.toggle_visibility(profile_id, flow.id)
            print_fn(f"Flow is now {'public' if updated.is_public else 'private'}.")
        elif choice == "4":
            confirm = input_fn(f"Delete '{flow.name}'? Type YES to confirm: ").strip()
            if confirm != "YES":
                print_fn("Deletion cancelled.")
                return
            service.delete_flow(profile_id, flow.id)
            print_fn("Flow deleted.")
        elif choice == "5":
            if not flow.is_public:
                print_fn("Make the flow public before sharing it.")
            else:
                print_fn(f"Share id: {flow.id}")
        else:
            print_fn("Invalid choice.")
    except StructuralDecodeError:
        print_fn("Invalid flow data.")
    except (KeyError, PermissionError) as exc:
        print_fn(f"Could not update flow: {exc}")


def _public_flows_flow(service: FlowService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Browse public flows, view or remix one."""
    summaries = service.summarize_flows(service.list_public_flows())
    print_fn("\n=== Public Flows ===")
    if not summaries:
        print_fn("No public flows yet.")
        return
    for idx, summary in enumerate(summaries, start=1):
        print_fn(f"{idx}) {summary.flow.name} ({summary.step_count} moves): {summary.preview}")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn("Choose flow: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    index = _parse_index(choice, len(summaries))
    if index is None:
        print_fn("Invalid choice.")
        return
    flow = summaries[index].flow
    action = input_fn("v) View  r) Remix  b) Back  q) Quit: ").strip().lower()
    if action in MENU_QUIT_COMMANDS:
        raise QuitApp()
    try:
        if action == "v":
            _play_flow(service.open_flow(flow.id, viewer_id=profile_id), input_fn, print_fn)
        elif action == "r":
            remixed = service.remix_flow(profile_id, flow.id)
            print_fn(f"Remixed \"{flow.name}\" to your flows as \"{remixed.name}\".")
        elif action not in MENU_BACK_COMMANDS:
            print_fn("Invalid choice.")
    except StructuralDecodeError:
        print_fn("Invalid flow data.")
    except (KeyError, PermissionError) as exc:
        print_fn(f"Could not open flow: {exc}")


def _poses_flow(service: FlowService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Browse the pose catalogue with difficulty and favourites filters."""
    difficulty: str | None = None
    favorites_only = False
    while True:
        poses = service.list_poses(difficulty, favorites_only=favorites_only, profile_id=profile_id)
        favorites = service.favorite_pose_ids(profile_id)
        filters = []
        if difficulty is not None:
            filters.append(difficulty)
        if favorites_only:
            filters.append("favourites")
        print_fn(f"\n=== Poses{' [' + ', '.join(filters) + ']' if filters else ''} ===")
        if not poses:
            print_fn("No poses match the current filters." if filters else "No poses in the catalogue.")
        name_width = max([len("Pose")] + [len(pose.name) for pose in poses])
        for idx, pose in enumerate(poses, start=1):
            star = "*" if pose.id in favorites else " "
            start = "start" if pose.is_starting_pose else ""
            print_fn(f"{idx:>2}) {star} {pose.name:<{name_width}} {pose.difficulty:<12} {start}")
        print_fn("d) Difficulty filter")
        print_fn("f) Toggle favourites filter")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose pose: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "d":
            difficulty = _prompt_difficulty(input_fn, print_fn, difficulty)
            continue
        if choice == "f":
            favorites_only = not favorites_only
            continue
        index = _parse_index(choice, len(poses))
        if index is None:
            print_fn("Invalid choice.")
            continue
        _pose_detail_flow(service, profile_id, poses[index], input_fn, print_fn)


def _pose_detail_flow(
    service: FlowService, profile_id: int, pose: Pose, input_fn: InputFn, print_fn: PrintFn
) -> None:
    """Show one pose with its comments; toggle favourite or post a comment."""
    while True:
        favorite = pose.id in service.favorite_pose_ids(profile_id)
        print_fn(f"\n=== {pose.name} [{pose.difficulty}] ===")
        if pose.is_starting_pose:
            print_fn("Starting pose")
        if pose.description:
            print_fn(pose.description)
        for label, url in (
            ("Image", pose.image_url),
            ("Base view", pose.base_image_url),
            ("Flyer view", pose.flyer_image_url),
        ):
            if url:
                print_fn(f"{label}: {url}")

        comments = service.list_comments(pose.id)
        print_fn(f"\nComments ({len(comments)})")
        if not comments:
            print_fn("No comments yet. Be the first to share your thoughts!")
        for comment in comments:
            print_fn(f"- {comment.author_name or 'Anonymous'} ({comment.created_at[:10]}): {comment.content}")

        print_fn(f"t) {'Remove from' if favorite else 'Add to'} favourites")
        print_fn("c) Add comment")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose action: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "t":
            if service.toggle_favorite(profile_id, pose.id):
                print_fn(f"Added {pose.name} to favourites.")
            else:
                print_fn(f"Removed {pose.name} from favourites.")
        elif choice == "c":
            content = input_fn("Comment: ")
            try:
                service.add_comment(profile_id, pose.id, content)
            except (KeyError, ValueError) as exc:
                print_fn(f"Could not add comment: {exc}")
                continue
            print_fn("Comment added.")
        else:
            print_fn("Invalid choice.")


def _open_shared_flow(service: FlowService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Load a public flow by share id and play it."""
    flow_id = input_fn("Shared flow id: ").strip()
    if not flow_id:
        print_fn("Flow id is required.")
        return
    loaded = _load_shared(service, flow_id, print_fn)
    if loaded is not None:
        _play_flow(loaded, input_fn, print_fn)


def _load_shared(service: FlowService, flow_id: str, print_fn: PrintFn) -> LoadedFlow | None:
    """Load a shared flow, printing the reason when it cannot be opened."""
    try:
        loaded = service.load_shared_flow(flow_id)
    except KeyError:
        print_fn("Shared flow not found.")
        return None
    except PermissionError:
        print_fn("This flow is private and cannot be shared.")
        return None
    except StructuralDecodeError as exc:
        logger.info("Shared flow %s has invalid data: %s", flow_id, exc)
        print_fn("Invalid flow data.")
        return None
    print_fn(f"Loaded shared flow: \"{loaded.flow.name}\"")
    return loaded


def _play_flow(loaded: LoadedFlow, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Walk a flow step by step."""
    if not loaded.steps:
        print_fn("This flow has no moves.")
        return
    player = FlowPlayer(loaded.steps)
    print_fn(f"\n=== {loaded.flow.name} ===")
    if loaded.flow.description:
        print_fn(loaded.flow.description)
    while True:
        step = player.current
        print_fn(f"\n{player.position_label}: {step.pose.name} [{step.pose.difficulty}]")
        if step.transition is not None:
            print_fn(f"Transition: {step.transition.name}")
        if step.pose.description:
            print_fn(step.pose.description)
        choice = input_fn("n) Next  p) Previous  <number>) Jump  b) Back: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "n":
            if not player.has_next:
                print_fn("Already at the last move.")
            player.next()
        elif choice == "p":
            if not player.has_previous:
                print_fn("Already at the first move.")
            player.previous()
        else:
            index = _parse_index(choice, len(player.steps))
            if index is None:
                print_fn("Invalid choice.")
                continue
            player.go_to(index)


def _export_flows_flow(service: FlowService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Export the profile's flows to a JSON file."""
    path_text = input_fn("Export file path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    try:
        summary = service.export_flows(profile_id, path_text)
    except Exception as exc:
        logger.debug("Export to %s failed", path_text, exc_info=True)
        print_fn(f"Export failed: {exc}")
        return
    print_fn(f"Exported {summary.flow_count} flows for '{summary.profile_name}' to {path_text}")


def _import_flows_flow(service: FlowService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Import flows from a JSON export file."""
    path_text = input_fn("Import file path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    try:
        summary = service.import_flows(profile_id, path_text)
    except Exception as exc:
        logger.debug("Import from %s failed", path_text, exc_info=True)
        print_fn(f"Import failed: {exc}")
        return
    print_fn(f"Imported {summary.flow_count} flows.")
    if summary.skipped_count:
        print_fn(f"Skipped {summary.skipped_count} invalid flows.")


def _parse_index(choice: str, size: int) -> int | None:
    """Convert a 1-based menu choice to an index, or None when invalid."""
    if not choice.isdigit():
        return None
    index = int(choice) - 1
    if not (0 <= index < size):
        return None
    return index


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
