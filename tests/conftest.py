from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from acroflow.models import Catalog, Pose, Transition  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    This intentionally overrides pytest's builtin ``tmp_path`` fixture for this
    repository so temporary databases and export files stay under the project
    working directory at ``.tmp_pytest/``.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


POSE_A = Pose(id="a", name="A", description="start here", difficulty="beginner", is_starting_pose=True)
POSE_B = Pose(id="b", name="B", description="middle", difficulty="intermediate")
POSE_C = Pose(id="c", name="C", description="end", difficulty="advanced")
EDGE_X = Transition(id="x", name="X", from_pose_id="a", to_pose_id="b")
EDGE_Y = Transition(id="y", name="Y", from_pose_id="b", to_pose_id="c")


@pytest.fixture
def abc_catalog() -> Catalog:
    """A (starting) -X-> B -Y-> C."""
    return Catalog(poses=(POSE_A, POSE_B, POSE_C), transitions=(EDGE_X, EDGE_Y))
