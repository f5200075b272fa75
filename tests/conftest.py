import shutil
import sys
from pathlib import Path
from typing import Any, Generator

import pytest

from coreason_icebox.config import IceboxConfig

TEMPLATES = Path(__file__).parent / "templates"

CAT = shutil.which("cat") or "/bin/cat"


@pytest.fixture
def box_location(tmp_path: Path) -> Path:
    return tmp_path / "boxes"


@pytest.fixture
def cat_config(box_location: Path) -> IceboxConfig:
    return IceboxConfig(
        executable=Path(CAT),
        template_location=TEMPLATES,
        box_location=box_location,
        print_location=False,
    )


@pytest.fixture
def python_config(box_location: Path) -> IceboxConfig:
    return IceboxConfig(
        executable=Path(sys.executable),
        template_location=TEMPLATES,
        box_location=box_location,
        print_location=False,
        kill_grace_period=1.0,
    )


@pytest.fixture
def clean_env() -> Generator[Any, None, None]:
    with pytest.MonkeyPatch.context() as mp:
        for key in ("ICEBOX_EXECUTABLE", "ICEBOX_CLEAN_UP", "ICEBOX_DEFAULT_TIMEOUT", "ICEBOX_PRINT_LOCATION"):
            mp.delenv(key, raising=False)
        yield mp
