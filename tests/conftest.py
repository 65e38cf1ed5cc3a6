from pathlib import Path

import pytest

from formflow_runtime.storyboard import StoryboardStore

FORMS_DIR = Path(__file__).resolve().parent.parent / "forms"


@pytest.fixture
def forms_dir():
    return FORMS_DIR


@pytest.fixture
def store():
    """StoryboardStore loaded from the bundled forms/ directory."""
    s = StoryboardStore(forms_dir=FORMS_DIR)
    s.load()
    return s
