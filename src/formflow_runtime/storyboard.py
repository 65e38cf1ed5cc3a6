"""StoryboardStore — loads form definitions from YAML files.

Each ``*.yaml`` file under the forms directory holds one form::

    form:
      uuid: contact
      cta_link: https://example.com/thanks
    blocks:
      - id: intro
        type: none
        message: Hi there!
      - ...

The store is loaded once at startup and serves the development server and
the simulation script.

Usage::

    store = StoryboardStore()       # defaults to forms/ relative to repo root
    store.load()

    form = store.get_form("contact")
    storyboard = store.get_storyboard("contact")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from formflow_runtime.models.form import PublicForm, Storyboard

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# StoryboardStore
# ---------------------------------------------------------------------------

class StoryboardStore:
    """Loads every form under a directory and provides lookup by form id.

    Attributes populated after :meth:`load`:

        forms        — dict[form_id, PublicForm]
        storyboards  — dict[form_id, Storyboard]
    """

    def __init__(self, forms_dir: str | Path | None = None) -> None:
        if forms_dir is None:
            forms_dir = find_repo_root() / "forms"
        self._base = Path(forms_dir)

        self.forms: dict[str, PublicForm] = {}
        self.storyboards: dict[str, Storyboard] = {}

    def load(self) -> None:
        """Parse every ``*.yaml`` file of the forms directory.

        Raises:
            FileNotFoundError: if the directory does not exist.
            ValueError: if a file lacks a ``form`` section or two files
                declare the same form id.
        """
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing forms directory: {self._base}")

        for path in sorted(self._base.glob("*.yaml")):
            self.add(load_yaml(path), source=path.name)

        logger.info("StoryboardStore loaded: %d forms from %s", len(self.forms), self._base)

    def add(self, raw: dict, *, source: str = "<memory>") -> PublicForm:
        """Register one form definition (``{form, blocks}``) and return it."""
        if not isinstance(raw, dict) or "form" not in raw:
            raise ValueError(f"Form definition in {source} has no 'form' section")

        form = PublicForm(**raw["form"])
        if form.uuid in self.forms:
            raise ValueError(f"Form {form.uuid} already exists (duplicate in {source})")

        self.forms[form.uuid] = form
        self.storyboards[form.uuid] = Storyboard(blocks=raw.get("blocks") or [])
        return form

    def get_form(self, form_id: str) -> PublicForm:
        """Raises KeyError if the form is unknown."""
        return self.forms[form_id]

    def get_storyboard(self, form_id: str) -> Storyboard:
        """Raises KeyError if the form is unknown."""
        return self.storyboards[form_id]
