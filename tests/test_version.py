"""Simple version check for the package.

Verifies that the ``__version__`` attribute matches the expected release
string."""

import importlib
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

phrase_trainer = importlib.import_module("phrase_trainer")


def test_version_matches():
    """Ensure ``phrase_trainer.__version__`` exposes the release version."""
    assert phrase_trainer.__version__ == "0.1.0"
