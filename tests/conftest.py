"""
Shared fixtures for pagemark tests.

Provides the QApplication, an in-memory store, an engine bound to it and
a signal recorder. Annotation builders live in builders.py.
"""
import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication

from pagemark.editor.engine import AnnotationEngine
from pagemark.editor.store import InMemoryAnnotationStore
from pagemark.services.config_service import ConfigService


DOCUMENT_ID = "doc-1"


@pytest.fixture(scope="session")
def qapp():
    """Single QApplication for the whole test session."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def store():
    return InMemoryAnnotationStore()


@pytest.fixture
def engine(qapp, store):
    """Engine on page 1 with the default view (scale 1, no scroll)."""
    engine = AnnotationEngine(store, DOCUMENT_ID)
    yield engine
    engine.shutdown()


@pytest.fixture
def config(tmp_path):
    return ConfigService(tmp_path / "config.json")


@pytest.fixture
def recorder():
    """Callable that records the arguments of every call, for signals."""
    class Recorder:
        def __init__(self):
            self.calls = []

        def __call__(self, *args):
            self.calls.append(args)

    return Recorder()
