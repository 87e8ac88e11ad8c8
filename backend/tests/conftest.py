import sys
from pathlib import Path

# Add backend directory to Python path FIRST
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Now import after path is set
import pytest
from database import create_db_engine, create_session_factory
from init_db import init_database
from services.clip_registry import ClipRegistry


@pytest.fixture
def session_factory(tmp_path):
    """Registry database in a temp file"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'registry.db'}")
    init_database(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sound_dir(tmp_path):
    path = tmp_path / "sounds"
    path.mkdir()
    return path


@pytest.fixture
def registry(sound_dir, session_factory):
    return ClipRegistry(sound_dir, session_factory)


@pytest.fixture
def add_clip(registry, sound_dir):
    """Write a decoder script into the sound dir and register it"""
    def _add(name: str, script: str, emoji: str = '') -> Path:
        filename = f"{name}.py"
        path = sound_dir / filename
        path.write_text(script)
        registry.put(name, filename, emoji)
        return path
    return _add
