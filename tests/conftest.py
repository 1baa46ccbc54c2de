from pathlib import Path
import sys
import pytest

# Ensure src/ is on sys.path for direct test invocation without an editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from life_planner.database_manager import DBConfig, DatabaseManager


@pytest.fixture()
def db(tmp_path: Path):
    config = DBConfig(path=tmp_path / "test.sqlite")
    manager = DatabaseManager(config)
    manager.init_db()
    yield manager
    manager.close()
