from datetime import datetime, timedelta
from pathlib import Path
import json
import sys

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core import settings
from models.document import seed_document
from storage import backup as backup_module
from storage.backup import ensure_daily_snapshot, snapshot_filename


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / settings.APP_NAME


def test_linux_data_dir_default_home():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={},
        home=Path("/home/test"),
    )
    assert result == Path("/home/test/.local/share") / settings.APP_NAME


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    expected = Path("/Users/test/Library/Application Support") / settings.APP_NAME
    assert result == expected


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    expected = Path(env["APPDATA"]) / settings.APP_NAME
    assert result == expected


def test_runtime_paths_inside_data_dir():
    assert settings.DB_PATH.parent == settings.DATA_DIR
    assert settings.CONFIG_PATH.parent == settings.DATA_DIR
    assert settings.SYNC.log_path.parent == settings.LOG_DIR
    assert settings.SYNC.snapshot_directory == settings.BACKUP_DIR


def test_snapshot_filename():
    assert snapshot_filename(datetime(2025, 9, 29).date()) == "operation-tracker-backup-2025-09-29.json"


def test_snapshot_written_once_per_day(tmp_path):
    first = seed_document()
    first.tasks.append({"id": "a"})
    assert ensure_daily_snapshot(first, tmp_path) is not None

    second = seed_document()
    assert ensure_daily_snapshot(second, tmp_path) is None

    (path,) = tmp_path.iterdir()
    assert json.loads(path.read_text(encoding="utf-8"))["tasks"] == [{"id": "a"}]


def test_snapshot_rotation(monkeypatch, tmp_path):
    backup_dir = tmp_path / "backups"
    base = datetime(2024, 1, 1)

    for offset in range(5):
        class FakeDateTime(datetime):
            @classmethod
            def now(cls, tz=None):
                return base + timedelta(days=offset)

        monkeypatch.setattr(backup_module, "datetime", FakeDateTime)
        ensure_daily_snapshot(seed_document(), backup_dir, keep_days=3)

    monkeypatch.setattr(backup_module, "datetime", datetime)

    backups = sorted(p.name for p in backup_dir.iterdir())
    assert backups == [
        "operation-tracker-backup-2024-01-03.json",
        "operation-tracker-backup-2024-01-04.json",
        "operation-tracker-backup-2024-01-05.json",
    ]
