from __future__ import annotations

from datetime import date
from pathlib import Path
import struct
import tempfile
import unittest
from unittest import mock
import zipfile

from judocenter.athletes import Athlete, AthleteStore
from judocenter.backup import create_backup, default_backup_filename, read_manifest, restore_backup


def _seed(data_dir: Path, name: str) -> None:
    AthleteStore(data_dir / "athletes").create(
        Athlete(name=name, birth_date="2001-01-01", gender="male", weight=81)
    )
    (data_dir / "config.yaml").write_text("organization_name: Test Club\n", encoding="utf-8")


def _corrupt_entry(archive: Path, name: str) -> None:
    """Flip every compressed byte of ``name`` while keeping the zip directory intact."""
    with zipfile.ZipFile(archive) as zf:
        info = zf.getinfo(name)
    raw = bytearray(archive.read_bytes())
    offset = info.header_offset
    name_len, extra_len = struct.unpack("<HH", bytes(raw[offset + 26 : offset + 30]))
    start = offset + 30 + name_len + extra_len
    for i in range(start, start + info.compress_size):
        raw[i] ^= 0xFF
    archive.write_bytes(bytes(raw))


class BackupTests(unittest.TestCase):
    def test_default_filename(self) -> None:
        self.assertEqual(default_backup_filename(date(2026, 1, 2)), "judo_manager_backup_2026-01-02.zip")

    def test_backup_then_restore(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            data_dir = Path(tmpdir) / "data"
            _seed(data_dir, "Original")
            backups = Path(tmpdir) / "backups"
            backups.mkdir()
            archive = create_backup(data_dir, backups)
            self.assertEqual(archive.name, default_backup_filename())

            manifest = read_manifest(archive)
            self.assertIn("athletes/1.json", manifest["files"])
            self.assertIn("config.yaml", manifest["files"])

            store = AthleteStore(data_dir / "athletes")
            store.create(Athlete(name="Added Later", birth_date="2002-02-02", gender="female", weight=60))
            self.assertEqual(len(store.list_athletes()), 2)

            restore_backup(archive, data_dir)
            self.assertEqual([a.name for a in AthleteStore(data_dir / "athletes").list_athletes()], ["Original"])

    def test_invalid_archive_leaves_data_untouched(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            data_dir = Path(tmpdir) / "data"
            _seed(data_dir, "Keep Me")

            not_zip = Path(tmpdir) / "notes.zip"
            not_zip.write_text("hello", encoding="utf-8")
            with self.assertRaises(ValueError):
                restore_backup(not_zip, data_dir)

            no_manifest = Path(tmpdir) / "other.zip"
            with zipfile.ZipFile(no_manifest, "w") as zf:
                zf.writestr("athletes/1.json", "{}")
            with self.assertRaises(ValueError):
                restore_backup(no_manifest, data_dir)

            unsafe = Path(tmpdir) / "unsafe.zip"
            with zipfile.ZipFile(unsafe, "w") as zf:
                zf.writestr("manifest.json", '{"app": "judocenter", "files": []}')
                zf.writestr("../escape.txt", "x")
            with self.assertRaises(ValueError):
                restore_backup(unsafe, data_dir)

            self.assertEqual([a.name for a in AthleteStore(data_dir / "athletes").list_athletes()], ["Keep Me"])

    def test_failed_extraction_rolls_back(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "source"
            _seed(source, "From Backup")
            archive = create_backup(source, Path(tmpdir) / "backup.zip")

            data_dir = Path(tmpdir) / "data"
            _seed(data_dir, "Current")

            with mock.patch.object(zipfile.ZipFile, "extract", side_effect=OSError("disk full")):
                with self.assertRaises(OSError):
                    restore_backup(archive, data_dir)

            self.assertEqual([a.name for a in AthleteStore(data_dir / "athletes").list_athletes()], ["Current"])
            self.assertTrue((data_dir / "config.yaml").exists())

    def test_corrupt_entry_rolls_back(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "source"
            store = AthleteStore(source / "athletes")
            for i in range(6):
                store.create(Athlete(name=f"Backup Athlete {i}", birth_date="2001-01-01", gender="male", weight=81))
            archive = create_backup(source, Path(tmpdir) / "backup.zip")
            _corrupt_entry(archive, "athletes/5.json")

            data_dir = Path(tmpdir) / "data"
            _seed(data_dir, "Current")
            with self.assertRaisesRegex(ValueError, "corrupt"):
                restore_backup(archive, data_dir)

            self.assertEqual([a.name for a in AthleteStore(data_dir / "athletes").list_athletes()], ["Current"])
            self.assertEqual(
                (data_dir / "config.yaml").read_text(encoding="utf-8"), "organization_name: Test Club\n"
            )


if __name__ == "__main__":
    unittest.main()
