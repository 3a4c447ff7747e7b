from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

from logroll.naming import BackupNamingScheme


def test_make_name_inserts_timestamp_before_extension(tmp_path: Path) -> None:
    """Test backup name layout for a file with an extension."""
    scheme = BackupNamingScheme(tmp_path / "foobar.log")
    ts = datetime(2025, 9, 30, 14, 3, 7, 123456, tzinfo=UTC)

    name = scheme.make_name(ts)

    assert name == tmp_path / "foobar-2025-09-30T14-03-07.123.log"


def test_make_name_without_extension(tmp_path: Path) -> None:
    """Test backup name for a file with no extension."""
    scheme = BackupNamingScheme(tmp_path / "service")
    ts = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)

    assert scheme.make_name(ts).name == "service-2025-01-02T03-04-05.000"


def test_make_name_converts_to_utc(tmp_path: Path) -> None:
    """Test timestamps from other zones are rendered in UTC."""
    scheme = BackupNamingScheme(tmp_path / "app.log")
    ts = datetime(2025, 9, 30, 16, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    assert scheme.make_name(ts).name == "app-2025-09-30T14-00-00.000.log"


def test_make_name_local_time(tmp_path: Path) -> None:
    """Test local-time naming follows the local zone."""
    scheme = BackupNamingScheme(tmp_path / "app.log", local_time=True)
    ts = datetime(2025, 9, 30, 14, 0, 0, tzinfo=UTC)
    local = ts.astimezone()

    expected = f"app-{local.strftime('%Y-%m-%dT%H-%M-%S')}.000.log"
    assert scheme.make_name(ts).name == expected


def test_parse_name_round_trip(tmp_path: Path) -> None:
    """Test parsing recovers the millisecond timestamp."""
    scheme = BackupNamingScheme(tmp_path / "foo.log")
    ts = datetime(2025, 9, 30, 14, 3, 7, 123000, tzinfo=UTC)

    assert scheme.parse_name(scheme.make_name(ts)) == ts


def test_parse_name_local_time_is_aware(tmp_path: Path) -> None:
    """Test local-time names parse into aware datetimes at the same instant."""
    scheme = BackupNamingScheme(tmp_path / "foo.log", local_time=True)
    ts = datetime(2025, 9, 30, 14, 3, 7, 0, tzinfo=UTC)

    parsed = scheme.parse_name(scheme.make_name(ts))

    assert parsed is not None
    assert parsed.tzinfo is not None
    assert parsed == ts


def test_parse_name_accepts_compressed_suffix(tmp_path: Path) -> None:
    """Test compressed backups are recognised."""
    scheme = BackupNamingScheme(tmp_path / "foo.log")

    record = scheme.parse(tmp_path / "foo-2025-09-30T14-03-07.123.log.gz")

    assert record is not None
    assert record.compressed
    assert record.backup_path == tmp_path / "foo-2025-09-30T14-03-07.123.log"
    assert record.timestamp == datetime(2025, 9, 30, 14, 3, 7, 123000, tzinfo=UTC)


def test_parse_name_rejects_foreign_files(tmp_path: Path) -> None:
    """Test files that don't follow the pattern are ignored."""
    scheme = BackupNamingScheme(tmp_path / "foo.log")

    for name in [
        "foo.log",
        "bar-2025-09-30T14-03-07.123.log",
        "foo-2025-09-30T14-03-07.123.log.gz.tmp",
        "foo-2025-09-30T14-03-07.log",
        "foo-2025-13-40T14-03-07.123.log",
        "foo-2025-09-30T14-03-07.123.txt",
        "foo-notatime.log",
    ]:
        assert scheme.parse_name(tmp_path / name) is None, name


def test_names_sort_lexically_by_time(tmp_path: Path) -> None:
    """Test lexical order of backup names matches chronological order."""
    scheme = BackupNamingScheme(tmp_path / "foo.log")
    start = datetime(2025, 9, 30, 23, 59, 59, 998000, tzinfo=UTC)
    stamps = [start + timedelta(milliseconds=i) for i in range(5)]

    names = [scheme.make_name(ts).name for ts in stamps]

    assert names == sorted(names)


def test_backups_lists_only_matching_files(tmp_path: Path) -> None:
    """Test directory listing yields records for backups only."""
    scheme = BackupNamingScheme(tmp_path / "foo.log")
    (tmp_path / "foo.log").write_text("active")
    (tmp_path / "foo-2025-09-30T14-03-07.123.log").write_text("a")
    (tmp_path / "foo-2025-09-30T15-03-07.123.log.gz").write_bytes(b"b")
    (tmp_path / "foo-2025-09-30T16-03-07.123.log.gz.tmp").write_bytes(b"c")
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / "foo-2025-09-30T17-03-07.123.log").mkdir()

    names = sorted(record.path.name for record in scheme.backups())

    assert names == [
        "foo-2025-09-30T14-03-07.123.log",
        "foo-2025-09-30T15-03-07.123.log.gz",
    ]


def test_backups_missing_directory(tmp_path: Path) -> None:
    """Test listing a directory that doesn't exist yet."""
    scheme = BackupNamingScheme(tmp_path / "missing" / "foo.log")

    assert scheme.backups() == []
