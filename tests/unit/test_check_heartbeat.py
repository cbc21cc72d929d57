# pylint: disable=missing-module-docstring,missing-function-docstring
from pathlib import Path

import check_heartbeat


def test_fresh_heartbeat_passes(tmp_path: Path):
    path = tmp_path / "hb"
    path.write_text("1000000", encoding="utf-8")

    assert check_heartbeat.is_fresh(str(path), max_age_ms=5_000, now_ms=1_004_000)


def test_stale_heartbeat_fails(tmp_path: Path):
    path = tmp_path / "hb"
    path.write_text("1000000", encoding="utf-8")

    assert not check_heartbeat.is_fresh(str(path), max_age_ms=5_000, now_ms=1_006_000)


def test_missing_or_garbage_heartbeat_fails(tmp_path: Path):
    garbage = tmp_path / "garbage"
    garbage.write_text("not-a-number", encoding="utf-8")

    assert not check_heartbeat.is_fresh(str(tmp_path / "missing"), max_age_ms=5_000)
    assert not check_heartbeat.is_fresh(str(garbage), max_age_ms=5_000)


def test_main_exit_codes(tmp_path: Path):
    path = tmp_path / "hb"
    assert check_heartbeat.main(["--path", str(path)]) == 1

    from observability.logger import now_ms  # pylint: disable=import-outside-toplevel
    path.write_text(str(now_ms()), encoding="utf-8")
    assert check_heartbeat.main(["--path", str(path), "--max-age-ms", "60000"]) == 0
