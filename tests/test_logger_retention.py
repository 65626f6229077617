import os


def test_retention_prunes_old_logs(tmp_path):
    from releasegate.logger.retention import enforce_retention

    for i in range(5):
        p = tmp_path / f"{i}.log"
        p.write_text("x")
        os.utime(p, (1_000_000 + i, 1_000_000 + i))

    enforce_retention(tmp_path, keep=2)

    remaining = sorted(p.name for p in tmp_path.glob("*.log"))
    assert remaining == ["3.log", "4.log"]


def test_retention_disabled_with_zero(tmp_path):
    from releasegate.logger.retention import enforce_retention

    for i in range(3):
        (tmp_path / f"{i}.log").write_text("x")

    enforce_retention(tmp_path, keep=0)

    assert len(list(tmp_path.glob("*.log"))) == 3
