"""Tests for the command line entry point and the run store."""

import copy
import json

import pytest

from conftest import SMALL_DOMAIN
from loreweave.cli import build_parser, main
from loreweave.persistence.db import RunStore


class TestMain:
    """Tests for single runs from the command line."""

    def test_writes_exports(self, tmp_path, capsys):
        out_dir = tmp_path / "out"
        code = main(["--seed", "4", "--max-ticks", "10", "--plain-names", "-q", "--out", str(out_dir)])

        assert code == 0
        world = json.loads((out_dir / "world.json").read_text(encoding="utf-8"))
        statistics = json.loads((out_dir / "statistics.json").read_text(encoding="utf-8"))
        assert world["metadata"]["tick"] == 10
        assert statistics["totalTicks"] == 10
        assert capsys.readouterr().out.startswith("run-4:")

    def test_saves_run_to_database(self, tmp_path):
        db_path = tmp_path / "runs.db"
        code = main(["--run-id", "trial", "--max-ticks", "5", "--plain-names", "-q", "--db", str(db_path)])

        assert code == 0
        store = RunStore(db_path)
        try:
            record = store.load_run("trial")
        finally:
            store.close()
        assert record.world["metadata"]["tick"] == 5

    def test_bad_config_exits_before_writing(self, tmp_path, capsys):
        config_path = tmp_path / "broken.yml"
        config_path.write_text("engine:\n  epochLength: 0\n", encoding="utf-8")
        out_dir = tmp_path / "out"

        code = main(["--config", str(config_path), "--out", str(out_dir), "-q"])

        assert code == 2
        assert "Configuration error in engine.epochLength" in capsys.readouterr().err
        assert not out_dir.exists()

    def test_missing_domain_file(self, tmp_path, capsys):
        code = main(["--domain", str(tmp_path / "absent.yml"), "-q"])

        assert code == 2
        assert "absent.yml" in capsys.readouterr().err

    def test_domain_without_distribution_targets(self, tmp_path, capsys):
        document = copy.deepcopy(SMALL_DOMAIN)
        del document["distributionTargets"]
        domain_path = tmp_path / "untargeted.json"
        domain_path.write_text(json.dumps(document), encoding="utf-8")
        out_dir = tmp_path / "out"

        code = main(["--domain", str(domain_path), "--out", str(out_dir), "-q"])

        assert code == 2
        assert "Configuration error in distributionTargets" in capsys.readouterr().err
        assert not out_dir.exists()

    def test_verbosity_flags_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-v", "-q"])


class TestRunStore:
    """Tests for SQLite run persistence."""

    @pytest.fixture
    def store(self, tmp_path):
        store = RunStore(tmp_path / "runs.db")
        yield store
        store.close()

    def test_save_and_load(self, store):
        store.save_run("a", 3, "colonies", {"metadata": {"tick": 1}}, {"totalTicks": 1})
        record = store.load_run("a")

        assert record.seed == 3
        assert record.domain == "colonies"
        assert record.world == {"metadata": {"tick": 1}}
        assert record.statistics == {"totalTicks": 1}

    def test_save_replaces_existing(self, store):
        store.save_run("a", 3, "colonies", {"v": 1}, {})
        store.save_run("a", 9, "colonies", {"v": 2}, {})

        assert store.load_run("a").world == {"v": 2}
        assert len(store.list_runs()) == 1

    def test_missing_run(self, store):
        assert store.load_run("nope") is None

    def test_delete(self, store):
        store.save_run("a", 3, "colonies", {}, {})

        assert store.delete_run("a")
        assert not store.delete_run("a")
        assert store.list_runs() == []
