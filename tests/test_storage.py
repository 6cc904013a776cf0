"""Tests for the SQLite run history."""

import dataclasses
import math
import sqlite3

import pytest

from promptab.analysis import analyze_test
from promptab.storage import get_test_results, get_test_runs, load_variants, save_test_run


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "history" / "promptab.db"


def _save(variants, db_path, name="Run", min_sample_size=5, alpha=0.05):
    analysis = analyze_test(variants, min_sample_size=min_sample_size, alpha=alpha)
    run_id = save_test_run(name, variants, analysis, min_sample_size, alpha, db_path=db_path)
    return run_id, analysis


class TestSaveAndLoad:

    def test_round_trip_run_summary(self, clear_winner_variants, db_path):
        run_id, analysis = _save(clear_winner_variants, db_path, name="Tone test")

        [run] = get_test_runs(db_path=db_path)
        assert run["id"] == run_id
        assert run["name"] == "Tone test"
        assert run["winner"] == "A"
        assert run["confidence"] == pytest.approx(95)
        assert run["is_complete"] is True
        assert run["recommended_sample_size"] == analysis.recommended_sample_size
        assert run["insights"] == analysis.insights

    def test_load_variants_restores_results(self, clear_winner_variants, db_path):
        clear_winner_variants[0].prompt = "Answer politely: {{input}}"
        clear_winner_variants[0].results[0].tokens = 42
        clear_winner_variants[0].results[0].cost = 0.01
        run_id, _ = _save(clear_winner_variants, db_path)

        restored = load_variants(run_id, db_path=db_path)
        assert restored == clear_winner_variants

        reanalyzed = analyze_test(restored, min_sample_size=5)
        assert reanalyzed.winner == "A"

    def test_variant_without_results_is_kept(self, make_variant, db_path):
        variants = [make_variant("A", [3.0, 4.0]), make_variant("B", [])]
        run_id, _ = _save(variants, db_path)

        restored = load_variants(run_id, db_path=db_path)
        assert [v.id for v in restored] == ["A", "B"]
        assert restored[1].results == []

    def test_infinite_recommendation_survives(self, make_variant, db_path):
        variants = [make_variant("A", [3.0, 4.0])]
        analysis = dataclasses.replace(analyze_test(variants), recommended_sample_size=math.inf)
        save_test_run("Inf", variants, analysis, 30, 0.05, db_path=db_path)

        [run] = get_test_runs(db_path=db_path)
        assert run["recommended_sample_size"] == math.inf


class TestQueries:

    def test_runs_newest_first_and_limited(self, clear_winner_variants, db_path):
        ids = [_save(clear_winner_variants, db_path, name=f"Run {i}")[0] for i in range(3)]

        runs = get_test_runs(limit=2, db_path=db_path)
        assert [r["id"] for r in runs] == [ids[2], ids[1]]

    def test_results_frame(self, clear_winner_variants, db_path):
        run_id, _ = _save(clear_winner_variants, db_path)

        df = get_test_results(run_id, db_path=db_path)
        assert len(df) == 10
        assert set(df["variant"]) == {"A", "B"}
        assert df["timestamp"].is_monotonic_increasing

    def test_unknown_run_gives_empty_frame(self, db_path):
        df = get_test_results(999, db_path=db_path)
        assert df.empty
        assert "score" in df.columns

    def test_connections_are_closed(self, clear_winner_variants, db_path, monkeypatch):
        opened = []
        connect = sqlite3.connect

        def recording_connect(*args, **kwargs):
            conn = connect(*args, **kwargs)
            opened.append(conn)
            return conn

        monkeypatch.setattr(sqlite3, "connect", recording_connect)
        run_id, _ = _save(clear_winner_variants, db_path)
        get_test_runs(db_path=db_path)
        get_test_results(run_id, db_path=db_path)
        load_variants(run_id, db_path=db_path)

        assert opened
        for conn in opened:
            with pytest.raises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")

    def test_runs_are_isolated(self, make_variant, db_path):
        first, _ = _save([make_variant("A", [1.0, 2.0])], db_path)
        second, _ = _save([make_variant("A", [3.0, 4.0, 5.0])], db_path)

        assert len(load_variants(first, db_path=db_path)[0].results) == 2
        assert len(get_test_results(second, db_path=db_path)) == 3


class TestConfiguredPath:

    def test_env_db_redirects_history(self, clear_winner_variants, tmp_path, monkeypatch):
        db_file = tmp_path / "from-env" / "runs.db"
        monkeypatch.setenv("PROMPTAB_DB", str(db_file))

        analysis = analyze_test(clear_winner_variants, min_sample_size=5)
        run_id = save_test_run("Env run", clear_winner_variants, analysis, 5, 0.05)

        assert db_file.exists()
        [run] = get_test_runs()
        assert run["id"] == run_id
        assert run["name"] == "Env run"
        assert load_variants(run_id) == clear_winner_variants
        assert len(get_test_results(run_id, db_path=db_file)) == 10

    def test_explicit_path_wins_over_env(self, clear_winner_variants, tmp_path, db_path, monkeypatch):
        env_file = tmp_path / "env.db"
        monkeypatch.setenv("PROMPTAB_DB", str(env_file))

        _save(clear_winner_variants, db_path)

        assert db_path.exists()
        assert not env_file.exists()
