import numpy as np
import pandas as pd
import pytest

from garchnts.config import StudyConfig
from garchnts.core import GarchNTSPricer
from garchnts.exceptions import NumericalInstabilityError, ParameterValidationError, PersistenceError, WorkerFailure
from garchnts.sampler import ParameterSampler
from garchnts.study import (
    BatchStudyDriver,
    ChunkBuffer,
    CsvChunkSink,
    RowFailure,
    StudyState,
    load_results,
    make_pricing_fn,
    row_to_inputs,
    run_study,
)


def fake_pricing(row, row_id):
    """Cheap deterministic stand-in for a Monte Carlo price."""
    return 100.0 * row["moneyness"], float(row_id)


class RecordingPricing:
    def __init__(self, fail_rows=(), error=ParameterValidationError):
        self.fail_rows = set(fail_rows)
        self.error = error
        self.seen = []

    def __call__(self, row, row_id):
        self.seen.append(row_id)
        if row_id in self.fail_rows:
            raise self.error(f"row {row_id} rejected")
        return fake_pricing(row, row_id)


class TestChunkBuffer:
    """Test the in-memory chunk"""

    def test_is_full(self):
        buf = ChunkBuffer(start=11, end=13)
        buf.append({"row_id": 11})
        assert not buf.is_full
        buf.append({"row_id": 12})
        buf.record_failure(RowFailure(13, "ParameterValidationError", "bad"))
        assert buf.is_full
        assert buf.n_seen == 3


class TestCsvChunkSink:
    """Test chunk files"""

    def test_chunk_name(self, tmp_path):
        sink = CsvChunkSink(tmp_path)
        assert sink.chunk_path(1, 10).name == "chunk_000001_000010.csv"

    def test_write_and_read_back(self, tmp_path):
        sink = CsvChunkSink(tmp_path / "out")
        buf = ChunkBuffer(start=1, end=2, rows=[{"row_id": 1, "x": 0.5}, {"row_id": 2, "x": 1.5}])
        path = sink.write(buf, ["row_id", "x"])
        assert path.exists()
        assert not list((tmp_path / "out").glob("*.tmp"))
        df = pd.read_csv(path)
        assert list(df["x"]) == [0.5, 1.5]
        assert sink.completed_ranges() == {(1, 2)}

    def test_empty_chunk_keeps_header(self, tmp_path):
        sink = CsvChunkSink(tmp_path)
        path = sink.write(ChunkBuffer(start=1, end=1), ["row_id", "x"])
        assert pd.read_csv(path).columns.tolist() == ["row_id", "x"]

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        sink = CsvChunkSink(blocker / "out")
        with pytest.raises(PersistenceError):
            sink.write(ChunkBuffer(start=1, end=1, rows=[{"row_id": 1}]), ["row_id"])

    def test_missing_directory_has_no_chunks(self, tmp_path):
        assert CsvChunkSink(tmp_path / "nope").completed_ranges() == set()
        assert load_results(tmp_path / "nope").empty


class TestBatchStudyDriver:
    """Test the chunked batch loop"""

    def test_partial_final_chunk(self, tmp_path):
        """25 rows in chunks of 10 give files of 10, 10 and 5 rows"""
        sink = CsvChunkSink(tmp_path)
        report = BatchStudyDriver().run(25, 10, fake_pricing, sink)
        names = [p.name for p in report.chunk_paths]
        assert names == ["chunk_000001_000010.csv", "chunk_000011_000020.csv", "chunk_000021_000025.csv"]
        assert [len(pd.read_csv(p)) for p in report.chunk_paths] == [10, 10, 5]
        assert report.n_priced == 25

    def test_rows_follow_design_order(self, tmp_path):
        sink = CsvChunkSink(tmp_path)
        BatchStudyDriver().run(12, 5, fake_pricing, sink)
        df = load_results(tmp_path)
        assert df["row_id"].tolist() == list(range(1, 13))
        design = ParameterSampler().sample(12)
        np.testing.assert_allclose(df["alpha"], design["alpha"])
        np.testing.assert_allclose(df["call_price"], 100.0 * design["moneyness"])
        assert df.columns[-2:].tolist() == ["call_price", "put_price"]

    def test_single_chunk_when_chunk_exceeds_rows(self, tmp_path):
        report = BatchStudyDriver().run(4, 100, fake_pricing, CsvChunkSink(tmp_path))
        assert [p.name for p in report.chunk_paths] == ["chunk_000001_000004.csv"]

    @pytest.mark.parametrize("error", [ParameterValidationError, NumericalInstabilityError, WorkerFailure])
    def test_row_level_failure_is_skipped(self, tmp_path, error):
        pricing = RecordingPricing(fail_rows={3}, error=error)
        report = BatchStudyDriver().run(10, 5, pricing, CsvChunkSink(tmp_path))
        assert pricing.seen == list(range(1, 11))
        assert report.n_priced == 9
        assert [f.row_id for f in report.failures] == [3]
        assert report.failures[0].error_type == error.__name__
        first = pd.read_csv(tmp_path / "chunk_000001_000005.csv")
        assert first["row_id"].tolist() == [1, 2, 4, 5]
        failures = pd.read_csv(tmp_path / "failures_000001_000005.csv")
        assert failures["row_id"].tolist() == [3]
        assert not (tmp_path / "failures_000006_000010.csv").exists()

    def test_unexpected_error_propagates(self, tmp_path):
        pricing = RecordingPricing(fail_rows={2}, error=KeyError)
        with pytest.raises(KeyError):
            BatchStudyDriver().run(5, 5, pricing, CsvChunkSink(tmp_path))

    def test_persistence_error_aborts_after_valid_chunks(self, tmp_path):
        class FlakySink(CsvChunkSink):
            def write(self, buffer, columns):
                if buffer.start > 1:
                    raise PersistenceError("disk full")
                return super().write(buffer, columns)

        driver = BatchStudyDriver()
        with pytest.raises(PersistenceError):
            driver.run(20, 10, fake_pricing, FlakySink(tmp_path))
        assert driver.state is StudyState.flushing
        assert len(load_results(tmp_path)) == 10

    def test_resume_skips_completed_chunks(self, tmp_path):
        sink = CsvChunkSink(tmp_path)
        BatchStudyDriver().run(30, 10, fake_pricing, sink)
        (tmp_path / "chunk_000011_000020.csv").unlink()
        pricing = RecordingPricing()
        report = BatchStudyDriver().run(30, 10, pricing, sink, resume=True)
        assert pricing.seen == list(range(11, 21))
        assert report.skipped_ranges == [(1, 10), (21, 30)]
        assert load_results(tmp_path)["row_id"].tolist() == list(range(1, 31))

    def test_without_resume_rewrites(self, tmp_path):
        sink = CsvChunkSink(tmp_path)
        BatchStudyDriver().run(10, 10, fake_pricing, sink)
        pricing = RecordingPricing()
        BatchStudyDriver().run(10, 10, pricing, sink)
        assert len(pricing.seen) == 10

    def test_explicit_design(self, tmp_path):
        design = ParameterSampler().sample(6)
        design["moneyness"] = 0.75
        BatchStudyDriver(design=design).run(6, 4, fake_pricing, CsvChunkSink(tmp_path))
        assert (load_results(tmp_path)["call_price"] == 75.0).all()

    def test_short_design_rejected(self, tmp_path):
        design = ParameterSampler().sample(3)
        with pytest.raises(ValueError):
            BatchStudyDriver(design=design).run(5, 2, fake_pricing, CsvChunkSink(tmp_path))

    def test_state_done(self, tmp_path):
        driver = BatchStudyDriver()
        assert driver.state is StudyState.idle
        driver.run(2, 1, fake_pricing, CsvChunkSink(tmp_path))
        assert driver.state is StudyState.done

    @pytest.mark.parametrize("n_sim,chunk_size", [(0, 5), (5, 0)])
    def test_invalid_sizes(self, tmp_path, n_sim, chunk_size):
        with pytest.raises(ValueError):
            BatchStudyDriver().run(n_sim, chunk_size, fake_pricing, CsvChunkSink(tmp_path))


class TestMonteCarloStudy:
    """Test the study against the real pricer"""

    def test_row_to_inputs(self):
        cfg = StudyConfig(sigma0=0.02, S0=50.0)
        row = ParameterSampler().sample(1, include_skew=True).iloc[0].to_dict()
        params, contract = row_to_inputs(row, cfg)
        assert params.sigma0 == 0.02 and params.S0 == 50.0
        assert params.lambda_ == pytest.approx(row["lambda"])
        assert params.beta == pytest.approx(row["beta"])
        assert contract.maturity == pytest.approx(row["tao"])

    def test_pricing_fn_is_reproducible(self, small_config):
        row = {
            "alpha": 1.2, "theta": 1.0, "beta": 0.0, "gamma": 1.0, "kappa": 1e-5,
            "xi": 0.1, "zeta": 0.2, "lambda": 0.3, "moneyness": 0.98, "tao": 0.1,
        }
        fn = make_pricing_fn(GarchNTSPricer(small_config))
        a = fn(row, 7)
        b = fn(row, 7)
        c = fn(row, 8)
        assert a == b
        assert a != c
        call_pct, put_pct = a
        assert call_pct > put_pct > 0.0

    def test_run_study(self, small_config):
        report = run_study(small_config)
        assert report.n_priced + len(report.failures) == small_config.n_sim
        assert len(report.chunk_paths) == 3
        df = load_results(small_config.output_dir)
        assert len(df) == report.n_priced
        failed = {f.row_id for f in report.failures}
        assert df["row_id"].tolist() == [i for i in range(1, 6) if i not in failed]

    def test_known_good_design_is_fully_priced(self, small_config):
        """Calm GARCH rows all price, with positive quotes and calls above puts in the money"""
        moneyness = [0.96, 0.97, 0.98, 0.99]
        design = pd.DataFrame(
            {
                "alpha": 1.2, "theta": 1.0, "a1": 0.1, "moneyness": moneyness, "tao": 0.2,
                "kappa": 1e-5, "xi": 0.1, "zeta": 0.2, "sigma_error": 0.01, "lambda": 0.3,
                "beta": 0.0, "gamma": 1.0,
            }
        )
        sink = CsvChunkSink(small_config.output_dir)
        fn = make_pricing_fn(GarchNTSPricer(small_config))
        report = BatchStudyDriver(design=design).run(4, small_config.chunk_size, fn, sink)
        assert report.n_priced == 4
        assert report.failures == []
        df = load_results(small_config.output_dir)
        assert df["row_id"].tolist() == [1, 2, 3, 4]
        assert np.isfinite(df[["call_price", "put_price"]].to_numpy()).all()
        assert (df["put_price"] > 0.0).all()
        assert (df["call_price"] > df["put_price"]).all()

    def test_unstable_row_is_skipped_between_good_rows(self, small_config):
        """A row whose volatility leaves the drift-correction domain fails alone"""
        design = pd.DataFrame(
            {
                "alpha": 1.2, "theta": 1.0, "a1": 0.1, "moneyness": 0.98, "tao": 0.2,
                "kappa": [1e-5, 5.0, 1e-5], "xi": 0.1, "zeta": 0.2, "sigma_error": 0.01,
                "lambda": 0.3, "beta": 0.0, "gamma": 1.0,
            }
        )
        fn = make_pricing_fn(GarchNTSPricer(small_config))
        report = BatchStudyDriver(design=design).run(3, 3, fn, CsvChunkSink(small_config.output_dir))
        assert report.n_priced == 2
        assert [(f.row_id, f.error_type) for f in report.failures] == [(2, "NumericalInstabilityError")]
