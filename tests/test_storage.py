import time

import pandas as pd

from pagefetch.results import AttemptTrail, FetchOutcome, PayloadShape, Tier
from pagefetch.storage import TRAIL_COLUMNS, attempts_frame, save_attempts


def make_outcome() -> FetchOutcome:
    trail = AttemptTrail()
    trail.state = "original"
    trail.record("https://a.org/x", Tier.RENDER, error="RenderError: timeout")
    trail.record("https://a.org/x", Tier.HTTP, payload=PayloadShape.TEXT)
    return FetchOutcome.finish("https://a.org/x", trail, time.perf_counter(), result="<html/>", final_url="https://a.org/x")


def test_attempts_frame_one_row_per_attempt():
    df = attempts_frame(make_outcome())
    assert list(df.columns) == TRAIL_COLUMNS
    assert df["tier"].tolist() == ["render", "http"]
    assert df["success"].tolist() == [False, True]
    assert df["state"].tolist() == ["original", "original"]


def test_save_attempts_writes_csv(tmp_path):
    path = save_attempts(make_outcome(), "trail", results_dir=tmp_path)
    assert path == tmp_path / "trail.csv"
    assert len(pd.read_csv(path)) == 2


def test_empty_trail_writes_nothing(tmp_path):
    outcome = FetchOutcome.finish("https://a.org", AttemptTrail(), time.perf_counter())
    assert save_attempts(outcome, "empty", results_dir=tmp_path) is None
    assert not (tmp_path / "empty.csv").exists()
