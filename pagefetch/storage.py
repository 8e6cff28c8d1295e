import logging
from pathlib import Path

import pandas as pd

from .results import FetchOutcome
from .settings import PROJECT_ROOT

logger = logging.getLogger(__name__)

RESULTS_DIR = PROJECT_ROOT / "results"

TRAIL_COLUMNS = ["source_url", "url", "tier", "state", "success", "payload", "error", "elapsed_s"]


def attempts_frame(outcome: FetchOutcome) -> pd.DataFrame:
    """One row per attempt in the outcome's trail, in order."""
    rows = [
        {
            "source_url": outcome.source_url,
            "url": a.url,
            "tier": a.tier.value,
            "state": a.state,
            "success": a.success,
            "payload": a.payload.value if a.payload else None,
            "error": a.error,
            "elapsed_s": a.elapsed_s,
        }
        for a in outcome.attempts
    ]
    return pd.DataFrame(rows, columns=TRAIL_COLUMNS)


def save_attempts(outcome: FetchOutcome, name: str, results_dir=None):
    """
    Persist the attempt trail as CSV under results/<name>.csv.

    Returns the written path, or None when the trail is empty.
    """
    df = attempts_frame(outcome)
    if df.empty:
        return None

    out_dir = Path(results_dir) if results_dir else RESULTS_DIR
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{name}.csv"
    df.to_csv(out_path, index=False)
    logger.info("Saved %s", out_path)
    return out_path
