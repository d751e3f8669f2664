from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

_DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _data_dir_from_env() -> Path:
    return Path(os.getenv("DINEREC_DATA_DIR", str(_DEFAULT_DATA_DIR)))


@dataclass(frozen=True)
class SnapshotConfig:
    data_dir: Path = field(default_factory=_data_dir_from_env)
    venues_filename: str = "venues.csv"
    interactions_filename: str = "interactions.csv"
    similarities_filename: str = "similarities.csv"
    trends_filename: str = "trend_snapshots.csv"

    @property
    def venues_path(self) -> Path:
        return self.data_dir / self.venues_filename

    @property
    def interactions_path(self) -> Path:
        return self.data_dir / self.interactions_filename

    @property
    def similarities_path(self) -> Path:
        return self.data_dir / self.similarities_filename

    @property
    def trends_path(self) -> Path:
        return self.data_dir / self.trends_filename


DEFAULT_SNAPSHOT_CONFIG = SnapshotConfig()
