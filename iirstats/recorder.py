from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel
from rich import print

from torch.utils.tensorboard import SummaryWriter

from .config import Config
from .constants import SNAPSHOT_LOG_NAME
from .statistics import Statistics
from .utils.stats_utils import Values, iter_values, normal_mean_bounds, z_from_confidence


class StatsSnapshot(BaseModel):
    """
    Data model for one stream's statistics at a point in time.

    Unavailable values (std with fewer than two samples, extrema before the first
    sample) are None.
    """

    name: str
    snapshot: int
    n: int
    weight: float
    mean: Optional[float] = None
    std: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    description: str
    # Optional fields for Confidence Intervals
    mean_low: Optional[float] = None
    mean_high: Optional[float] = None


class StatsRecorder:
    """
    Consumes named sample streams and reports their running statistics to the
    console, TensorBoard and a JSON lines file.

    Formatting and file IO happen here, never inside the engines, so keep calls to
    `snapshot` off latency sensitive threads.
    """

    def __init__(self, config: Config, log_dir: str | Path | None = None) -> None:
        self.config = config
        self.stats: Dict[str, Statistics] = {}
        self.update_counts: Dict[str, int] = {}
        self.snapshot_count = 0

        self.log_dir = Path(log_dir) if log_dir is not None else Path("runs")
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.snapshot_log_path = self.log_dir / SNAPSHOT_LOG_NAME

        # Logging setup
        self.writer = None
        if config.recorder.tensorboard:
            self.writer = SummaryWriter(str(self.log_dir))

        self.ci_z = (
            z_from_confidence(config.recorder.ci_confidence)
            if config.recorder.ci_enabled
            else 0.0
        )

    def get(self, name: str) -> Statistics:
        """Return the engine for a stream, creating it from config on first use."""
        stats = self.stats.get(name)
        if stats is None:
            stats = self.config.stream_config(name).build()
            self.stats[name] = stats
            self.update_counts[name] = 0
        return stats

    def update(self, name: str, value: float) -> None:
        self.get(name).add(value)
        self._count_update(name)

    def update_many(self, name: str, values: Values) -> None:
        stats = self.get(name)
        for v in iter_values(values):
            stats.add(v)
            self._count_update(name)

    def _count_update(self, name: str) -> None:
        self.update_counts[name] += 1
        display_every = self.config.recorder.display_every
        if display_every > 0 and self.update_counts[name] % display_every == 0:
            self._print_stats(name)

    def _print_stats(self, name: str) -> None:
        """Helper to print one stream's describe() to stdout."""
        print(f"[bold cyan]{name}[/bold cyan] {self.stats[name].describe()}")

    def _log_to_jsonl(self, file_path: Path, data: BaseModel) -> None:
        """
        Helper to write a Pydantic model as a JSON line to a file.
        """
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(data.model_dump_json() + "\n")

    def _make_snapshot(self, name: str, stats: Statistics) -> StatsSnapshot:
        n = stats.n
        ci_data = {}
        if self.config.recorder.ci_enabled and n > 1:
            low, high, _ = normal_mean_bounds(stats, self.ci_z)
            ci_data = {"mean_low": low, "mean_high": high}

        return StatsSnapshot(
            name=name,
            snapshot=self.snapshot_count,
            n=n,
            weight=stats.weight,
            mean=stats.mean if n > 0 else None,
            std=stats.std_dev if n > 1 else None,
            min=stats.min if n > 0 else None,
            max=stats.max if n > 0 else None,
            description=stats.describe(),
            **ci_data,
        )

    def snapshot(self) -> list[StatsSnapshot]:
        """
        Capture every stream, write TensorBoard scalars and JSON lines, and
        return the snapshots.
        """
        snapshots = []
        for name, stats in self.stats.items():
            snap = self._make_snapshot(name, stats)
            snapshots.append(snap)

            if self.writer is not None and snap.n > 0:
                step = self.snapshot_count
                self.writer.add_scalar(f"{name}/mean", snap.mean, step)
                self.writer.add_scalar(f"{name}/min", snap.min, step)
                self.writer.add_scalar(f"{name}/max", snap.max, step)
                if snap.std is not None:
                    self.writer.add_scalar(f"{name}/std", snap.std, step)
                if snap.mean_low is not None:
                    self.writer.add_scalar(f"{name}/mean CI/low", snap.mean_low, step)
                    self.writer.add_scalar(f"{name}/mean CI/high", snap.mean_high, step)

            if self.config.recorder.jsonl:
                self._log_to_jsonl(self.snapshot_log_path, snap)

        self.snapshot_count += 1
        return snapshots

    def reset(self, name: Optional[str] = None) -> None:
        """Reset one stream, or all of them when name is None."""
        names = [name] if name is not None else list(self.stats)
        for n in names:
            if n in self.stats:
                self.stats[n].reset()
                self.update_counts[n] = 0

    def close(self) -> None:
        if self.writer is not None:
            self.writer.flush()
            self.writer.close()
