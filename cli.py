import math
import os
import random
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import questionary
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from iirstats.config import Config, StatisticsConfig, get_default_config
from iirstats.summation import SummationType
from iirstats.utils.stats_utils import checked_sqrt

app = typer.Typer(add_completion=False)
console = Console()

DEFAULT_CONFIG_PATH = Path(os.environ.get("IIRSTATS_CONFIG", "iirstats.json"))


# -------------------------
# Common helpers
# -------------------------
def _load_config(path: Optional[Path]) -> Config:
    """Load a config file if given and present, else defaults."""
    if path is not None and path.exists():
        return Config.from_json(path.read_text(encoding="utf-8"))
    return get_default_config()


def _stats_config(
    base: StatisticsConfig,
    alpha: Optional[float],
    summation: Optional[SummationType],
    sample_dtype: Optional[str],
    accum_dtype: Optional[str],
) -> StatisticsConfig:
    """Apply command line overrides on top of a config."""
    data = base.model_dump()
    if alpha is not None:
        data["alpha"] = alpha
    if summation is not None:
        data["summation"] = summation
    if sample_dtype is not None:
        data["sample_dtype_"] = sample_dtype
    if accum_dtype is not None:
        data["accum_dtype_"] = accum_dtype
    return StatisticsConfig.model_validate(data)


def _rel_diff(a: float, b: float) -> float:
    scale = max(abs(a), abs(b))
    return 0.0 if scale == 0.0 else abs(a - b) / scale


def _compare_table(cfg: StatisticsConfig, length: int, seed: int) -> Table:
    """Feed one random stream to the engine and the oracle, tabulate both."""
    rng = random.Random(seed)
    stats = cfg.build()
    ref = cfg.build_reference()
    for _ in range(length):
        x = rng.gauss(0.0, 1.0)
        stats.add(x)
        ref.add(x)

    t = Table(
        title=f"alpha={cfg.alpha} n={length} summation={cfg.summation.value}",
        show_lines=True,
    )
    t.add_column("quantity")
    t.add_column("running", justify="right")
    t.add_column("reference", justify="right")
    t.add_column("rel diff", justify="right")
    rows = [
        ("weight", stats.weight, ref.weight),
        ("mean", stats.mean, ref.mean),
        ("variance", stats.variance, ref.variance),
        ("pop variance", stats.pop_variance, ref.pop_variance),
        ("min", stats.min, ref.min),
        ("max", stats.max, ref.max),
    ]
    for name, a, b in rows:
        t.add_row(name, f"{a:.12g}", f"{b:.12g}", f"{_rel_diff(a, b):.3e}")
    return t


# -------------------------
# Commands
# -------------------------
@app.command()
def describe(
    values: List[float] = typer.Argument(..., help="Samples in delivery order."),
    alpha: Optional[float] = typer.Option(None, help="Decay factor."),
    summation: Optional[SummationType] = typer.Option(None, help="Summation policy."),
    sample_dtype: Optional[str] = typer.Option(None, help="Sample dtype name."),
    accum_dtype: Optional[str] = typer.Option(None, help="Accumulation dtype name."),
    config: Optional[Path] = typer.Option(None, help="Config JSON file."),
) -> None:
    """Print the diagnostic summary of a sample stream."""
    cfg = _stats_config(
        _load_config(config).statistics, alpha, summation, sample_dtype, accum_dtype
    )
    stats = cfg.build()
    stats.extend(values)
    console.print(stats.describe())


@app.command()
def compare(
    length: int = typer.Option(1000, min=1, help="Stream length."),
    alpha: List[float] = typer.Option([0.5, 0.9, 0.999, 1.0], help="Decay factors."),
    seed: int = typer.Option(0, help="RNG seed."),
    summation: Optional[SummationType] = typer.Option(None, help="Summation policy."),
    config: Optional[Path] = typer.Option(None, help="Config JSON file."),
) -> None:
    """Check the running engine against the reference on random streams."""
    base = _load_config(config).statistics
    for a in alpha:
        cfg = _stats_config(base, a, summation, None, None)
        console.print(_compare_table(cfg, length, seed))


@app.command()
def sqrt(
    x: float = typer.Argument(..., help="Input value."),
    dtype: str = typer.Option("float64", help="Floating dtype name."),
) -> None:
    """Newton square root next to math.sqrt."""
    ours = checked_sqrt(x, dtype)
    ref = math.sqrt(x) if x >= 0.0 else math.nan
    console.print(f"checked_sqrt={ours!r} math.sqrt={ref!r}")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(DEFAULT_CONFIG_PATH, help="Where to write."),
    force: bool = typer.Option(False, help="Overwrite an existing file."),
) -> None:
    """Write the default config as JSON."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} exists; use --force to overwrite.[/yellow]")
        raise typer.Exit(code=1)
    path.write_text(get_default_config().to_json(), encoding="utf-8")
    console.print(f"[green]Wrote {path}[/green]")


# -------------------------
# Interactive tasks
# -------------------------
def _task_describe(config: Config) -> None:
    """Prompt for samples and print describe()."""
    text = questionary.text("Samples (space separated):").ask()
    if not text:
        console.print("[yellow]Cancelled.[/yellow]")
        return
    stats = config.statistics.build()
    stats.extend(float(v) for v in text.split())
    console.print(Panel.fit(stats.describe()))


def _task_compare(config: Config) -> None:
    """Prompt for a stream length and compare engine and oracle."""
    length = int(questionary.text("Stream length:", default="1000").ask() or "1000")
    seed = int(questionary.text("Seed:", default="0").ask() or "0")
    console.print(_compare_table(config.statistics, length, seed))


def _task_show_config(config: Config) -> None:
    """Show the active config."""
    console.print(Panel.fit(config.to_json(indent=2)))


def _run_tool(cmd: List[str]) -> int:
    """Run a dev tool in the foreground and report its exit status."""
    console.print(f"[cyan]$ {' '.join(cmd)}[/cyan]")
    code = subprocess.run(cmd, check=False).returncode
    style = "green" if code == 0 else "red"
    console.print(f"[{style}]{cmd[0]} exit status {code}[/{style}]")
    return code


def _task_lint(config: Config) -> None:
    """ruff check over the package, tests and cli."""
    cmd = ["ruff", "check", "iirstats/", "tests/", "cli.py"]
    if questionary.confirm("Apply --fix?", default=False).ask():
        cmd.append("--fix")
    _run_tool(cmd)


def _task_test(config: Config) -> None:
    extra = questionary.text("Extra pytest args:", default="").ask() or ""
    _run_tool(["pytest", "--cov=iirstats", *extra.split()])


TASKS: List[Dict[str, Any]] = [
    {
        "name": "describe",
        "desc": "Summarize samples typed at the prompt.",
        "fn": _task_describe,
    },
    {
        "name": "compare",
        "desc": "Compare running statistics against the reference.",
        "fn": _task_compare,
    },
    {
        "name": "show-config",
        "desc": "Print the active config as JSON.",
        "fn": _task_show_config,
    },
    {"name": "lint", "desc": "ruff check, optionally with --fix.", "fn": _task_lint},
    {"name": "test", "desc": "pytest with coverage.", "fn": _task_test},
    {"name": "exit", "desc": "Exit the CLI tool.", "fn": None},
]


@app.command()
def interactive() -> None:
    """Start the interactive CLI."""
    console.print("[bold green]iirstats CLI[/bold green]")

    cfg_txt = questionary.text("config:", default=str(DEFAULT_CONFIG_PATH)).ask()
    if cfg_txt is None:
        return
    config = _load_config(Path(cfg_txt))

    while True:
        options = [
            questionary.Choice(title=f"{t['name']} - {t['desc']}", value=t["name"])
            for t in TASKS
        ]
        selected = questionary.select("Choose a task:", choices=options).ask()
        if selected is None:
            continue
        if selected == "exit":
            console.print("[bold blue]Bye.[/bold blue]")
            break

        task = next(x for x in TASKS if x["name"] == selected)
        fn: Callable[[Config], None] = task["fn"]
        try:
            fn(config)
        except Exception as e:
            console.print(Panel.fit("[red]Task failed[/red]"))
            console.print(str(e))


if __name__ == "__main__":
    app()
