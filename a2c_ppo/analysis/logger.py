# Logging utilities

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


LOGGER_NAME = "a2c_ppo"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for logging

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else getattr(logging, level.upper()))

    # Drop handlers from a previous call (e.g. repeated runs in one process)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    ))
    logger.addHandler(console_handler)

    # File handler
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        ))
        logger.addHandler(file_handler)

    return logger


class MetricsLogger:
    """Per-update metrics written to CSV, with a JSON summary at the end."""

    def __init__(self, log_dir: Path):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.csv_path = self.log_dir / "metrics.csv"
        self.json_path = self.log_dir / "metrics.json"

        self._history: List[Dict[str, Any]] = []
        self._fieldnames: List[str] = []

    def log(self, update: int, metrics: Dict[str, Any]) -> None:
        """Append one update's metrics.

        The CSV header is fixed by the first record; later keys that were
        not present then are kept in the JSON summary only.

        Args:
            update: Update index
            metrics: Metric values
        """
        record = {
            "update": update,
            "timestamp": datetime.now().isoformat(),
            **metrics,
        }
        self._history.append(record)

        if not self._fieldnames:
            self._fieldnames = list(record.keys())
            with open(self.csv_path, "w", newline="") as f:
                csv.DictWriter(f, fieldnames=self._fieldnames).writeheader()

        with open(self.csv_path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=self._fieldnames, extrasaction="ignore")
            writer.writerow(record)

    def save_summary(self) -> None:
        """Save complete metrics history as JSON."""
        with open(self.json_path, "w") as f:
            json.dump(self._history, f, indent=2)

    def get_metric_series(self, metric_name: str) -> List[Any]:
        return [m[metric_name] for m in self._history if metric_name in m]

    def get_latest(self, metric_name: str) -> Optional[Any]:
        for m in reversed(self._history):
            if metric_name in m:
                return m[metric_name]
        return None


class ExperimentLogger:
    """Timestamped experiment directory with logs, metrics and config."""

    def __init__(
        self,
        experiment_name: str,
        base_dir: Path = Path("experiments"),
        level: str = "INFO",
    ):
        """Initialize experiment logger.

        Args:
            experiment_name: Name of experiment
            base_dir: Base directory for experiments
            level: Console logging level
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.experiment_dir = Path(base_dir) / f"{timestamp}_{experiment_name}"
        self.experiment_dir.mkdir(parents=True, exist_ok=True)

        self.logs_dir = self.experiment_dir / "logs"
        self.logs_dir.mkdir(exist_ok=True)

        self.logger = setup_logging(
            level=level,
            log_file=self.logs_dir / "train.log",
        )
        self.metrics = MetricsLogger(self.logs_dir)

    def save_config(self, config: Dict[str, Any]) -> None:
        """Save the resolved configuration next to the logs."""
        config_path = self.experiment_dir / "config.yaml"
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False)

    def save_git_info(self) -> None:
        """Save git commit information."""
        import subprocess

        try:
            commit = subprocess.check_output(
                ["git", "rev-parse", "HEAD"],
                stderr=subprocess.DEVNULL,
            ).decode().strip()

            branch = subprocess.check_output(
                ["git", "rev-parse", "--abbrev-ref", "HEAD"],
                stderr=subprocess.DEVNULL,
            ).decode().strip()

            dirty = subprocess.call(
                ["git", "diff", "--quiet"],
                stderr=subprocess.DEVNULL,
            ) != 0
        except (subprocess.CalledProcessError, FileNotFoundError):
            self.logger.debug("Git info unavailable; skipping git_info.json")
            return

        with open(self.experiment_dir / "git_info.json", "w") as f:
            json.dump({"commit": commit, "branch": branch, "dirty": dirty}, f, indent=2)
