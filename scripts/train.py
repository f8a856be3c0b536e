#!/usr/bin/env python3
"""Training entry point for A2C / PPO."""

import argparse
import logging
import random
import sys
from pathlib import Path

import numpy as np
import torch
import yaml

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from a2c_ppo.analysis.logger import ExperimentLogger
from a2c_ppo.core.config import validate_config
from a2c_ppo.training.trainer import Trainer


def set_global_seed(seed: int, deterministic: bool = False) -> int:
    """Set all random seeds for reproducibility.

    Args:
        seed: Random seed
        deterministic: If True, use deterministic algorithms

    Returns:
        The seed used
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)

    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)

    if deterministic:
        torch.use_deterministic_algorithms(True)
        torch.backends.cudnn.deterministic = True
        torch.backends.cudnn.benchmark = False

    return seed


def load_config(config_path: Path) -> dict:
    with open(config_path) as f:
        return yaml.safe_load(f)


def apply_overrides(config: dict, overrides: list) -> dict:
    """Apply command-line overrides to config.

    Args:
        config: Base configuration
        overrides: List of "key.subkey=value" strings

    Returns:
        Modified configuration
    """
    for override in overrides:
        if "=" not in override:
            raise ValueError(f"Invalid override format: {override}. Expected key=value")

        key, value = override.split("=", 1)
        keys = key.split(".")

        d = config
        for k in keys[:-1]:
            d = d.setdefault(k, {})

        # YAML scalars: ints, floats, booleans, strings
        d[keys[-1]] = yaml.safe_load(value)

    return config


def main():
    parser = argparse.ArgumentParser(description="Train an actor-critic policy with A2C or PPO")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/base.yaml"),
        help="Path to configuration file",
    )
    parser.add_argument(
        "--device",
        type=str,
        choices=["cpu", "cuda"],
        default=None,
        help="Device to use (overrides config)",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=None,
        help="Total environment frames (overrides config)",
    )
    parser.add_argument(
        "--override",
        action="append",
        default=[],
        help="Config overrides in format key.subkey=value",
    )
    parser.add_argument(
        "--experiment-name",
        type=str,
        default=None,
        help="Experiment name (overrides config)",
    )

    args = parser.parse_args()

    config = load_config(args.config)

    if args.override:
        config = apply_overrides(config, args.override)

    if args.device:
        config.setdefault("device", {})["type"] = args.device

    if args.max_frames:
        config["training"]["max_frames"] = args.max_frames

    if args.experiment_name:
        config["experiment"]["name"] = args.experiment_name

    errors = validate_config(config)
    if errors:
        print("Configuration validation failed:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    seed = config.get("experiment", {}).get("seed", 0)
    deterministic = config.get("experiment", {}).get("deterministic", False)
    set_global_seed(seed, deterministic)

    experiment_name = config.get("experiment", {}).get("name", "default")
    level = config.get("logging", {}).get("level", "INFO")
    exp_logger = ExperimentLogger(experiment_name, level=level)
    exp_logger.save_config(config)
    exp_logger.save_git_info()

    logger = logging.getLogger("a2c_ppo")
    logger.info(f"Starting experiment: {experiment_name}")
    logger.info(f"Algorithm: {config['algorithm']['name']}")
    logger.info(f"Seed: {seed}")

    trainer = Trainer(config, metrics_logger=exp_logger.metrics)

    try:
        final_metrics = trainer.train()
        logger.info(f"Training complete. Final metrics: {final_metrics}")
    except KeyboardInterrupt:
        logger.info("Training interrupted by user")
    finally:
        exp_logger.metrics.save_summary()
        trainer.close()

    logger.info("Done")


if __name__ == "__main__":
    main()
