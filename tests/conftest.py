# Pytest configuration and fixtures

import pytest
import numpy as np
import torch
from pathlib import Path
import tempfile
import yaml

from a2c_ppo.core.types import ActionSpace


@pytest.fixture
def seed():
    """Fixed seed for reproducibility."""
    return 42


@pytest.fixture
def set_seed(seed):
    """Set all random seeds."""
    np.random.seed(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed(seed)


@pytest.fixture
def device():
    """Get test device (CPU for CI)."""
    return torch.device("cpu")


@pytest.fixture
def num_steps():
    return 5


@pytest.fixture
def num_envs():
    return 4


@pytest.fixture
def obs_dim():
    return 3


@pytest.fixture
def discrete_space():
    """Two-action Discrete space."""
    return ActionSpace("Discrete", (2,))


@pytest.fixture
def box_space():
    """Two-dimensional continuous action space."""
    return ActionSpace("Box", (2,))


@pytest.fixture
def config():
    """Standard test configuration (small CartPole PPO run)."""
    return {
        "experiment": {
            "name": "test",
            "seed": 42,
            "deterministic": True,
        },
        "device": {
            "type": "cpu",
            "num_threads": 1,
        },
        "env": {
            "id": "CartPole-v1",
            "num_envs": 2,
            "vectorization_mode": "sync",
        },
        "model": {
            "hidden_size": 16,
            "recurrent": False,
            "normalize_observations": True,
        },
        "algorithm": {
            "name": "ppo",
            "actor_loss_coef": 1.0,
            "value_loss_coef": 0.5,
            "entropy_coef": 0.001,
            "learning_rate": 0.001,
            "epsilon": 1.0e-8,
            "max_grad_norm": 0.5,
            "a2c": {
                "alpha": 0.99,
            },
            "ppo": {
                "clip_param": 0.2,
                "num_epoch": 2,
                "num_mini_batch": 4,
                "kl_target": 0.5,
            },
        },
        "training": {
            "num_steps": 8,
            "max_frames": 64,
            "discount_factor": 0.99,
            "use_gae": True,
            "gae_lambda": 0.9,
            "use_lr_decay": False,
            "reward_clip": 100.0,
            "reward_average_window": 10,
            "log_interval": 1,
        },
        "logging": {
            "level": "WARNING",
        },
    }


@pytest.fixture
def temp_dir():
    """Create temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_file(config, temp_dir):
    """Create temporary config file."""
    config_path = temp_dir / "config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(config, f)
    return config_path
