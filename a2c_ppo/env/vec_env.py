# Vectorized Gymnasium environments
# FORBIDDEN: models.*, training.*

import gymnasium as gym
import numpy as np
from gymnasium import spaces
from typing import Any, Dict, Optional

from ..core.types import BOX, DISCRETE, ActionSpace


def make_vec_env(config: Dict[str, Any], num_envs: Optional[int] = None) -> gym.vector.VectorEnv:
    """Create num_envs parallel copies of the configured environment.

    Finished sub-environments reset within the same step, so every step
    returns a usable observation for all instances.

    Args:
        config: Configuration dictionary (uses the `env` section)
        num_envs: Number of instances (defaults to env.num_envs)

    Returns:
        Gymnasium vector environment
    """
    env_config = config.get("env", {})
    env_id = env_config.get("id", "CartPole-v1")
    if num_envs is None:
        num_envs = env_config.get("num_envs", 8)

    return gym.make_vec(
        env_id,
        num_envs=num_envs,
        vectorization_mode=env_config.get("vectorization_mode", "sync"),
        vector_kwargs={"autoreset_mode": gym.vector.AutoresetMode.SAME_STEP},
        **env_config.get("kwargs", {}),
    )


def action_space_from_gym(space: gym.Space) -> ActionSpace:
    """Describe a single environment's action space.

    Args:
        space: Gymnasium action space (Discrete or Box)

    Returns:
        ActionSpace descriptor
    """
    if isinstance(space, spaces.Discrete):
        return ActionSpace(DISCRETE, (int(space.n),))
    if isinstance(space, spaces.Box):
        if len(space.shape) != 1:
            raise ValueError(f"Only flat Box action spaces are supported, got shape {space.shape}")
        return ActionSpace(BOX, space.shape)
    raise ValueError(f"Unsupported action space: {space}")


def to_env_actions(actions: np.ndarray, space: gym.Space) -> np.ndarray:
    """Convert a (num_envs, width) action batch to what the vector env expects.

    Discrete indices lose their trailing unit dimension; Box actions are
    clipped to the space bounds.
    """
    if isinstance(space, spaces.Discrete):
        return actions.reshape(-1).astype(np.int64)
    return np.clip(actions, space.low, space.high).astype(space.dtype)
