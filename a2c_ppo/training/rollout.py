# Rollout collection
# Collects experience from environments into rollout storage

import numpy as np
import torch
from typing import Optional

from ..analysis.metrics import EpisodeRewardTracker
from ..env import to_env_actions
from .reward import RewardNormalizer
from .storage import RolloutStorage


def collect_rollout(
    envs,  # Vectorized environments
    policy: torch.nn.Module,
    storage: RolloutStorage,
    reward_normalizer: Optional[RewardNormalizer] = None,
    episode_tracker: Optional[EpisodeRewardTracker] = None,
) -> None:
    """Fill storage with num_steps steps from parallel environments.

    Slot 0 of storage must already hold the current observation
    (set_first_observation or after_update).

    Args:
        envs: Vectorized environment (num_envs parallel)
        policy: Policy providing act()
        storage: Empty rollout storage
        reward_normalizer: Optional reward scaling
        episode_tracker: Optional raw episode reward accounting
    """
    device = storage.device

    for step in range(storage.num_steps):
        with torch.no_grad():
            value, action, action_log_prob, hidden_state = policy.act(
                storage.observations[step],
                storage.hidden_states[step],
                storage.masks[step],
            )

        env_actions = to_env_actions(action.cpu().numpy(), envs.single_action_space)
        observation, reward, terminated, truncated, _ = envs.step(env_actions)
        done = np.logical_or(terminated, truncated)
        reward = np.asarray(reward, dtype=np.float64)

        if episode_tracker is not None:
            episode_tracker.update(reward, done)

        if reward_normalizer is not None:
            reward = reward_normalizer(reward, done)

        storage.insert(
            torch.as_tensor(observation, dtype=torch.float32, device=device),
            hidden_state,
            action,
            action_log_prob,
            value,
            torch.as_tensor(reward, dtype=torch.float32, device=device).unsqueeze(1),
            torch.as_tensor(1.0 - done, dtype=torch.float32, device=device).unsqueeze(1),
        )
