# Main trainer class

import logging
import time
from typing import Any, Dict, Optional

import torch

from ..analysis.logger import MetricsLogger
from ..analysis.metrics import (
    EpisodeRewardTracker,
    check_training_health,
    compute_explained_variance,
    diagnostics_to_dict,
)
from ..core.config import AlgorithmConfig, ModelConfig, TrainingConfig, validate_config
from ..env import action_space_from_gym, make_vec_env
from ..models import Policy
from .algorithm import make_algorithm
from .reward import RewardNormalizer
from .rollout import collect_rollout
from .storage import RolloutStorage


logger = logging.getLogger(__name__)


class Trainer:
    """Main training orchestrator.

    Owns the environments, policy, rollout storage and update procedure,
    and runs act -> step -> insert for num_steps steps, then computes
    returns, updates the policy and recycles the storage.
    """

    def __init__(self, config: Dict[str, Any], metrics_logger: Optional[MetricsLogger] = None):
        """Initialize trainer.

        Args:
            config: Configuration dictionary
            metrics_logger: Optional per-update metrics sink
        """
        errors = validate_config(config)
        if errors:
            raise ValueError("Invalid configuration:\n  " + "\n  ".join(errors))

        self.config = config
        self.metrics_logger = metrics_logger

        self.training_config = TrainingConfig.from_dict(config)
        self.algorithm_config = AlgorithmConfig.from_dict(config)
        self.model_config = ModelConfig.from_dict(config)

        # Device setup
        device_config = config.get("device") or {}
        if device_config.get("type", "cpu") == "cuda":
            self.device = torch.device(f"cuda:{device_config.get('cuda_device', 0)}")
        else:
            self.device = torch.device("cpu")
        if device_config.get("num_threads"):
            torch.set_num_threads(device_config["num_threads"])

        logger.info(f"Using device: {self.device}")

        # Create environment
        num_envs = self.training_config.num_envs
        self.envs = make_vec_env(config, num_envs)
        self.observation_shape = self.envs.single_observation_space.shape
        self.action_space = action_space_from_gym(self.envs.single_action_space)
        logger.info(f"Action space: {self.action_space.type} - {list(self.action_space.shape)}")
        logger.info(f"Observation space: {list(self.observation_shape)}")

        self._create_policy()

        self.algorithm = make_algorithm(self.policy, self.algorithm_config)

        self.storage = RolloutStorage(
            num_steps=self.training_config.num_steps,
            num_envs=num_envs,
            observation_shape=self.observation_shape,
            action_space=self.action_space,
            hidden_size=self.policy.recurrent_hidden_state_size,
            device=self.device,
        )

        self.reward_normalizer = RewardNormalizer(
            num_envs,
            discount_factor=self.training_config.discount_factor,
            clip=self.training_config.reward_clip,
        )
        self.episode_tracker = EpisodeRewardTracker(
            num_envs,
            window=self.training_config.reward_average_window,
        )

        # Training state
        self.global_step = 0
        self.metrics_history = []

    def _create_policy(self) -> None:
        """Create the actor-critic policy."""
        self.policy = Policy.build(
            observation_shape=self.observation_shape,
            action_space=self.action_space,
            hidden_size=self.model_config.hidden_size,
            recurrent=self.model_config.recurrent,
            normalize_observations=self.model_config.normalize_observations,
        ).to(self.device)

        num_params = sum(p.numel() for p in self.policy.parameters())
        logger.info(f"Policy parameters: {num_params:,}")

    def _reset(self) -> None:
        observation, _ = self.envs.reset(seed=self.training_config.seed)
        self.storage.set_first_observation(
            torch.as_tensor(observation, dtype=torch.float32, device=self.device)
        )

    def train(self, num_updates: Optional[int] = None) -> Dict[str, float]:
        """Run training loop.

        Args:
            num_updates: Number of updates to run (defaults to
                max_frames // (num_steps * num_envs))

        Returns:
            Metrics of the last update
        """
        tc = self.training_config
        if num_updates is None:
            num_updates = tc.num_updates

        logger.info(f"Starting {self.algorithm_config.name.upper()} training for {num_updates:,} updates")
        logger.info(f"Frames per update: {tc.frames_per_update:,}")

        self._reset()
        start_time = time.time()
        metrics: Dict[str, float] = {}

        for update in range(num_updates):
            collect_rollout(
                self.envs,
                self.policy,
                self.storage,
                reward_normalizer=self.reward_normalizer,
                episode_tracker=self.episode_tracker,
            )

            with torch.no_grad():
                next_value = self.policy.get_values(
                    self.storage.get_observation(-1),
                    self.storage.get_hidden_state(-1),
                    self.storage.get_mask(-1),
                ).detach()
            self.storage.compute_returns(
                next_value,
                tc.use_gae,
                tc.discount_factor,
                tc.gae_lambda,
            )

            if tc.use_lr_decay:
                decay_level = 1.0 - update / num_updates
            else:
                decay_level = 1.0

            update_data = self.algorithm.update(self.storage, decay_level)
            self.policy.update_observation_normalizer(self.storage.observations[:-1])

            explained_var = compute_explained_variance(
                self.storage.value_predictions[:-1].cpu().numpy().ravel(),
                self.storage.returns[:-1].cpu().numpy().ravel(),
            )
            self.storage.after_update()

            self.global_step = (update + 1) * tc.frames_per_update

            metrics = {
                "frames": self.global_step,
                "explained_variance": explained_var,
                "episodes": self.episode_tracker.episode_count,
                "average_reward": self.episode_tracker.average_reward,
                **diagnostics_to_dict(update_data),
            }
            self.metrics_history.append(metrics)
            if self.metrics_logger is not None:
                self.metrics_logger.log(update, metrics)

            for warning in check_training_health(metrics):
                logger.warning(f"Update {update}: {warning}")

            if update % tc.log_interval == 0 and update > 0:
                run_time = time.time() - start_time
                fps = self.global_step / (run_time + 1e-9)
                logger.info("---")
                logger.info(f"Update: {update}/{num_updates}")
                logger.info(f"Total frames: {self.global_step:,}")
                logger.info(f"FPS: {fps:.0f}")
                for datum in update_data:
                    logger.info(f"{datum.name}: {datum.value:.6g}")
                average_reward = self.episode_tracker.average_reward
                if average_reward is None:
                    logger.info("Reward: no finished episodes yet")
                else:
                    logger.info(f"Reward: {average_reward:.2f}")

        logger.info(f"Training complete. Total time: {time.time() - start_time:.1f}s")

        return metrics

    def close(self) -> None:
        """Clean up resources."""
        self.envs.close()
