# Actor-critic policy
# FORBIDDEN: env.*, training.*, logging, pathlib

import torch
import torch.nn as nn
from typing import Optional, Sequence, Tuple

from ..core.types import ActionSpace
from .base import CnnBase, MlpBase, NNBase
from .distributions import CategoricalHead, DiagGaussianHead
from .normalization import RunningMeanStd


class Policy(nn.Module):
    """Actor-critic policy over a Discrete or Box action space.

    Maps (observation, recurrent state, mask) to value estimates, actions,
    action log-probabilities and the next recurrent state. Every input
    carries a leading batch dimension: num_envs during rollout collection,
    a minibatch during updates.
    """

    def __init__(
        self,
        action_space: ActionSpace,
        base: NNBase,
        observation_shape: Optional[Sequence[int]] = None,
        normalize_observations: bool = False,
    ):
        """Initialize policy.

        Args:
            action_space: Action space descriptor
            base: Feature extractor producing value and actor features
            observation_shape: Shape of one observation; required when
                normalize_observations is set
            normalize_observations: Normalize inputs with running statistics
        """
        super().__init__()

        self.action_space = action_space
        self.base = base

        if action_space.is_discrete:
            self.dist = CategoricalHead(base.output_size, action_space.shape[0])
        else:
            self.dist = DiagGaussianHead(base.output_size, action_space.shape[0])

        if normalize_observations:
            if observation_shape is None:
                raise ValueError("observation_shape is required for observation normalization")
            self.observation_normalizer = RunningMeanStd(observation_shape)
        else:
            self.observation_normalizer = None

    @classmethod
    def build(
        cls,
        observation_shape: Sequence[int],
        action_space: ActionSpace,
        hidden_size: int = 64,
        recurrent: bool = False,
        normalize_observations: bool = True,
    ) -> "Policy":
        """Pick an MLP base for flat observations, a CNN base for images."""
        observation_shape = tuple(observation_shape)
        if len(observation_shape) == 1:
            base = MlpBase(observation_shape[0], recurrent, hidden_size)
        elif len(observation_shape) == 3:
            base = CnnBase(observation_shape, recurrent, hidden_size)
            # Pixel inputs are scaled inside the base
            normalize_observations = False
        else:
            raise ValueError(f"Unsupported observation shape: {observation_shape}")
        return cls(action_space, base, observation_shape, normalize_observations)

    @property
    def is_recurrent(self) -> bool:
        return self.base.is_recurrent

    @property
    def recurrent_hidden_state_size(self) -> int:
        return self.base.recurrent_hidden_state_size

    @property
    def normalizes_observations(self) -> bool:
        return self.observation_normalizer is not None

    def update_observation_normalizer(self, observations: torch.Tensor) -> None:
        """Fold a batch of raw observations into the running statistics."""
        if self.observation_normalizer is not None:
            self.observation_normalizer.update(observations)

    def _features(
        self,
        observations: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        if self.observation_normalizer is not None:
            observations = self.observation_normalizer(observations)
        return self.base(observations, hidden_states, masks)

    def act(
        self,
        observations: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
        deterministic: bool = False,
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor, torch.Tensor]:
        """Select actions for one step of every environment.

        Args:
            observations: shape (N, *observation_shape)
            hidden_states: shape (N, recurrent_hidden_state_size)
            masks: shape (N, 1)
            deterministic: Take the distribution mode instead of sampling

        Returns:
            value: (N, 1)
            action: (N, 1) integral for Discrete, (N, action_dim) for Box
            action_log_prob: (N, 1)
            hidden_states: (N, recurrent_hidden_state_size)
        """
        value, actor_features, hidden_states = self._features(observations, hidden_states, masks)
        dist = self.dist(actor_features)

        if deterministic:
            action = dist.mode()
        else:
            action = dist.sample()

        action_log_prob = dist.log_probs(action)
        return value, action, action_log_prob, hidden_states

    def get_values(
        self,
        observations: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
    ) -> torch.Tensor:
        value, _, _ = self._features(observations, hidden_states, masks)
        return value

    def evaluate_actions(
        self,
        observations: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
        actions: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        """Re-evaluate stored actions under the current parameters.

        For recurrent policies, observations may be a time-major sequence
        of T * N samples with hidden_states holding the N initial states.

        Returns:
            value: (B, 1)
            action_log_prob: (B, 1)
            entropy: Mean entropy over the batch (scalar)
        """
        batch = observations.size(0)
        if masks.size(0) != batch or actions.size(0) != batch:
            raise ValueError(
                f"Batch mismatch: {batch} observations, {masks.size(0)} masks, "
                f"{actions.size(0)} actions"
            )
        if actions.dim() != 2 or actions.size(1) != self.action_space.num_actions:
            raise ValueError(
                f"actions have shape {tuple(actions.shape)}, expected "
                f"({batch}, {self.action_space.num_actions})"
            )

        value, actor_features, _ = self._features(observations, hidden_states, masks)
        dist = self.dist(actor_features)

        action_log_prob = dist.log_probs(actions)
        entropy = dist.entropy().mean()

        return value, action_log_prob, entropy
