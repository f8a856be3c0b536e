# Advantage Actor-Critic

import torch
from typing import List

from ..core.types import UpdateDatum
from .algorithm import Algorithm
from .storage import RolloutStorage


class A2C(Algorithm):
    """Synchronous advantage actor-critic.

    One forward pass over the whole rollout and a single RMSprop step.
    """

    def _create_optimizer(self) -> torch.optim.Optimizer:
        return torch.optim.RMSprop(
            self.policy.parameters(),
            lr=self.config.learning_rate,
            eps=self.config.epsilon,
            alpha=self.config.alpha,
        )

    def update(self, storage: RolloutStorage, decay_level: float = 1.0) -> List[UpdateDatum]:
        self._apply_decay(decay_level)

        num_steps, num_envs = storage.num_steps, storage.num_envs
        batch_size = num_steps * num_envs

        values, action_log_probs, entropy = self.policy.evaluate_actions(
            storage.observations[:-1].reshape(batch_size, *storage.observation_shape),
            storage.hidden_states[0],
            storage.masks[:-1].reshape(batch_size, 1),
            storage.actions.reshape(batch_size, storage.actions.size(-1)),
        )
        values = values.view(num_steps, num_envs, 1)
        action_log_probs = action_log_probs.view(num_steps, num_envs, 1)

        advantages = storage.returns[:-1] - values
        value_loss = advantages.pow(2).mean()
        action_loss = -(advantages.detach() * action_log_probs).mean()

        loss = (
            self.config.value_loss_coef * value_loss
            + self.config.actor_loss_coef * action_loss
            - self.config.entropy_coef * entropy
        )
        self._step(loss)

        return [
            UpdateDatum("Value loss", value_loss.item()),
            UpdateDatum("Action loss", action_loss.item()),
            UpdateDatum("Entropy", entropy.item()),
        ]
