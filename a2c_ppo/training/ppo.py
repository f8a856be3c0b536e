# PPO algorithm implementation

import torch
from typing import List

from ..core.types import UpdateDatum
from .algorithm import Algorithm
from .storage import RolloutStorage


class PPO(Algorithm):
    """Proximal Policy Optimization update.

    Implements the clipped surrogate objective over several epochs of
    shuffled minibatches, with early stopping once the approximate KL
    divergence of a minibatch exceeds kl_target.
    """

    def _create_optimizer(self) -> torch.optim.Optimizer:
        return torch.optim.Adam(
            self.policy.parameters(),
            lr=self.config.learning_rate,
            eps=self.config.epsilon,
        )

    def update(self, storage: RolloutStorage, decay_level: float = 1.0) -> List[UpdateDatum]:
        """Perform PPO update.

        Each minibatch is re-evaluated under the parameters left by the
        previous minibatch, so iterations run strictly in order.

        Args:
            storage: Rollout with returns already computed
            decay_level: Learning-rate multiplier in [0, 1]

        Returns:
            Diagnostics averaged over the minibatches actually run
        """
        self._apply_decay(decay_level)

        clip_param = self.config.clip_param
        metrics = {
            "Value loss": 0.0,
            "Action loss": 0.0,
            "Entropy": 0.0,
            "KL divergence": 0.0,
            "Clip fraction": 0.0,
        }
        num_updates = 0
        early_stop = False

        for _ in range(self.config.num_epoch):
            if self.policy.is_recurrent:
                generator = storage.recurrent_generator(self.config.num_mini_batch)
            else:
                generator = storage.feed_forward_generator(self.config.num_mini_batch)

            for mini_batch in generator:
                values, action_log_probs, entropy = self.policy.evaluate_actions(
                    mini_batch.observations,
                    mini_batch.hidden_states,
                    mini_batch.masks,
                    mini_batch.actions,
                )

                log_ratio = action_log_probs - mini_batch.action_log_probs
                ratio = torch.exp(log_ratio)

                advantages = mini_batch.advantages
                advantages = (advantages - advantages.mean()) / (
                    advantages.std(unbiased=False) + self.config.epsilon
                )

                surr1 = ratio * advantages
                surr2 = torch.clamp(ratio, 1.0 - clip_param, 1.0 + clip_param) * advantages
                action_loss = -torch.min(surr1, surr2).mean()

                value_loss = (mini_batch.returns - values).pow(2).mean()

                loss = (
                    self.config.value_loss_coef * value_loss
                    + self.config.actor_loss_coef * action_loss
                    - self.config.entropy_coef * entropy
                )
                self._step(loss)

                with torch.no_grad():
                    kl = ((ratio - 1) - log_ratio).mean()
                    clip_fraction = (torch.abs(ratio - 1) > clip_param).float().mean()

                metrics["Value loss"] += value_loss.item()
                metrics["Action loss"] += action_loss.item()
                metrics["Entropy"] += entropy.item()
                metrics["KL divergence"] += kl.item()
                metrics["Clip fraction"] += clip_fraction.item()
                num_updates += 1

                if kl.item() > self.config.kl_target:
                    early_stop = True
                    break

            if early_stop:
                break

        # Average metrics
        update_data = [
            UpdateDatum(name, total / max(num_updates, 1))
            for name, total in metrics.items()
        ]
        update_data.append(UpdateDatum("Minibatch updates", float(num_updates)))
        update_data.append(UpdateDatum("Early stopped", float(early_stop)))

        return update_data
