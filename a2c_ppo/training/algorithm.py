# Update procedure interface

from abc import ABC, abstractmethod
from typing import List

import torch
import torch.nn as nn

from ..core.config import AlgorithmConfig
from ..core.types import UpdateDatum
from .storage import RolloutStorage


class Algorithm(ABC):
    """Consumes a full rollout and takes gradient steps on the policy.

    Chosen once at training setup (see make_algorithm).
    """

    def __init__(self, policy: nn.Module, config: AlgorithmConfig):
        self.policy = policy
        self.config = config
        self.optimizer = self._create_optimizer()

    @abstractmethod
    def _create_optimizer(self) -> torch.optim.Optimizer:
        ...

    @abstractmethod
    def update(self, storage: RolloutStorage, decay_level: float = 1.0) -> List[UpdateDatum]:
        """Run one update.

        Args:
            storage: Rollout with returns already computed
            decay_level: Learning-rate multiplier in [0, 1]

        Returns:
            Named scalar diagnostics
        """

    def set_learning_rate(self, lr: float) -> None:
        """Update learning rate.

        Args:
            lr: New learning rate
        """
        for param_group in self.optimizer.param_groups:
            param_group["lr"] = lr

    def _apply_decay(self, decay_level: float) -> None:
        if not 0.0 <= decay_level <= 1.0:
            raise ValueError(f"decay_level must be in [0, 1], got {decay_level}")
        self.set_learning_rate(self.config.learning_rate * decay_level)

    def _step(self, loss: torch.Tensor) -> None:
        self.optimizer.zero_grad()
        loss.backward()
        nn.utils.clip_grad_norm_(self.policy.parameters(), self.config.max_grad_norm)
        self.optimizer.step()


def make_algorithm(policy: nn.Module, config: AlgorithmConfig) -> Algorithm:
    """Create the update procedure named by config.name."""
    from .a2c import A2C
    from .ppo import PPO

    algorithms = {"a2c": A2C, "ppo": PPO}
    name = config.name.lower()
    if name not in algorithms:
        raise ValueError(f"Unknown algorithm: {config.name}. Available: {list(algorithms.keys())}")
    return algorithms[name](policy, config)
