# Action distribution heads
# FORBIDDEN: env.*, training.*, logging, pathlib

import torch
import torch.nn as nn
from torch.distributions import Categorical, Normal

from .blocks import init_layer


class FixedCategorical(Categorical):
    """Categorical over action indices shaped (batch, 1)."""

    def sample(self, sample_shape=torch.Size()) -> torch.Tensor:
        return super().sample(sample_shape).unsqueeze(-1)

    def log_probs(self, actions: torch.Tensor) -> torch.Tensor:
        return super().log_prob(actions.squeeze(-1)).unsqueeze(-1)

    def mode(self) -> torch.Tensor:
        return self.probs.argmax(dim=-1, keepdim=True)


class FixedNormal(Normal):
    """Diagonal Gaussian; log-probs and entropy summed over action dims."""

    def log_probs(self, actions: torch.Tensor) -> torch.Tensor:
        return super().log_prob(actions).sum(-1, keepdim=True)

    def entropy(self) -> torch.Tensor:
        return super().entropy().sum(-1)

    def mode(self) -> torch.Tensor:
        return self.mean


class CategoricalHead(nn.Module):
    """Linear logits for a Discrete action space."""

    def __init__(self, num_inputs: int, num_outputs: int):
        super().__init__()
        self.linear = init_layer(nn.Linear(num_inputs, num_outputs), gain=0.01)

    def forward(self, x: torch.Tensor) -> FixedCategorical:
        return FixedCategorical(logits=self.linear(x))


class DiagGaussianHead(nn.Module):
    """Gaussian with state-dependent mean and learned, state-independent log std."""

    def __init__(self, num_inputs: int, num_outputs: int):
        super().__init__()
        self.mean = init_layer(nn.Linear(num_inputs, num_outputs), gain=0.01)
        self.log_std = nn.Parameter(torch.zeros(num_outputs))

    def forward(self, x: torch.Tensor) -> FixedNormal:
        mean = self.mean(x)
        return FixedNormal(mean, self.log_std.exp().expand_as(mean))
