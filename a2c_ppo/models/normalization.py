# Running statistics for normalization
# FORBIDDEN: env.*, training.*, logging, pathlib

import torch
import torch.nn as nn
from typing import Sequence


class RunningMeanStd(nn.Module):
    """Online mean and variance with running statistics.

    Statistics are registered buffers so they follow the module across
    devices. The leading dimensions of update() inputs are treated as the
    batch; the trailing dimensions must match `shape`.
    """

    def __init__(
        self,
        shape: Sequence[int],
        epsilon: float = 1e-8,
        clip: float = 10.0,
    ):
        """Initialize statistics.

        Args:
            shape: Shape of one sample
            epsilon: Small constant for numerical stability
            clip: Normalized values are clamped to [-clip, clip]
        """
        super().__init__()

        self.shape = tuple(shape)
        self.epsilon = epsilon
        self.clip = clip

        self.register_buffer("mean", torch.zeros(self.shape, dtype=torch.float64))
        self.register_buffer("var", torch.ones(self.shape, dtype=torch.float64))
        self.register_buffer("count", torch.zeros((), dtype=torch.float64))

    @torch.no_grad()
    def update(self, x: torch.Tensor) -> None:
        """Update running statistics with a batch.

        Args:
            x: Data, shape (*batch, *shape)
        """
        x = x.reshape(-1, *self.shape).to(torch.float64)
        if x.shape[0] == 0:
            return

        batch_mean = x.mean(dim=0)
        batch_var = x.var(dim=0, unbiased=False)
        batch_count = x.shape[0]

        self._update_from_moments(batch_mean, batch_var, batch_count)

    def _update_from_moments(
        self,
        batch_mean: torch.Tensor,
        batch_var: torch.Tensor,
        batch_count: int,
    ) -> None:
        """Merge batch moments (parallel variance algorithm)."""
        delta = batch_mean - self.mean
        total_count = self.count + batch_count

        new_mean = self.mean + delta * batch_count / total_count

        m_a = self.var * self.count
        m_b = batch_var * batch_count
        m2 = m_a + m_b + delta ** 2 * self.count * batch_count / total_count

        self.mean.copy_(new_mean)
        self.var.copy_(m2 / total_count)
        self.count.copy_(total_count)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Normalize and clip x using the current statistics."""
        normalized = (x - self.mean) / torch.sqrt(self.var + self.epsilon)
        return torch.clamp(normalized, -self.clip, self.clip).to(x.dtype)
