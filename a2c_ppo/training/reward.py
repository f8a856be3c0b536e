# Reward scaling

import numpy as np
import torch

from ..models.normalization import RunningMeanStd


class RewardNormalizer:
    """Scale rewards by the running std of the discounted return.

    Keeps one discounted-return accumulator per environment, folds it into
    running statistics every step, and divides raw rewards by the running
    std. Accumulators of finished environments restart at zero.
    """

    def __init__(self, num_envs: int, discount_factor: float, clip: float, epsilon: float = 1e-8):
        self.discount_factor = discount_factor
        self.clip = clip
        self.epsilon = epsilon
        self.returns = np.zeros(num_envs, dtype=np.float64)
        self.return_rms = RunningMeanStd(shape=(1,), clip=float("inf"))

    def __call__(self, rewards: np.ndarray, dones: np.ndarray) -> np.ndarray:
        """Scale one step of rewards.

        Args:
            rewards: Raw rewards, shape (num_envs,)
            dones: Episode-finished flags, shape (num_envs,)

        Returns:
            Scaled and clipped rewards, shape (num_envs,), float32
        """
        self.returns = self.returns * self.discount_factor + rewards
        self.return_rms.update(torch.as_tensor(self.returns).unsqueeze(-1))

        std = np.sqrt(self.return_rms.var.item() + self.epsilon)
        scaled = np.clip(rewards / std, -self.clip, self.clip)

        self.returns[np.asarray(dones, dtype=bool)] = 0.0
        return scaled.astype(np.float32)
