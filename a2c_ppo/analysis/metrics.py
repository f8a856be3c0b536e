# Metrics computation

import math
from collections import deque
from typing import Dict, Iterable, List, Optional

import numpy as np

from ..core.types import UpdateDatum


class EpisodeRewardTracker:
    """Per-environment episode reward accounting.

    Accumulates raw rewards until an environment finishes, then pushes the
    episode total into a moving window of the most recent `window`
    episodes.
    """

    def __init__(self, num_envs: int, window: int = 10):
        self.running_rewards = np.zeros(num_envs, dtype=np.float64)
        self.history = deque(maxlen=window)
        self.episode_count = 0

    def update(self, rewards: np.ndarray, dones: np.ndarray) -> None:
        """Record one step of raw rewards and done flags."""
        self.running_rewards += rewards
        for i in np.flatnonzero(dones):
            self.history.append(float(self.running_rewards[i]))
            self.running_rewards[i] = 0.0
            self.episode_count += 1

    @property
    def average_reward(self) -> Optional[float]:
        """Mean over the episodes currently in the window, None if empty."""
        if not self.history:
            return None
        return float(np.mean(self.history))


def diagnostics_to_dict(update_data: Iterable[UpdateDatum]) -> Dict[str, float]:
    """Flatten update diagnostics into snake_case metric names."""
    return {
        datum.name.lower().replace(" ", "_"): float(datum.value)
        for datum in update_data
    }


def check_training_health(metrics: Dict[str, float]) -> List[str]:
    """Check for signs of policy collapse or training issues.

    Args:
        metrics: Current training metrics

    Returns:
        List of warnings (empty if healthy)
    """
    warnings = []

    for name in ("value_loss", "action_loss", "entropy"):
        value = metrics.get(name)
        if value is not None and not math.isfinite(value):
            warnings.append(f"NON-FINITE {name.upper()}: {value}")

    # Entropy collapse
    entropy = metrics.get("entropy", 1.0)
    if entropy < 0.01:
        warnings.append(f"LOW ENTROPY: {entropy:.3f} - policy may be collapsing")

    # KL divergence spike
    kl = metrics.get("kl_divergence", 0.0)
    if kl > 0.1:
        warnings.append(f"HIGH KL: {kl:.3f} - policy changing too fast")

    # Clip fraction too high
    clip_fraction = metrics.get("clip_fraction", 0.0)
    if clip_fraction > 0.3:
        warnings.append(f"HIGH CLIP FRACTION: {clip_fraction:.2f}")

    # Loss explosion
    action_loss = metrics.get("action_loss", 0.0)
    if abs(action_loss) > 100:
        warnings.append(f"ACTION LOSS EXPLOSION: {action_loss:.2f}")

    value_loss = metrics.get("value_loss", 0.0)
    if value_loss > 1000:
        warnings.append(f"VALUE LOSS EXPLOSION: {value_loss:.2f}")

    return warnings


def compute_explained_variance(
    values: np.ndarray,
    returns: np.ndarray,
) -> float:
    """Compute explained variance of value function.

    EV = 1 - Var(returns - values) / Var(returns)

    Args:
        values: Value predictions
        returns: Computed returns

    Returns:
        Explained variance
    """
    var_returns = np.var(returns)
    if var_returns < 1e-8:
        return 1.0  # Returns are constant
    return float(1 - np.var(returns - values) / var_returns)
