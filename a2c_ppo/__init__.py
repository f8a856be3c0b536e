"""On-policy actor-critic training (A2C / PPO) against vectorized environments."""

__version__ = "0.1.0"
