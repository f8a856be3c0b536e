# Training module - Orchestration
# This module may import from all other package modules

from .storage import RolloutStorage, MiniBatch
from .returns import compute_returns
from .algorithm import Algorithm, make_algorithm
from .a2c import A2C
from .ppo import PPO
from .reward import RewardNormalizer
from .rollout import collect_rollout
from .trainer import Trainer
