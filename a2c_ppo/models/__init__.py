# Models module - Neural networks
# FORBIDDEN: env.*, training.*, logging, pathlib

from .policy import Policy
from .base import NNBase, MlpBase, CnnBase
from .distributions import CategoricalHead, DiagGaussianHead
from .normalization import RunningMeanStd
