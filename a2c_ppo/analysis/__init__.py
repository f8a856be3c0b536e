# Analysis module - Logging and metrics
# IMPURE - Has side effects (file I/O, logging)

from .logger import setup_logging, MetricsLogger, ExperimentLogger
from .metrics import EpisodeRewardTracker, check_training_health, diagnostics_to_dict
