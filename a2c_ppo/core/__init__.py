# Core module - Pure data types and configuration
# FORBIDDEN: torch, logging, pathlib, any I/O

from .types import ActionSpace, UpdateDatum
from .config import AlgorithmConfig, TrainingConfig, ModelConfig, validate_config
