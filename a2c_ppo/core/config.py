# Hyperparameter structs
# FORBIDDEN: torch, logging, any I/O

from dataclasses import dataclass, fields
from typing import Any, Dict, List


ALGORITHMS = ("a2c", "ppo")


def _section(config: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Walk nested config sections, treating missing ones as empty."""
    d = config
    for key in keys:
        d = d.get(key) or {}
    return d


def _pick(cls, values: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in values.items() if k in names}


@dataclass(frozen=True)
class AlgorithmConfig:
    """Update procedure hyperparameters.

    Shared loss weights apply to both A2C and PPO. clip_param, num_epoch,
    num_mini_batch and kl_target are PPO only; alpha is A2C (RMSprop) only.
    """
    name: str = "ppo"
    actor_loss_coef: float = 1.0
    value_loss_coef: float = 0.5
    entropy_coef: float = 1e-3
    learning_rate: float = 1e-3
    epsilon: float = 1e-8
    max_grad_norm: float = 0.5
    alpha: float = 0.99
    clip_param: float = 0.2
    num_epoch: int = 3
    num_mini_batch: int = 20
    kl_target: float = 0.5

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "AlgorithmConfig":
        """Build from the `algorithm` section of a YAML config.

        Algorithm-specific subsections (`algorithm.ppo`, `algorithm.a2c`)
        are merged over the shared keys.
        """
        section = _section(config, "algorithm")
        values = {k: v for k, v in section.items() if not isinstance(v, dict)}
        values.update(_section(config, "algorithm", "a2c"))
        values.update(_section(config, "algorithm", "ppo"))
        return cls(**_pick(cls, values))


@dataclass(frozen=True)
class TrainingConfig:
    """Rollout and driver settings."""
    num_envs: int = 8
    num_steps: int = 40
    max_frames: int = 100_000_000
    discount_factor: float = 0.99
    use_gae: bool = True
    gae_lambda: float = 0.9
    use_lr_decay: bool = False
    reward_clip: float = 100.0
    reward_average_window: int = 10
    log_interval: int = 10
    seed: int = 0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "TrainingConfig":
        values = dict(_section(config, "training"))
        env = _section(config, "env")
        if "num_envs" in env:
            values["num_envs"] = env["num_envs"]
        experiment = _section(config, "experiment")
        if "seed" in experiment:
            values["seed"] = experiment["seed"]
        return cls(**_pick(cls, values))

    @property
    def frames_per_update(self) -> int:
        return self.num_steps * self.num_envs

    @property
    def num_updates(self) -> int:
        return int(self.max_frames) // self.frames_per_update


@dataclass(frozen=True)
class ModelConfig:
    hidden_size: int = 64
    recurrent: bool = False
    normalize_observations: bool = True

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ModelConfig":
        return cls(**_pick(cls, _section(config, "model")))


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate configuration.

    Args:
        config: Configuration dictionary

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    required_sections = ["experiment", "env", "model", "algorithm", "training"]
    for section in required_sections:
        if section not in config:
            errors.append(f"Missing required section: {section}")

    if "device" in config:
        device_type = (config["device"] or {}).get("type", "cpu")
        if device_type not in ["cpu", "cuda"]:
            errors.append(f"device.type must be 'cpu' or 'cuda', got '{device_type}'")

    if "env" in config and not (config["env"] or {}).get("id"):
        errors.append("env.id is required")

    try:
        algorithm = AlgorithmConfig.from_dict(config)
        training = TrainingConfig.from_dict(config)
        model = ModelConfig.from_dict(config)
    except (TypeError, AttributeError) as e:
        errors.append(f"Malformed configuration: {e}")
        return errors

    if algorithm.name not in ALGORITHMS:
        errors.append(f"algorithm.name must be one of {ALGORITHMS}, got '{algorithm.name}'")
    if algorithm.learning_rate <= 0:
        errors.append(f"algorithm.learning_rate must be positive, got {algorithm.learning_rate}")
    if algorithm.epsilon <= 0:
        errors.append(f"algorithm.epsilon must be positive, got {algorithm.epsilon}")
    if algorithm.clip_param <= 0:
        errors.append(f"algorithm.ppo.clip_param must be positive, got {algorithm.clip_param}")
    if algorithm.num_epoch <= 0:
        errors.append(f"algorithm.ppo.num_epoch must be positive, got {algorithm.num_epoch}")
    if algorithm.num_mini_batch <= 0:
        errors.append(f"algorithm.ppo.num_mini_batch must be positive, got {algorithm.num_mini_batch}")

    if training.num_envs <= 0:
        errors.append(f"training.num_envs must be positive, got {training.num_envs}")
    if training.num_steps <= 0:
        errors.append(f"training.num_steps must be positive, got {training.num_steps}")
    if training.num_envs > 0 and training.num_steps > 0 and training.num_updates <= 0:
        errors.append(
            f"training.max_frames ({training.max_frames}) is smaller than one rollout "
            f"({training.frames_per_update} frames)"
        )
    if not 0.0 <= training.discount_factor <= 1.0:
        errors.append(f"training.discount_factor must be in [0, 1], got {training.discount_factor}")
    if not 0.0 <= training.gae_lambda <= 1.0:
        errors.append(f"training.gae_lambda must be in [0, 1], got {training.gae_lambda}")
    if training.reward_average_window <= 0:
        errors.append(f"training.reward_average_window must be positive, got {training.reward_average_window}")
    if training.log_interval <= 0:
        errors.append(f"training.log_interval must be positive, got {training.log_interval}")

    if algorithm.name == "ppo" and training.num_envs > 0 and training.num_steps > 0:
        if model.recurrent:
            if algorithm.num_mini_batch > training.num_envs:
                errors.append(
                    f"Recurrent PPO needs num_envs ({training.num_envs}) >= "
                    f"num_mini_batch ({algorithm.num_mini_batch})"
                )
        elif algorithm.num_mini_batch > training.frames_per_update:
            errors.append(
                f"PPO needs num_steps * num_envs ({training.frames_per_update}) >= "
                f"num_mini_batch ({algorithm.num_mini_batch})"
            )

    if model.hidden_size <= 0:
        errors.append(f"model.hidden_size must be positive, got {model.hidden_size}")

    return errors
