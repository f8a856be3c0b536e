# Reusable network building blocks
# FORBIDDEN: env.*, training.*, logging, pathlib

import torch.nn as nn
from typing import List


def get_activation(name: str) -> nn.Module:
    """Get activation function by name.
    
    Args:
        name: Activation name ("relu", "tanh")
        
    Returns:
        Activation module
    """
    activations = {
        "relu": nn.ReLU,
        "tanh": nn.Tanh,
    }
    if name not in activations:
        raise ValueError(f"Unknown activation: {name}. Available: {list(activations.keys())}")
    return activations[name]()


def init_layer(module: nn.Module, gain: float = 1.0) -> nn.Module:
    """Orthogonal weights, zero bias. Returns the module for inline use."""
    nn.init.orthogonal_(module.weight, gain=gain)
    if module.bias is not None:
        nn.init.zeros_(module.bias)
    return module


def mlp(
    input_dim: int,
    hidden_dims: List[int],
    activation: str = "tanh",
    gain: float = 2 ** 0.5,
) -> nn.Sequential:
    """Stack of Linear + activation layers (no output projection)."""
    layers = []
    in_dim = input_dim
    for h_dim in hidden_dims:
        layers.append(init_layer(nn.Linear(in_dim, h_dim), gain))
        layers.append(get_activation(activation))
        in_dim = h_dim
    return nn.Sequential(*layers)
