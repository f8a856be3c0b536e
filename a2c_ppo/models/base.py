# Actor-critic feature extractors
# FORBIDDEN: env.*, training.*, logging, pathlib

import torch
import torch.nn as nn
from typing import Sequence, Tuple

from .blocks import get_activation, init_layer, mlp


class NNBase(nn.Module):
    """Shared base with an optional GRU.

    Subclasses produce (value, actor_features, hidden_states). When
    recurrent, the GRU accepts either a single step for N environments
    (inputs of size N) or a time-major sequence of T steps (inputs of size
    T * N, with hidden_states of size N). Hidden state is zeroed wherever
    the mask is 0.
    """

    def __init__(self, recurrent: bool, recurrent_input_size: int, hidden_size: int):
        super().__init__()

        self.hidden_size = hidden_size
        self._recurrent = recurrent

        if recurrent:
            self.gru = nn.GRU(recurrent_input_size, hidden_size)
            for name, param in self.gru.named_parameters():
                if "bias" in name:
                    nn.init.zeros_(param)
                elif "weight" in name:
                    nn.init.orthogonal_(param)

    @property
    def is_recurrent(self) -> bool:
        return self._recurrent

    @property
    def recurrent_hidden_state_size(self) -> int:
        if self._recurrent:
            return self.hidden_size
        return 1

    @property
    def output_size(self) -> int:
        return self.hidden_size

    def _forward_gru(
        self,
        x: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        if x.size(0) == hidden_states.size(0):
            x, hidden_states = self.gru(
                x.unsqueeze(0),
                (hidden_states * masks).unsqueeze(0),
            )
            return x.squeeze(0), hidden_states.squeeze(0)

        N = hidden_states.size(0)
        if x.size(0) % N != 0:
            raise ValueError(
                f"Sequence batch of {x.size(0)} is not a multiple of {N} hidden states"
            )
        T = x.size(0) // N
        x = x.view(T, N, x.size(1))
        masks = masks.view(T, N, 1)

        outputs = []
        for t in range(T):
            out, h = self.gru(
                x[t].unsqueeze(0),
                (hidden_states * masks[t]).unsqueeze(0),
            )
            hidden_states = h.squeeze(0)
            outputs.append(out.squeeze(0))

        x = torch.stack(outputs, dim=0).view(T * N, -1)
        return x, hidden_states


class MlpBase(NNBase):
    """Separate tanh MLP trunks for actor and critic, for flat observations."""

    def __init__(self, num_inputs: int, recurrent: bool = False, hidden_size: int = 64):
        super().__init__(recurrent, num_inputs, hidden_size)

        if recurrent:
            num_inputs = hidden_size

        self.actor = mlp(num_inputs, [hidden_size, hidden_size], activation="tanh")
        self.critic = mlp(num_inputs, [hidden_size, hidden_size], activation="tanh")
        self.critic_linear = init_layer(nn.Linear(hidden_size, 1))

        self.train()

    def forward(
        self,
        inputs: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        x = inputs
        if self.is_recurrent:
            x, hidden_states = self._forward_gru(x, hidden_states, masks)

        hidden_critic = self.critic(x)
        hidden_actor = self.actor(x)

        return self.critic_linear(hidden_critic), hidden_actor, hidden_states


class CnnBase(NNBase):
    """Convolutional trunk for channel-first image observations (0-255)."""

    def __init__(
        self,
        observation_shape: Sequence[int],
        recurrent: bool = False,
        hidden_size: int = 512,
    ):
        super().__init__(recurrent, hidden_size, hidden_size)

        relu_gain = nn.init.calculate_gain("relu")
        num_inputs = observation_shape[0]

        conv = nn.Sequential(
            init_layer(nn.Conv2d(num_inputs, 32, 8, stride=4), relu_gain),
            get_activation("relu"),
            init_layer(nn.Conv2d(32, 64, 4, stride=2), relu_gain),
            get_activation("relu"),
            init_layer(nn.Conv2d(64, 32, 3, stride=1), relu_gain),
            get_activation("relu"),
            nn.Flatten(),
        )
        with torch.no_grad():
            flat_size = conv(torch.zeros(1, *observation_shape)).shape[1]

        self.main = nn.Sequential(
            conv,
            init_layer(nn.Linear(flat_size, hidden_size), relu_gain),
            get_activation("relu"),
        )
        self.critic_linear = init_layer(nn.Linear(hidden_size, 1))

        self.train()

    def forward(
        self,
        inputs: torch.Tensor,
        hidden_states: torch.Tensor,
        masks: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        x = self.main(inputs / 255.0)

        if self.is_recurrent:
            x, hidden_states = self._forward_gru(x, hidden_states, masks)

        return self.critic_linear(x), x, hidden_states
