# Rollout storage for on-policy updates

import torch
from typing import Iterator, NamedTuple, Sequence, Union

from ..core.types import ActionSpace
from .returns import compute_returns


class MiniBatch(NamedTuple):
    """One minibatch of flattened rollout samples.

    Samples are flattened time-major, so sample i of the rollout is
    (t, e) = divmod(i, num_envs). `indices` holds those flat positions.
    For recurrent minibatches hidden_states holds only the initial state
    of each selected environment, shape (n_envs, hidden_size).
    """
    indices: torch.Tensor
    observations: torch.Tensor
    hidden_states: torch.Tensor
    actions: torch.Tensor
    value_predictions: torch.Tensor
    returns: torch.Tensor
    masks: torch.Tensor
    action_log_probs: torch.Tensor
    advantages: torch.Tensor


class RolloutStorage:
    """Fixed-capacity, time-major storage for one rollout.

    Observations, hidden states, value predictions, returns and masks span
    num_steps + 1 slots; rewards, actions and action log-probs span
    num_steps. Slot 0 of each cycle carries the final observation, hidden
    state and mask of the previous cycle (see after_update).

    The step cursor wraps to 0 after num_steps inserts and the buffer is
    then full: it must be consumed (compute_returns, update) and recycled
    with after_update before the next insert.
    """

    def __init__(
        self,
        num_steps: int,
        num_envs: int,
        observation_shape: Sequence[int],
        action_space: ActionSpace,
        hidden_size: int,
        device: torch.device = torch.device("cpu"),
    ):
        """Allocate storage.

        Args:
            num_steps: Steps per rollout
            num_envs: Number of parallel environments
            observation_shape: Shape of one environment's observation
            action_space: Action space descriptor
            hidden_size: Width of the recurrent state (1 for feedforward)
            device: Device for all tensors
        """
        if num_steps <= 0 or num_envs <= 0 or hidden_size <= 0:
            raise ValueError(
                f"num_steps, num_envs and hidden_size must be positive, "
                f"got {num_steps}, {num_envs}, {hidden_size}"
            )

        self.num_steps = num_steps
        self.num_envs = num_envs
        self.observation_shape = tuple(int(s) for s in observation_shape)
        self.action_space = action_space
        self.hidden_size = hidden_size
        self.device = torch.device(device)

        T, N = num_steps, num_envs
        self._observations = torch.zeros((T + 1, N, *self.observation_shape), device=self.device)
        self._hidden_states = torch.zeros((T + 1, N, hidden_size), device=self.device)
        self._rewards = torch.zeros((T, N, 1), device=self.device)
        self._value_predictions = torch.zeros((T + 1, N, 1), device=self.device)
        self._returns = torch.zeros((T + 1, N, 1), device=self.device)
        self._action_log_probs = torch.zeros((T, N, 1), device=self.device)
        action_dtype = torch.long if action_space.is_discrete else torch.float32
        self._actions = torch.zeros((T, N, action_space.num_actions), dtype=action_dtype, device=self.device)
        # No episode boundary before the first step
        self._masks = torch.ones((T + 1, N, 1), device=self.device)

        self.step = 0
        self._full = False

    # Read-only views

    @property
    def observations(self) -> torch.Tensor:
        return self._observations

    @property
    def hidden_states(self) -> torch.Tensor:
        return self._hidden_states

    @property
    def rewards(self) -> torch.Tensor:
        return self._rewards

    @property
    def value_predictions(self) -> torch.Tensor:
        return self._value_predictions

    @property
    def returns(self) -> torch.Tensor:
        return self._returns

    @property
    def action_log_probs(self) -> torch.Tensor:
        return self._action_log_probs

    @property
    def actions(self) -> torch.Tensor:
        return self._actions

    @property
    def masks(self) -> torch.Tensor:
        return self._masks

    @property
    def is_full(self) -> bool:
        return self._full

    def _resolve_index(self, index: int, length: int) -> int:
        """Map -1 to the last slot; reject every other negative index."""
        if index == -1:
            return length - 1
        if not 0 <= index < length:
            raise IndexError(f"Slot index {index} out of range for length {length}")
        return index

    def get_observation(self, index: int) -> torch.Tensor:
        return self._observations[self._resolve_index(index, self.num_steps + 1)]

    def get_hidden_state(self, index: int) -> torch.Tensor:
        return self._hidden_states[self._resolve_index(index, self.num_steps + 1)]

    def get_mask(self, index: int) -> torch.Tensor:
        return self._masks[self._resolve_index(index, self.num_steps + 1)]

    def _check_shape(self, name: str, tensor: torch.Tensor, expected: tuple) -> None:
        if tuple(tensor.shape) != expected:
            raise ValueError(f"{name} has shape {tuple(tensor.shape)}, expected {expected}")

    def set_first_observation(self, observation: torch.Tensor) -> None:
        """Seed slot 0 before the first rollout."""
        self._check_shape("observation", observation, (self.num_envs, *self.observation_shape))
        self._observations[0].copy_(observation)

    def insert(
        self,
        observation: torch.Tensor,
        hidden_state: torch.Tensor,
        action: torch.Tensor,
        action_log_prob: torch.Tensor,
        value_prediction: torch.Tensor,
        reward: torch.Tensor,
        mask: torch.Tensor,
    ) -> None:
        """Store one step of every environment.

        observation, hidden_state and mask describe the state after the
        step and go to slot step + 1. action, action_log_prob,
        value_prediction and reward belong to the state the action was
        taken from and go to slot step.
        """
        if self._full:
            raise RuntimeError(
                f"Rollout storage is full ({self.num_steps} steps); "
                "call after_update() before inserting again"
            )

        N = self.num_envs
        self._check_shape("observation", observation, (N, *self.observation_shape))
        self._check_shape("hidden_state", hidden_state, (N, self.hidden_size))
        self._check_shape("action", action, (N, self.action_space.num_actions))
        self._check_shape("action_log_prob", action_log_prob, (N, 1))
        self._check_shape("value_prediction", value_prediction, (N, 1))
        self._check_shape("reward", reward, (N, 1))
        self._check_shape("mask", mask, (N, 1))
        if self.action_space.is_discrete == action.is_floating_point():
            expected = "integral" if self.action_space.is_discrete else "floating-point"
            raise ValueError(
                f"action has dtype {action.dtype}, expected {expected} for "
                f"{self.action_space.type} action space"
            )

        self._observations[self.step + 1].copy_(observation)
        self._hidden_states[self.step + 1].copy_(hidden_state)
        self._actions[self.step].copy_(action)
        self._action_log_probs[self.step].copy_(action_log_prob)
        self._value_predictions[self.step].copy_(value_prediction)
        self._rewards[self.step].copy_(reward)
        self._masks[self.step + 1].copy_(mask)

        self.step = (self.step + 1) % self.num_steps
        if self.step == 0:
            self._full = True

    def after_update(self) -> None:
        """Carry the final observation, hidden state and mask into slot 0."""
        self._observations[0].copy_(self._observations[-1])
        self._hidden_states[0].copy_(self._hidden_states[-1])
        self._masks[0].copy_(self._masks[-1])
        self.step = 0
        self._full = False

    def compute_returns(
        self,
        next_value: torch.Tensor,
        use_gae: bool,
        discount_factor: float,
        gae_lambda: float,
    ) -> None:
        """Fill the returns array in place from a full rollout.

        Args:
            next_value: Value estimate of the final observation, (num_envs, 1)
            use_gae: Use Generalized Advantage Estimation
            discount_factor: Discount factor
            gae_lambda: GAE lambda
        """
        if not self._full:
            raise RuntimeError(
                f"compute_returns() needs a full rollout; only {self.step} of "
                f"{self.num_steps} steps inserted"
            )
        self._check_shape("next_value", next_value, (self.num_envs, 1))

        self._value_predictions[-1].copy_(next_value)
        returns = compute_returns(
            rewards=self._rewards,
            value_predictions=self._value_predictions,
            masks=self._masks,
            next_value=next_value.to(self._returns.dtype),
            use_gae=use_gae,
            discount_factor=discount_factor,
            gae_lambda=gae_lambda,
        )
        self._returns.copy_(returns)

    def to(self, device: Union[str, torch.device]) -> "RolloutStorage":
        """Move all tensors to device."""
        self.device = torch.device(device)
        self._observations = self._observations.to(self.device)
        self._hidden_states = self._hidden_states.to(self.device)
        self._rewards = self._rewards.to(self.device)
        self._value_predictions = self._value_predictions.to(self.device)
        self._returns = self._returns.to(self.device)
        self._action_log_probs = self._action_log_probs.to(self.device)
        self._actions = self._actions.to(self.device)
        self._masks = self._masks.to(self.device)
        return self

    def _advantages(self) -> torch.Tensor:
        return self._returns[:-1] - self._value_predictions[:-1]

    def feed_forward_generator(self, num_mini_batch: int) -> Iterator[MiniBatch]:
        """Yield num_mini_batch shuffled, disjoint minibatches over all samples.

        Time and environment dimensions are flattened into one sample
        dimension; minibatch sizes differ by at most one.
        """
        batch_size = self.num_steps * self.num_envs
        if not 0 < num_mini_batch <= batch_size:
            raise ValueError(
                f"num_mini_batch ({num_mini_batch}) must be in [1, num_steps * num_envs "
                f"= {batch_size}]"
            )

        observations = self._observations[:-1].reshape(batch_size, *self.observation_shape)
        hidden_states = self._hidden_states[:-1].reshape(batch_size, self.hidden_size)
        actions = self._actions.reshape(batch_size, self._actions.size(-1))
        value_predictions = self._value_predictions[:-1].reshape(batch_size, 1)
        returns = self._returns[:-1].reshape(batch_size, 1)
        masks = self._masks[:-1].reshape(batch_size, 1)
        action_log_probs = self._action_log_probs.reshape(batch_size, 1)
        advantages = self._advantages().reshape(batch_size, 1)

        permutation = torch.randperm(batch_size, device=self.device)
        for indices in torch.tensor_split(permutation, num_mini_batch):
            yield MiniBatch(
                indices=indices,
                observations=observations[indices],
                hidden_states=hidden_states[indices],
                actions=actions[indices],
                value_predictions=value_predictions[indices],
                returns=returns[indices],
                masks=masks[indices],
                action_log_probs=action_log_probs[indices],
                advantages=advantages[indices],
            )

    def recurrent_generator(self, num_mini_batch: int) -> Iterator[MiniBatch]:
        """Yield minibatches that partition the environments.

        Each minibatch holds the full trajectories of its environments in
        time order, flattened time-major to (num_steps * n_envs, ...), plus
        the hidden state each trajectory started from.
        """
        if not 0 < num_mini_batch <= self.num_envs:
            raise ValueError(
                f"num_mini_batch ({num_mini_batch}) must be in [1, num_envs = {self.num_envs}] "
                "for recurrent policies"
            )

        T = self.num_steps
        advantages = self._advantages()
        permutation = torch.randperm(self.num_envs, device=self.device)
        for env_ids in torch.tensor_split(permutation, num_mini_batch):
            n = env_ids.numel()
            steps = torch.arange(T, device=self.device).unsqueeze(1)
            indices = (steps * self.num_envs + env_ids.unsqueeze(0)).reshape(T * n)

            def flat(tensor: torch.Tensor) -> torch.Tensor:
                return tensor[:T, env_ids].reshape(T * n, *tensor.shape[2:])

            yield MiniBatch(
                indices=indices,
                observations=flat(self._observations),
                hidden_states=self._hidden_states[0, env_ids],
                actions=flat(self._actions),
                value_predictions=flat(self._value_predictions),
                returns=flat(self._returns),
                masks=flat(self._masks),
                action_log_probs=flat(self._action_log_probs),
                advantages=flat(advantages),
            )
