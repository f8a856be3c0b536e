# Tests for A2C and PPO update procedures

import pytest
import torch
from a2c_ppo.core.config import AlgorithmConfig
from a2c_ppo.core.types import ActionSpace
from a2c_ppo.models import Policy
from a2c_ppo.training import A2C, PPO, make_algorithm
from a2c_ppo.training.storage import RolloutStorage


NUM_STEPS = 6
NUM_ENVS = 4
OBS_DIM = 3


def _make_policy(action_space, recurrent=False):
    return Policy.build(
        observation_shape=(OBS_DIM,),
        action_space=action_space,
        hidden_size=8,
        recurrent=recurrent,
        normalize_observations=False,
    )


def _collect(policy, action_space):
    """Fill a storage by acting with the policy on random observations."""
    storage = RolloutStorage(
        NUM_STEPS, NUM_ENVS, (OBS_DIM,), action_space, policy.recurrent_hidden_state_size
    )
    storage.set_first_observation(torch.randn(NUM_ENVS, OBS_DIM))
    for step in range(NUM_STEPS):
        with torch.no_grad():
            value, action, log_prob, hidden = policy.act(
                storage.observations[step],
                storage.hidden_states[step],
                storage.masks[step],
            )
        done = torch.rand(NUM_ENVS, 1) < 0.2
        storage.insert(
            torch.randn(NUM_ENVS, OBS_DIM),
            hidden,
            action,
            log_prob,
            value,
            torch.randn(NUM_ENVS, 1),
            (~done).float(),
        )
    with torch.no_grad():
        next_value = policy.get_values(
            storage.get_observation(-1), storage.get_hidden_state(-1), storage.get_mask(-1)
        )
    storage.compute_returns(next_value, True, 0.99, 0.95)
    return storage


def _params(policy):
    return [p.detach().clone() for p in policy.parameters()]


def _changed(before, policy):
    return any(not torch.equal(b, p) for b, p in zip(before, policy.parameters()))


def _as_dict(update_data):
    return {datum.name: datum.value for datum in update_data}


class TestMakeAlgorithm:

    def test_ppo(self, discrete_space):
        algorithm = make_algorithm(_make_policy(discrete_space), AlgorithmConfig(name="ppo"))
        assert isinstance(algorithm, PPO)
        assert isinstance(algorithm.optimizer, torch.optim.Adam)

    def test_a2c(self, discrete_space):
        algorithm = make_algorithm(_make_policy(discrete_space), AlgorithmConfig(name="A2C"))
        assert isinstance(algorithm, A2C)
        assert isinstance(algorithm.optimizer, torch.optim.RMSprop)

    def test_unknown(self, discrete_space):
        with pytest.raises(ValueError):
            make_algorithm(_make_policy(discrete_space), AlgorithmConfig(name="trpo"))


class TestA2C:

    @pytest.mark.parametrize("recurrent", [False, True])
    def test_update(self, set_seed, discrete_space, recurrent):
        """Single pass produces finite diagnostics and moves the parameters."""
        policy = _make_policy(discrete_space, recurrent)
        storage = _collect(policy, discrete_space)
        algorithm = A2C(policy, AlgorithmConfig(name="a2c", learning_rate=1e-2))
        before = _params(policy)

        update_data = algorithm.update(storage)

        diagnostics = _as_dict(update_data)
        assert [d.name for d in update_data] == ["Value loss", "Action loss", "Entropy"]
        assert all(torch.isfinite(torch.tensor(v)) for v in diagnostics.values())
        assert diagnostics["Value loss"] >= 0
        assert _changed(before, policy)

    def test_box_actions(self, set_seed, box_space):
        policy = _make_policy(box_space)
        storage = _collect(policy, box_space)
        algorithm = A2C(policy, AlgorithmConfig(name="a2c"))
        diagnostics = _as_dict(algorithm.update(storage))
        assert diagnostics["Entropy"] > 0

    def test_zero_decay_leaves_parameters(self, set_seed, discrete_space):
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        algorithm = A2C(policy, AlgorithmConfig(name="a2c"))
        before = _params(policy)

        algorithm.update(storage, decay_level=0.0)

        assert not _changed(before, policy)


class TestPPO:

    def _config(self, **kwargs):
        defaults = dict(name="ppo", num_epoch=3, num_mini_batch=4, learning_rate=1e-3)
        defaults.update(kwargs)
        return AlgorithmConfig(**defaults)

    def test_full_iterations_without_early_stop(self, set_seed, discrete_space):
        """A KL target that is never exceeded runs every epoch and minibatch."""
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(policy, self._config(kl_target=1e9))

        diagnostics = _as_dict(algorithm.update(storage))

        assert diagnostics["Minibatch updates"] == 12
        assert diagnostics["Early stopped"] == 0.0

    def test_early_stop_counts_triggering_minibatch(self, set_seed, discrete_space):
        """The approximate KL is never negative, so a negative target stops after one."""
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(policy, self._config(kl_target=-1.0))
        before = _params(policy)

        diagnostics = _as_dict(algorithm.update(storage))

        assert diagnostics["Minibatch updates"] == 1
        assert diagnostics["Early stopped"] == 1.0
        assert _changed(before, policy)

    def test_first_minibatch_kl_is_zero(self, set_seed, discrete_space):
        """Before any step the policy matches the behaviour policy."""
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(policy, self._config(kl_target=-1.0))

        diagnostics = _as_dict(algorithm.update(storage))

        assert diagnostics["KL divergence"] == pytest.approx(0.0, abs=1e-5)
        assert diagnostics["Clip fraction"] == 0.0

    def test_large_steps_stop_early(self, set_seed, discrete_space):
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(
            policy,
            self._config(kl_target=1e-6, learning_rate=0.5, max_grad_norm=100.0, num_epoch=10),
        )

        diagnostics = _as_dict(algorithm.update(storage))

        assert diagnostics["Minibatch updates"] < 40
        assert diagnostics["Early stopped"] == 1.0

    def test_diagnostics(self, set_seed, box_space):
        policy = _make_policy(box_space)
        storage = _collect(policy, box_space)
        algorithm = PPO(policy, self._config(kl_target=1e9))

        diagnostics = _as_dict(algorithm.update(storage))

        for name in ("Value loss", "Action loss", "Entropy", "KL divergence", "Clip fraction"):
            assert name in diagnostics
            assert torch.isfinite(torch.tensor(diagnostics[name]))
        assert 0.0 <= diagnostics["Clip fraction"] <= 1.0
        assert diagnostics["KL divergence"] >= 0.0

    def test_recurrent(self, set_seed, discrete_space):
        """Recurrent policies draw minibatches by environment."""
        policy = _make_policy(discrete_space, recurrent=True)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(policy, self._config(num_mini_batch=2, kl_target=1e9))

        diagnostics = _as_dict(algorithm.update(storage))

        assert diagnostics["Minibatch updates"] == 6

    def test_recurrent_too_many_minibatches(self, set_seed, discrete_space):
        policy = _make_policy(discrete_space, recurrent=True)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(policy, self._config(num_mini_batch=NUM_ENVS + 1))

        with pytest.raises(ValueError):
            algorithm.update(storage)


class TestLearningRateDecay:

    @pytest.mark.parametrize("algorithm_cls", [A2C, PPO])
    def test_decay_scales_learning_rate(self, set_seed, discrete_space, algorithm_cls):
        """Learning rate becomes learning_rate * decay_level."""
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        config = AlgorithmConfig(learning_rate=2e-3, num_epoch=1, num_mini_batch=2)
        algorithm = algorithm_cls(policy, config)

        algorithm.update(storage, decay_level=0.25)

        for group in algorithm.optimizer.param_groups:
            assert group["lr"] == pytest.approx(5e-4)

    @pytest.mark.parametrize("decay_level", [-0.1, 1.5])
    def test_invalid_decay(self, set_seed, discrete_space, decay_level):
        policy = _make_policy(discrete_space)
        storage = _collect(policy, discrete_space)
        algorithm = PPO(policy, AlgorithmConfig())

        with pytest.raises(ValueError):
            algorithm.update(storage, decay_level=decay_level)
