# Tests for return and advantage estimation

import pytest
import torch
from a2c_ppo.core.types import ActionSpace
from a2c_ppo.training.returns import compute_returns
from a2c_ppo.training.storage import RolloutStorage


@pytest.fixture
def scenario_storage():
    """Two environments, three steps; env 1 ends its episode after step 1."""
    storage = RolloutStorage(3, 2, (4,), ActionSpace("Discrete", (3,)), 5)
    value_preds = [[0.0, 1.0], [1.0, 2.0], [2.0, 3.0]]
    rewards = [[0.0, 1.0], [1.0, 2.0], [2.0, 3.0]]
    masks = [[1.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
    for v, r, m in zip(value_preds, rewards, masks):
        storage.insert(
            torch.zeros(2, 4),
            torch.zeros(2, 5),
            torch.zeros(2, 1, dtype=torch.long),
            torch.zeros(2, 1),
            torch.tensor(v).unsqueeze(1),
            torch.tensor(r).unsqueeze(1),
            torch.tensor(m).unsqueeze(1),
        )
    return storage


class TestStorageComputeReturns:

    def test_without_gae(self, scenario_storage):
        """Discounted returns with bootstrap and episode cut."""
        scenario_storage.compute_returns(torch.tensor([[0.0], [1.0]]), False, 0.6, 0.6)

        expected = torch.tensor([[1.32, 2.2], [2.2, 2.0], [2.0, 3.6], [0.0, 1.0]]).unsqueeze(-1)
        assert torch.allclose(scenario_storage.returns, expected, atol=1e-5)

    def test_with_gae(self, scenario_storage):
        scenario_storage.compute_returns(torch.tensor([[0.0], [1.0]]), True, 0.6, 0.6)

        expected = torch.tensor([[1.032, 2.2], [2.2, 2.0], [2.0, 3.6], [0.0, 1.0]]).unsqueeze(-1)
        assert torch.allclose(scenario_storage.returns, expected, atol=1e-5)

    def test_bootstrap_slot_is_next_value(self, scenario_storage):
        """Both variants store next_value itself in the final slot."""
        next_value = torch.tensor([[0.37], [-1.25]])

        scenario_storage.compute_returns(next_value, False, 0.6, 0.6)
        plain = scenario_storage.returns[-1].clone()
        scenario_storage.compute_returns(next_value, True, 0.6, 0.6)
        gae = scenario_storage.returns[-1].clone()

        assert torch.equal(plain, next_value)
        assert torch.equal(gae, next_value)
        assert torch.equal(scenario_storage.value_predictions[-1], next_value)

    def test_recompute_is_idempotent(self, scenario_storage):
        next_value = torch.tensor([[0.0], [1.0]])
        scenario_storage.compute_returns(next_value, True, 0.6, 0.6)
        first = scenario_storage.returns.clone()
        scenario_storage.compute_returns(next_value, True, 0.6, 0.6)
        assert torch.equal(scenario_storage.returns, first)


class TestComputeReturnsFunction:

    def test_gae_lambda_one_matches_plain(self, set_seed):
        """With lambda = 1, GAE returns equal discounted returns."""
        T, N = 6, 3
        rewards = torch.randn(T, N, 1)
        values = torch.randn(T + 1, N, 1)
        masks = torch.ones(T + 1, N, 1)
        masks[3, 1] = 0.0
        next_value = torch.randn(N, 1)

        plain = compute_returns(rewards, values, masks, next_value, False, 0.9, 1.0)
        gae = compute_returns(rewards, values, masks, next_value, True, 0.9, 1.0)

        assert torch.allclose(plain, gae, atol=1e-5)

    def test_zero_mask_blocks_propagation(self):
        """Nothing after a zero mask leaks into earlier returns."""
        T, N = 4, 1
        rewards = torch.zeros(T, N, 1)
        rewards[3] = 100.0
        values = torch.zeros(T + 1, N, 1)
        masks = torch.ones(T + 1, N, 1)
        masks[2] = 0.0
        next_value = torch.full((N, 1), 50.0)

        for use_gae in (False, True):
            returns = compute_returns(rewards, values, masks, next_value, use_gae, 0.99, 0.95)
            assert torch.all(returns[:2] == 0)
            assert returns[2].item() > 0

    def test_does_not_modify_inputs(self):
        T, N = 3, 2
        values = torch.ones(T + 1, N, 1)
        before = values.clone()
        compute_returns(torch.ones(T, N, 1), values, torch.ones(T + 1, N, 1),
                        torch.zeros(N, 1), True, 0.99, 0.95)
        assert torch.equal(values, before)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            compute_returns(torch.ones(3, 2, 1), torch.ones(3, 2, 1), torch.ones(4, 2, 1),
                            torch.zeros(2, 1), False, 0.99, 0.95)
        with pytest.raises(ValueError):
            compute_returns(torch.ones(3, 2, 1), torch.ones(4, 2, 1), torch.ones(4, 2, 1),
                            torch.zeros(3, 1), False, 0.99, 0.95)
