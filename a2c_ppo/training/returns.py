# Return and advantage estimation

import torch


def compute_returns(
    rewards: torch.Tensor,
    value_predictions: torch.Tensor,
    masks: torch.Tensor,
    next_value: torch.Tensor,
    use_gae: bool,
    discount_factor: float,
    gae_lambda: float,
) -> torch.Tensor:
    """Compute bootstrapped returns for a filled rollout.

    Without GAE, returns follow the discounted recurrence
    R[t] = R[t+1] * gamma * m[t+1] + r[t].

    With GAE, the running advantage is
    A[t] = delta[t] + gamma * lambda * m[t+1] * A[t+1], where
    delta[t] = r[t] + gamma * v[t+1] * m[t+1] - v[t],
    and R[t] = A[t] + v[t].

    A zero mask at t+1 means the episode ended between t and t+1, so
    nothing propagates back across it. In both variants R[num_steps] is
    next_value itself.

    Args:
        rewards: shape (num_steps, num_envs, 1)
        value_predictions: shape (num_steps + 1, num_envs, 1); the last
            slot is ignored and next_value is used in its place
        masks: shape (num_steps + 1, num_envs, 1)
        next_value: Bootstrap value of the final observation, (num_envs, 1)
        use_gae: Use Generalized Advantage Estimation
        discount_factor: Discount factor (gamma)
        gae_lambda: GAE lambda

    Returns:
        returns: shape (num_steps + 1, num_envs, 1)
    """
    num_steps = rewards.shape[0]
    if value_predictions.shape[0] != num_steps + 1 or masks.shape[0] != num_steps + 1:
        raise ValueError(
            f"Expected value_predictions and masks to span {num_steps + 1} steps, "
            f"got {value_predictions.shape[0]} and {masks.shape[0]}"
        )
    if next_value.shape != value_predictions.shape[1:]:
        raise ValueError(
            f"next_value shape {tuple(next_value.shape)} does not match "
            f"per-step value shape {tuple(value_predictions.shape[1:])}"
        )

    returns = torch.zeros_like(value_predictions)
    returns[-1] = next_value

    if use_gae:
        values = value_predictions.clone()
        values[-1] = next_value
        gae = torch.zeros_like(next_value)
        for t in reversed(range(num_steps)):
            delta = (
                rewards[t]
                + discount_factor * values[t + 1] * masks[t + 1]
                - values[t]
            )
            gae = delta + discount_factor * gae_lambda * masks[t + 1] * gae
            returns[t] = gae + values[t]
    else:
        for t in reversed(range(num_steps)):
            returns[t] = returns[t + 1] * discount_factor * masks[t + 1] + rewards[t]

    return returns
