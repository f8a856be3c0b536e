# Environment module - Vectorized environment collaborator
# FORBIDDEN: models.*, training.*

from .vec_env import make_vec_env, action_space_from_gym, to_env_actions
