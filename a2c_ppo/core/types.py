# Core type definitions
# FORBIDDEN: torch, logging, any I/O

from dataclasses import dataclass
from typing import NamedTuple, Tuple


DISCRETE = "Discrete"
BOX = "Box"


@dataclass(frozen=True)
class ActionSpace:
    """Immutable action space descriptor.
    
    Discrete spaces are stored as a single integral index per environment,
    Box spaces as a floating-point vector of width shape[0].
    """
    type: str
    shape: Tuple[int, ...]
    
    def __post_init__(self):
        if self.type not in (DISCRETE, BOX):
            raise ValueError(f"Unknown action space type: {self.type}. Expected '{DISCRETE}' or '{BOX}'")
        # Accept lists from YAML / gym shapes
        object.__setattr__(self, "shape", tuple(int(s) for s in self.shape))
        if len(self.shape) == 0:
            raise ValueError("Action space shape must have at least one dimension")
    
    @property
    def is_discrete(self) -> bool:
        return self.type == DISCRETE
    
    @property
    def num_actions(self) -> int:
        """Width of one environment's action in the rollout buffer."""
        if self.is_discrete:
            return 1
        return self.shape[0]


class UpdateDatum(NamedTuple):
    """One named scalar diagnostic produced by an update."""
    name: str
    value: float
