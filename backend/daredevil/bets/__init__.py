from .cache import BetCache
from .controller import (
    ActionState,
    BetAction,
    BetActionResult,
    BetLifecycleController,
)

__all__ = [
    "BetCache",
    "ActionState",
    "BetAction",
    "BetActionResult",
    "BetLifecycleController",
]
