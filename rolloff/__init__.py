"""rolloff package for rolloff-roof."""

from .state import RoofState, RoofStatus, Motion, Reply
from .controller import RoofController
from .link import ControllerLink

__all__ = ["RoofState", "RoofStatus", "Motion", "Reply", "RoofController", "ControllerLink"]
