"""Actions domain — executor seam and background dispatch."""

from relayguard.actions.dispatcher import ActionDispatcher
from relayguard.actions.executor import ActionExecutor
from relayguard.actions.executor import InMemoryActionExecutor

__all__ = [
    "ActionDispatcher",
    "ActionExecutor",
    "InMemoryActionExecutor",
]
