"""Client for the paid animal lookup."""

from .flow import AnimalLookupFlow, BrowserNavigator, FlowState, Navigator

__all__ = [
    "AnimalLookupFlow",
    "BrowserNavigator",
    "FlowState",
    "Navigator",
]
