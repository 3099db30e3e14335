from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from step_loop.contracts.route_contract import LatLon, RoutedPath


class RoutingProvider(ABC):
    """Route a walking path through an ordered list of (lat, lon) points."""

    @abstractmethod
    def route(self, coordinates: Sequence[LatLon]) -> RoutedPath:
        raise NotImplementedError
