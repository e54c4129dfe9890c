"""Run the routing strategies in priority order.

A ``RouteResolver`` belongs to one map instance.  Starting a new resolution
cancels the one still in flight, and a cancelled run never returns a
result: it raises ``ResolutionCancelled`` instead, so late responses are
not applied to a map that has already moved on.

Usage:
    resolver = RouteResolver()
    resolution = resolver.resolve(trip.locations)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, List, Optional, Sequence

from .errors import ResolutionCancelled, ResolutionExhausted
from .models import Failure, Resolution, ResolutionKind
from .strategies import RoutingStrategy, default_strategies
from .waypoints import validate_waypoints

log = logging.getLogger(__name__)


class ResolutionToken:
    """Identifies one resolution run; flipped when the run is superseded."""

    def __init__(self, generation: int):
        self.generation = generation
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class RouteResolver:
    def __init__(self, strategies: Optional[Sequence[RoutingStrategy]] = None):
        self.strategies: List[RoutingStrategy] = (
            list(strategies) if strategies is not None else default_strategies()
        )
        self._lock = threading.Lock()
        self._generation = 0
        self._active: Optional[ResolutionToken] = None

    # -- run bookkeeping ------------------------------------------------------

    def _begin(self) -> ResolutionToken:
        with self._lock:
            if self._active is not None:
                log.debug("Cancelling resolution #%d", self._active.generation)
                self._active.cancel()
            self._generation += 1
            self._active = ResolutionToken(self._generation)
            return self._active

    def _finish(self, token: ResolutionToken) -> None:
        with self._lock:
            if self._active is token:
                self._active = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._active is not None

    def cancel(self) -> None:
        """Cancel the in-flight resolution, if any."""
        with self._lock:
            if self._active is not None:
                self._active.cancel()
                self._active = None

    # -- resolution -----------------------------------------------------------

    def resolve(self, records: Optional[Iterable[Any]]) -> Resolution:
        """Validate *records* and resolve a route through them.

        Returns an empty resolution for no valid waypoints and a single-point
        one for exactly one; otherwise tries each strategy until one succeeds.
        Raises ResolutionCancelled if superseded while running, and
        ResolutionExhausted if no strategy produced a route.
        """
        waypoints = validate_waypoints(records)
        token = self._begin()
        try:
            if not waypoints:
                return Resolution.empty()
            if len(waypoints) == 1:
                return Resolution.single(waypoints[0])
            return self._run_strategies(tuple(waypoints), token)
        finally:
            self._finish(token)

    def _run_strategies(self, waypoints, token: ResolutionToken) -> Resolution:
        attempts: List[str] = []
        for strategy in self.strategies:
            if token.cancelled:
                raise ResolutionCancelled(f"resolution #{token.generation} cancelled")

            attempts.append(strategy.name)
            try:
                result = strategy.resolve(waypoints, token)
            except Exception as exc:
                log.warning("Routing strategy %s raised: %s", strategy.name, exc)
                result = Failure(f"{type(exc).__name__}: {exc}")

            if token.cancelled:
                raise ResolutionCancelled(f"resolution #{token.generation} cancelled")

            if result.ok:
                log.info(
                    "Resolved %d waypoints via %s (%.1f km)",
                    len(waypoints), strategy.name, result.route.distance_meters / 1000,
                )
                return Resolution(
                    kind=ResolutionKind.ROUTE,
                    waypoints=waypoints,
                    route=result.route,
                    attempts=tuple(attempts),
                )

            log.warning("Routing strategy %s failed (%s), falling back", strategy.name, result.reason)

        raise ResolutionExhausted(attempts)


def resolve_route(records: Optional[Iterable[Any]], strategies: Optional[Sequence[RoutingStrategy]] = None) -> Resolution:
    """One-off resolution with a throwaway resolver."""
    return RouteResolver(strategies).resolve(records)
