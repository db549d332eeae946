"""Routing — per-method route table with ``:param`` and ``*`` patterns.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes.
"""

from wren.routing.matcher import PathMatch, match_path
from wren.routing.route import METHODS, Route, RouteMatch
from wren.routing.router import RouteTable, Router, join_paths

__all__ = [
    "METHODS",
    "PathMatch",
    "Route",
    "RouteMatch",
    "RouteTable",
    "Router",
    "join_paths",
    "match_path",
]
