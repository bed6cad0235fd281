"""Route group exports."""

from . import assignments, drivers, health, routes

__all__ = ["routes", "drivers", "assignments", "health"]
