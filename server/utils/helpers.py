# server/utils/helpers.py
"""Utility functions and helpers."""

import math
import random

from config.settings import ARENA_WIDTH, ARENA_HEIGHT, MAX_HEALTH


def calculate_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Calculate distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def step_toward(
    x: float, y: float, target_x: float, target_y: float, step: float
) -> tuple:
    """Move a point a fixed distance along the normalized vector to a target.

    A point already sitting on the target stays where it is.
    """
    dx = target_x - x
    dy = target_y - y
    dist = math.hypot(dx, dy)
    if dist == 0:
        return x, y
    return x + (dx / dist) * step, y + (dy / dist) * step


def clamp_health(health: float) -> float:
    """Clamp a health value to [0, MAX_HEALTH]."""
    return max(0, min(MAX_HEALTH, health))


def random_arena_position(rng: random.Random) -> tuple:
    """Pick a uniformly random point inside the arena."""
    return rng.random() * ARENA_WIDTH, rng.random() * ARENA_HEIGHT


def random_edge_position(rng: random.Random) -> tuple:
    """Pick a random point on the left or right edge of the arena."""
    x = 0 if rng.random() > 0.5 else ARENA_WIDTH
    return x, rng.random() * ARENA_HEIGHT
