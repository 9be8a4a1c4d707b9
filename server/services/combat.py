# server/services/combat.py
"""Per-tick combat rules: safe zone, exposure, bot movement and guard pursuit.

Everything here is a pure function of the records passed in. Randomness
comes from the caller's ``random.Random`` so outcomes can be seeded.
"""

import math
import random
from typing import Tuple

from models.entities import Guard, Player, SafeZone
from config.settings import (
    SAFE_ZONE_RADIUS,
    SAFE_ZONE_MIN_RADIUS,
    SAFE_ZONE_SHRINK,
    SAFE_ZONE_ALERT_STEP,
    BOT_STEP,
    BOT_CENTER_EPSILON,
    BOT_ATTRITION_BASE,
    BOT_ATTRITION_SCALE,
    GUARD_CAPTURE_RADIUS,
)
from utils.helpers import calculate_distance, step_toward


# Safe zone
def shrink_zone(zone: SafeZone) -> Tuple[float, bool]:
    """Return the next radius and whether it crossed an alert boundary."""
    next_radius = max(zone.radius - SAFE_ZONE_SHRINK, SAFE_ZONE_MIN_RADIUS)
    floored = math.floor(next_radius)
    alert = floored % SAFE_ZONE_ALERT_STEP == 0 and floored != math.floor(zone.radius)
    return next_radius, alert


def is_exposed(player: Player, zone: SafeZone) -> bool:
    """Check whether a player stands outside the safe zone."""
    return calculate_distance(player.x, player.y, zone.x, zone.y) > zone.radius


# Bots
def step_bot(bot: Player, zone: SafeZone) -> Tuple[float, float]:
    """Return the bot's next position, walking toward the zone center."""
    if calculate_distance(bot.x, bot.y, zone.x, zone.y) <= BOT_CENTER_EPSILON:
        return bot.x, bot.y
    return step_toward(bot.x, bot.y, zone.x, zone.y, BOT_STEP)


def attrition_chance(zone: SafeZone) -> float:
    """Chance that a bot is eliminated outright this tick."""
    return BOT_ATTRITION_BASE + (SAFE_ZONE_RADIUS - zone.radius) / BOT_ATTRITION_SCALE


def rolls_attrition(zone: SafeZone, rng: random.Random) -> bool:
    return rng.random() < attrition_chance(zone)


# Guards
def advance_guard(guard: Guard, target: Player) -> Tuple[float, float]:
    """Return the guard's next position, one step toward its target."""
    return step_toward(guard.x, guard.y, target.x, target.y, guard.speed)


def is_captured(guard: Guard, target: Player) -> bool:
    return calculate_distance(guard.x, guard.y, target.x, target.y) < GUARD_CAPTURE_RADIUS
