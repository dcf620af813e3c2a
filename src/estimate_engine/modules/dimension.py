"""
Dimension Engine.
Calculates expected quantities from measured room dimensions.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from ..core.findings import LossSeverity, LossType
from ..core.models import (
    CeilingType,
    ExpectedQuantities,
    Room,
    RoomQuantities,
    ScopeRule,
)
from ..exceptions import GeometryValidationError

logger = logging.getLogger(__name__)

MAX_DIMENSION_FT = 100.0

CEILING_FACTORS = MappingProxyType(
    {
        CeilingType.FLAT: 1.0,
        CeilingType.VAULTED: 1.30,
        CeilingType.CATHEDRAL: 1.30,
        CeilingType.TRAY: 1.15,
        CeilingType.COFFERED: 1.25,
    }
)

# rule -> (wall multiplier, ceiling multiplier)
SCOPE_MULTIPLIERS = MappingProxyType(
    {
        ScopeRule.FULL_HEIGHT: (1.0, 1.0),
        ScopeRule.CUT_2FT: (2 / 8, 1.0),
        ScopeRule.CUT_4FT: (4 / 8, 1.0),
        ScopeRule.CUT_6FT: (6 / 8, 1.0),
        ScopeRule.CEILING_ONLY: (0.0, 1.0),
        ScopeRule.FLOOR_ONLY: (0.0, 0.0),
    }
)

# Cut height in feet for partial-height removal rules.
CUT_HEIGHTS = MappingProxyType(
    {ScopeRule.CUT_2FT: 2.0, ScopeRule.CUT_4FT: 4.0, ScopeRule.CUT_6FT: 6.0}
)

RoomInput = Room | Mapping[str, Any]


def _coerce_rooms(rooms: Iterable[RoomInput]) -> list[Room]:
    return [room if isinstance(room, Room) else Room.model_validate(room) for room in rooms]


def validate_rooms(rooms: Iterable[RoomInput]) -> list[str]:
    """
    Validate room dimensions.

    Returns:
        Every error found; an empty list means the rooms are usable
    """
    rooms = _coerce_rooms(rooms)
    if not rooms:
        return ["No rooms provided"]

    errors = []
    for index, room in enumerate(rooms, start=1):
        label = f'Room "{room.name}"' if room.name.strip() else f"Room {index}"
        if not room.name.strip():
            errors.append(f"Room {index}: Missing name")
        for field in ("length", "width", "height"):
            value = getattr(room, field)
            if value <= 0:
                errors.append(f"{label}: Invalid {field} ({value:g})")
            elif value > MAX_DIMENSION_FT:
                errors.append(
                    f"{label}: {field.capitalize()} {value:g} ft exceeds {MAX_DIMENSION_FT:g} ft"
                )
    return errors


def room_quantities(room: Room, wall_multiplier: float = 1.0, ceiling_multiplier: float = 1.0) -> RoomQuantities:
    """Floor, ceiling, perimeter and wall quantities for one room."""
    floor_sf = room.length * room.width
    ceiling_sf = floor_sf * CEILING_FACTORS[room.ceiling_type]
    perimeter = 2 * (room.length + room.width)
    wall_sf = perimeter * room.height
    return RoomQuantities(
        name=room.name,
        floor_sf=round(floor_sf, 2),
        ceiling_sf=round(ceiling_sf * ceiling_multiplier, 2),
        perimeter_lf=round(perimeter, 2),
        wall_sf=round(wall_sf * wall_multiplier, 2),
        height=room.height,
    )


def calculate_expected_quantities(
    rooms: Iterable[RoomInput], scope_rule: ScopeRule = ScopeRule.FULL_HEIGHT
) -> ExpectedQuantities:
    """
    Calculate expected trade quantities for a set of rooms.

    The scope rule multiplier is applied to every room before summation.

    Raises:
        GeometryValidationError: If any room fails validation
        ValueError: For SPECIFIC_AREA, which has no geometric multiplier
    """
    rooms = _coerce_rooms(rooms)
    errors = validate_rooms(rooms)
    if errors:
        raise GeometryValidationError(errors)

    scope_rule = ScopeRule(scope_rule)
    if scope_rule not in SCOPE_MULTIPLIERS:
        raise ValueError(f"Scope rule {scope_rule.value} cannot be derived from room geometry")
    wall_mult, ceiling_mult = SCOPE_MULTIPLIERS[scope_rule]

    per_room = tuple(room_quantities(room, wall_mult, ceiling_mult) for room in rooms)
    total_floor = round(sum(q.floor_sf for q in per_room), 2)
    total_ceiling = round(sum(q.ceiling_sf for q in per_room), 2)
    total_perimeter = round(sum(q.perimeter_lf for q in per_room), 2)
    total_wall = round(sum(q.wall_sf for q in per_room), 2)

    logger.info(
        "Expected quantities for %d room(s) under %s: %.2f wall SF, %.2f floor SF",
        len(per_room),
        scope_rule.value,
        total_wall,
        total_floor,
    )
    return ExpectedQuantities(
        scope_rule=scope_rule,
        wall_multiplier=wall_mult,
        ceiling_multiplier=ceiling_mult,
        rooms=per_room,
        total_floor_sf=total_floor,
        total_ceiling_sf=total_ceiling,
        total_perimeter_lf=total_perimeter,
        total_wall_sf=total_wall,
        drywall_sf=round(total_wall + total_ceiling, 2),
        paint_sf=round(total_wall + total_ceiling, 2),
        flooring_sf=total_floor,
        baseboard_lf=total_perimeter,
        ceiling_sf=total_ceiling,
        insulation_sf=total_wall,
    )


def infer_scope_rule(loss_type: LossType | str, severity: LossSeverity | str) -> ScopeRule:
    """Default removal scope for a loss type and severity."""
    loss_type = LossType(loss_type)
    severity = LossSeverity(severity)
    if loss_type == LossType.WATER:
        if severity == LossSeverity.CATEGORY_3:
            return ScopeRule.FULL_HEIGHT
        if severity == LossSeverity.LEVEL_2:
            return ScopeRule.CUT_4FT
        if severity == LossSeverity.LEVEL_1:
            return ScopeRule.CUT_2FT
    if loss_type == LossType.FIRE:
        return ScopeRule.FULL_HEIGHT if severity == LossSeverity.HEAVY else ScopeRule.CEILING_ONLY
    if loss_type == LossType.WIND and severity == LossSeverity.MAJOR:
        return ScopeRule.CEILING_ONLY
    return ScopeRule.FULL_HEIGHT
