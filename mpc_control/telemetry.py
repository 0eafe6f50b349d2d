"""Telemetry and command wire formats.

The simulator speaks a Socket.IO-style text protocol. Every frame starts with
"42" (4 = message, 2 = event) followed by a JSON array ``[event, payload]``:

    42["telemetry", {"ptsx": [...], "ptsy": [...], "x": ..., ...}]
    42["steer", {"steering_angle": ..., "throttle": ..., ...}]
    42["manual", {}]

This module converts between those frames and typed records. It has no
knowledge of sockets.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import InputError

EVENT_PREFIX = "42"
TELEMETRY_EVENT = "telemetry"
STEER_EVENT = "steer"
MANUAL_EVENT = "manual"

TELEMETRY_FIELDS = ("ptsx", "ptsy", "x", "y", "psi", "speed", "steering_angle", "throttle")


@dataclass(frozen=True)
class Telemetry:
    """One telemetry record from the simulator (world frame).

    Attributes:
        ptsx: Waypoint x coordinates.
        ptsy: Waypoint y coordinates.
        x: Vehicle x position.
        y: Vehicle y position.
        psi: Vehicle heading (radians).
        speed: Vehicle speed.
        steering_angle: Last applied normalized steering command.
        throttle: Last applied throttle command.
    """

    ptsx: Tuple[float, ...]
    ptsy: Tuple[float, ...]
    x: float
    y: float
    psi: float
    speed: float
    steering_angle: float
    throttle: float


@dataclass
class ControlCommand:
    """Command returned to the simulator for one cycle.

    steering_angle and throttle are in [-1, 1]; mpc_* is the predicted
    trajectory and next_* the sampled reference line, both in the vehicle
    frame.
    """

    steering_angle: float
    throttle: float
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _number(data: Dict[str, Any], key: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputError(f"Field '{key}' must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise InputError(f"Field '{key}' is not finite")
    return value


def _numbers(data: Dict[str, Any], key: str) -> Tuple[float, ...]:
    values = data[key]
    if not isinstance(values, (list, tuple)):
        raise InputError(f"Field '{key}' must be a list, got {type(values).__name__}")
    return tuple(_number({key: v}, key) for v in values)


def parse_telemetry(data: Dict[str, Any], min_waypoints: int = 1) -> Telemetry:
    """Validate a telemetry payload and convert it to a Telemetry record.

    Args:
        data: Decoded JSON object of the telemetry event.
        min_waypoints: Minimum number of waypoints required (fit degree + 1).

    Returns:
        Telemetry record.

    Raises:
        InputError: If a field is missing or malformed, the waypoint lists
            differ in length, or there are fewer than min_waypoints points.
    """
    if not isinstance(data, dict):
        raise InputError(f"Telemetry payload must be an object, got {type(data).__name__}")

    missing = [key for key in TELEMETRY_FIELDS if key not in data]
    if missing:
        raise InputError(f"Telemetry missing fields: {', '.join(missing)}")

    ptsx = _numbers(data, "ptsx")
    ptsy = _numbers(data, "ptsy")
    if len(ptsx) != len(ptsy):
        raise InputError(f"Waypoint length mismatch: {len(ptsx)} x values, {len(ptsy)} y values")
    if len(ptsx) < min_waypoints:
        raise InputError(f"Need at least {min_waypoints} waypoints, got {len(ptsx)}")

    return Telemetry(
        ptsx=ptsx,
        ptsy=ptsy,
        x=_number(data, "x"),
        y=_number(data, "y"),
        psi=_number(data, "psi"),
        speed=_number(data, "speed"),
        steering_angle=_number(data, "steering_angle"),
        throttle=_number(data, "throttle"),
    )


def has_data(frame: str) -> Optional[str]:
    """Extract the JSON array of an event frame.

    Returns:
        The ``[...]`` portion of the frame, or None if the frame carries no
        data (contains "null" or has no JSON array).
    """
    if "null" in frame:
        return None
    start = frame.find("[")
    end = frame.rfind("}]")
    if start == -1 or end == -1:
        return None
    return frame[start:end + 2]


def parse_event(frame: str) -> Optional[Tuple[str, Any]]:
    """Decode an event frame into (event_name, payload).

    Returns:
        None if the frame is not an event frame or carries no data (the
        "manual driving" case).

    Raises:
        json.JSONDecodeError: If the frame's JSON array is malformed.
        InputError: If the array does not have the [event, payload] shape.
    """
    if len(frame) <= 2 or not frame.startswith(EVENT_PREFIX):
        return None
    body = has_data(frame)
    if body is None:
        return None
    decoded = json.loads(body)
    if not isinstance(decoded, list) or len(decoded) < 2 or not isinstance(decoded[0], str):
        raise InputError("Event frame must be a JSON array of [event, payload]")
    return decoded[0], decoded[1]


def format_event(event: str, payload: Dict[str, Any]) -> str:
    """Encode an event frame: 42["event",{...}]."""
    return f"{EVENT_PREFIX}{json.dumps([event, payload], separators=(',', ':'))}"


def encode_command(command: ControlCommand) -> str:
    """Encode a control command as a steer event frame."""
    return format_event(STEER_EVENT, command.to_dict())


MANUAL_ACK = format_event(MANUAL_EVENT, {})
"""Placeholder reply for frames without telemetry data."""
