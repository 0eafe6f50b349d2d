"""
Mapping between optimizer actuator units and simulator command units.

The optimizer works in radians with counter-clockwise steering positive.
The simulator expects steering normalized to [-1, 1] with positive values
turning clockwise (right), and throttle in [-1, 1].
"""

from dataclasses import dataclass

from .config import MAX_STEERING, THROTTLE_MAX, THROTTLE_MIN


@dataclass(frozen=True)
class ActuatorMapper:
    """Converts between optimizer output and bounded actuator commands.

    Attributes:
        max_steering: Steering magnitude that maps to |command| = 1 (radians).
        throttle_min: Lower throttle limit.
        throttle_max: Upper throttle limit.
    """

    max_steering: float = MAX_STEERING
    throttle_min: float = THROTTLE_MIN
    throttle_max: float = THROTTLE_MAX

    def to_command(self, delta: float, throttle: float) -> tuple[float, float]:
        """
        Normalize an optimizer actuator pair into simulator units.

        Args:
            delta: Steering angle from the optimizer (radians, positive = left).
            throttle: Raw throttle from the optimizer.

        Returns:
            tuple[float, float]: (steering, throttle) with steering in [-1, 1]
                                 (positive = right) and throttle clamped to
                                 [throttle_min, throttle_max]

        Example:
            >>> ActuatorMapper().to_command(0.0, 0.3)
            (-0.0, 0.3)
        """
        steering = -delta / self.max_steering
        steering = max(-1.0, min(1.0, steering))
        throttle = max(self.throttle_min, min(self.throttle_max, throttle))
        return steering, throttle
