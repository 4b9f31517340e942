import math

from src.monitor.options import ReconnectOptions

BACKOFF_SCALE = 5.0


def backoff_interval(attempts: int, options: ReconnectOptions) -> float:
    """
    Seconds to wait before the next reconnect check.

    Grows with the natural log of the attempt count, truncated to whole
    seconds, then clamped to [reconnection_delay, reconnection_delay_max].
    Zero attempts always yields reconnection_delay.
    """
    if attempts < 0:
        raise ValueError(f"attempts must be non-negative, got {attempts}")

    growth = math.floor(BACKOFF_SCALE * math.log(attempts + 1))

    return float(
        max(
            options.reconnection_delay,
            min(options.reconnection_delay_max, growth),
        )
    )
