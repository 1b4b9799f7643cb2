"""Pace service: split times for a target performance at a given effort."""

import math

from coachshare.core.errors import InvalidInput

SEGMENT_INTERVAL = 50


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_time_to_seconds(value: str | int | float) -> float:
    """Parse ``MM:SS.ms``, ``SS.ms`` or a bare number of seconds."""
    if _is_number(value):
        if not math.isfinite(value) or value < 0:
            raise InvalidInput("Invalid time input (must be non-negative number).")
        return float(value)
    if not isinstance(value, str):
        raise InvalidInput("Invalid time input type.")

    text = value.strip()
    if not text:
        raise InvalidInput("Time input cannot be empty.")

    if ":" in text:
        parts = text.split(":")
        if len(parts) != 2:
            raise InvalidInput("Invalid time format (use MM:SS.ms or SS.ms).")
        try:
            minutes = float(parts[0])
            seconds = float(parts[1])
        except ValueError:
            raise InvalidInput("Invalid minute or second values in time.")
        if not (math.isfinite(minutes) and math.isfinite(seconds)):
            raise InvalidInput("Invalid minute or second values in time.")
        if minutes < 0 or seconds < 0 or seconds >= 60:
            raise InvalidInput("Invalid minute or second values in time.")
        return minutes * 60 + seconds

    try:
        seconds = float(text)
    except ValueError:
        raise InvalidInput("Invalid time format (must be non-negative seconds).")
    if not math.isfinite(seconds) or seconds < 0:
        raise InvalidInput("Invalid time format (must be non-negative seconds).")
    return seconds


def generate_standard_segments(total_distance: float) -> list[float]:
    """Every multiple of 50 below the total, then the total itself."""
    segments = set()
    distance = SEGMENT_INTERVAL
    while distance < total_distance:
        segments.add(distance)
        distance += SEGMENT_INTERVAL
    segments.add(total_distance)
    return sorted(segments)


def format_seconds(total_seconds: float) -> str:
    return f"{total_seconds:.2f}"


def calculate_pace(
    total_distance: float,
    target_time: str | int | float,
    effort_percentage: float,
) -> list[dict]:
    """Split times at standard distances for a target time and effort.

    At 100% effort the training pace equals the target pace; lower effort
    slows every split proportionally.
    """
    if not _is_number(total_distance) or not math.isfinite(total_distance) or total_distance <= 0:
        raise InvalidInput("Total distance must be a positive number.")
    if not _is_number(effort_percentage) or not 0 < effort_percentage <= 100:
        raise InvalidInput("Effort percentage must be greater than 0 and at most 100.")

    try:
        target_seconds = parse_time_to_seconds(target_time)
    except InvalidInput as exc:
        raise InvalidInput(f"Invalid target time: {exc.message}")
    if target_seconds <= 0:
        raise InvalidInput("Target time must be greater than zero.")

    target_pace = total_distance / target_seconds
    training_pace = target_pace * (effort_percentage / 100)
    if training_pace <= 0 or not math.isfinite(training_pace):
        raise InvalidInput("Could not calculate a valid training pace. Check inputs.")

    return [
        {"distance": distance, "time": format_seconds(distance / training_pace)}
        for distance in generate_standard_segments(total_distance)
    ]
