"""Guided stick and trigger calibration capture.

Each session is a small state machine fed once per frame with the latest raw
reading and the level of the confirm button. A step is recorded only on the
rising edge of confirm, so holding the button down never records twice.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from .coercion import STICK_CENTER, to_byte
from .errors import CalibrationIncomplete, InvalidCalibration

Point = Tuple[int, int]

NOTCH_COUNT = 8
NOTCH_LABELS = (
    "top",
    "top-right",
    "right",
    "bottom-right",
    "bottom",
    "bottom-left",
    "left",
    "top-left",
)
NOTCH_RADIUS = 127.0


def default_notch_points() -> List[Point]:
    """Ideal notch positions, clockwise from the top."""
    points = []
    for index in range(NOTCH_COUNT):
        angle = math.pi / 2 - index * math.pi / 4
        x = to_byte(NOTCH_RADIUS * math.cos(angle) + STICK_CENTER)
        y = to_byte(NOTCH_RADIUS * math.sin(angle) + STICK_CENTER)
        points.append((x, y))
    return points


def _point(value) -> Point:
    if len(value) != 2:
        raise InvalidCalibration(f"expected an (x, y) pair, got {value!r}")
    return to_byte(value[0]), to_byte(value[1])


@dataclass(frozen=True)
class StickCal:
    notch_points: Tuple[Point, ...]
    center: Point

    def __post_init__(self) -> None:
        if len(self.notch_points) != NOTCH_COUNT:
            raise InvalidCalibration(
                f"stick calibration needs {NOTCH_COUNT} notch points, got {len(self.notch_points)}"
            )

    def to_dict(self) -> Dict[str, object]:
        return {
            "notch_points": [[int(x), int(y)] for x, y in self.notch_points],
            "stick_center": [int(self.center[0]), int(self.center[1])],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "StickCal":
        return cls(
            notch_points=tuple(_point(p) for p in data["notch_points"]),
            center=_point(data["stick_center"]),
        )

    @classmethod
    def default(cls) -> "StickCal":
        return cls(notch_points=tuple(default_notch_points()), center=(STICK_CENTER, STICK_CENTER))


@dataclass(frozen=True)
class TrigCal:
    min: int
    max: int

    @property
    def is_valid(self) -> bool:
        return self.min < self.max

    def validate(self, label: str = "trigger") -> None:
        if not self.is_valid:
            raise InvalidCalibration(
                f"{label} calibration is invalid: min ({self.min}) must be below max ({self.max})"
            )

    def to_dict(self) -> Dict[str, int]:
        return {"min": int(self.min), "max": int(self.max)}

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> "TrigCal":
        return cls(min=to_byte(data["min"]), max=to_byte(data["max"]))


def default_stick_data() -> Dict[str, object]:
    return {"main_stick": StickCal.default().to_dict(), "c_stick": StickCal.default().to_dict()}


def default_trigger_data() -> Dict[str, object]:
    return {"l_trigger": TrigCal(0, 255).to_dict(), "r_trigger": TrigCal(0, 255).to_dict()}


class CalibrationTarget(Protocol):
    def apply_stick_calibration(self, main_stick: StickCal, c_stick: StickCal) -> None: ...

    def apply_trigger_calibration(self, l_trigger: TrigCal, r_trigger: TrigCal) -> None: ...


class ConfirmEdge:
    """Rising-edge detector for the confirm button."""

    def __init__(self) -> None:
        self.was_pressed = False

    def update(self, pressed: bool) -> bool:
        rising = bool(pressed) and not self.was_pressed
        self.was_pressed = bool(pressed)
        return rising


class Stick(enum.Enum):
    MAIN = "main_stick"
    C = "c_stick"

    @property
    def label(self) -> str:
        return "main stick" if self is Stick.MAIN else "C-stick"


class StickStage(enum.Enum):
    AWAITING_CENTER = "awaiting_center"
    AWAITING_NOTCH = "awaiting_notch"
    FINISHED = "finished"


@dataclass
class _StickCapture:
    center: Optional[Point] = None
    notches: List[Point] = field(default_factory=list)


class StickCalibrationSession:
    """Main stick then C-stick: center, then the 8 notches clockwise from top."""

    STICKS = (Stick.MAIN, Stick.C)

    def __init__(self) -> None:
        self.confirm = ConfirmEdge()
        self.cancel()

    def cancel(self) -> None:
        self.captures = {stick: _StickCapture() for stick in self.STICKS}
        self.stick: Optional[Stick] = Stick.MAIN

    @property
    def stage(self) -> StickStage:
        if self.stick is None:
            return StickStage.FINISHED
        if self.captures[self.stick].center is None:
            return StickStage.AWAITING_CENTER
        return StickStage.AWAITING_NOTCH

    @property
    def notch_index(self) -> Optional[int]:
        if self.stage is not StickStage.AWAITING_NOTCH:
            return None
        return len(self.captures[self.stick].notches)

    @property
    def finished(self) -> bool:
        return self.stick is None

    def tick(self, sample: Point, confirm: bool) -> bool:
        """Feed one raw sample of the stick being captured. Returns True when a step was recorded."""
        if not self.confirm.update(confirm) or self.stick is None:
            return False

        capture = self.captures[self.stick]
        point = _point(sample)
        if capture.center is None:
            capture.center = point
        else:
            capture.notches.append(point)
            if len(capture.notches) == NOTCH_COUNT:
                following = self.STICKS.index(self.stick) + 1
                self.stick = self.STICKS[following] if following < len(self.STICKS) else None
        return True

    def feed(self, snapshot) -> bool:
        sample = snapshot.c_stick if self.stick is Stick.C else snapshot.main_stick
        return self.tick(sample, snapshot.confirm_pressed)

    def prompt(self) -> str:
        if self.stick is None:
            return "Calibration finished. Apply to the profile?"
        label = self.stick.label
        if self.stage is StickStage.AWAITING_CENTER:
            return f"Center {label} and press A"
        return f"Move {label} to center then to {NOTCH_LABELS[self.notch_index]} then press A"

    def progress(self) -> Tuple[int, int]:
        per_stick = NOTCH_COUNT + 1
        done = sum(
            (1 if capture.center is not None else 0) + len(capture.notches)
            for capture in self.captures.values()
        )
        return done, per_stick * len(self.STICKS)

    def points(self, stick: Stick) -> Tuple[Optional[Point], List[Point]]:
        capture = self.captures[stick]
        return capture.center, list(capture.notches)

    def result(self) -> Tuple[StickCal, StickCal]:
        if not self.finished:
            raise CalibrationIncomplete("stick calibration is not finished")
        main, c_stick = (
            StickCal(notch_points=tuple(self.captures[s].notches), center=self.captures[s].center)
            for s in self.STICKS
        )
        return main, c_stick

    def apply(self, target: CalibrationTarget) -> Tuple[StickCal, StickCal]:
        main, c_stick = self.result()
        target.apply_stick_calibration(main, c_stick)
        self.cancel()
        return main, c_stick


class Trigger(enum.Enum):
    LEFT = "l_trigger"
    RIGHT = "r_trigger"

    @property
    def label(self) -> str:
        return "left trigger" if self is Trigger.LEFT else "right trigger"


class TriggerStage(enum.Enum):
    AWAITING_RELEASE = "awaiting_release"
    AWAITING_FULL_PRESS = "awaiting_full_press"
    FINISHED = "finished"


class TriggerCalibrationSession:
    """Left then right trigger: fully released (min), then fully pressed (max)."""

    TRIGGERS = (Trigger.LEFT, Trigger.RIGHT)

    def __init__(self) -> None:
        self.confirm = ConfirmEdge()
        self.cancel()

    def cancel(self) -> None:
        self.bounds: Dict[Trigger, Dict[str, Optional[int]]] = {
            trigger: {"min": None, "max": None} for trigger in self.TRIGGERS
        }
        self.trigger: Optional[Trigger] = Trigger.LEFT

    @property
    def stage(self) -> TriggerStage:
        if self.trigger is None:
            return TriggerStage.FINISHED
        if self.bounds[self.trigger]["min"] is None:
            return TriggerStage.AWAITING_RELEASE
        return TriggerStage.AWAITING_FULL_PRESS

    @property
    def finished(self) -> bool:
        return self.trigger is None

    def tick(self, value: int, confirm: bool) -> bool:
        if not self.confirm.update(confirm) or self.trigger is None:
            return False

        bounds = self.bounds[self.trigger]
        if bounds["min"] is None:
            bounds["min"] = to_byte(value)
        else:
            bounds["max"] = to_byte(value)
            following = self.TRIGGERS.index(self.trigger) + 1
            self.trigger = self.TRIGGERS[following] if following < len(self.TRIGGERS) else None
        return True

    def feed(self, snapshot) -> bool:
        value = snapshot.r_trigger if self.trigger is Trigger.RIGHT else snapshot.l_trigger
        return self.tick(value, snapshot.confirm_pressed)

    def prompt(self) -> str:
        if self.trigger is None:
            return "Calibration finished. Apply to the profile?"
        if self.stage is TriggerStage.AWAITING_RELEASE:
            return f"Fully release the {self.trigger.label} and press A"
        return f"Fully press the {self.trigger.label} and press A"

    def progress(self) -> Tuple[int, int]:
        done = sum(
            sum(1 for bound in bounds.values() if bound is not None) for bounds in self.bounds.values()
        )
        return done, 2 * len(self.TRIGGERS)

    def result(self) -> Tuple[TrigCal, TrigCal]:
        if not self.finished:
            raise CalibrationIncomplete("trigger calibration is not finished")
        left, right = (TrigCal(min=self.bounds[t]["min"], max=self.bounds[t]["max"]) for t in self.TRIGGERS)
        left.validate(Trigger.LEFT.label)
        right.validate(Trigger.RIGHT.label)
        return left, right

    def apply(self, target: CalibrationTarget) -> Tuple[TrigCal, TrigCal]:
        left, right = self.result()
        target.apply_trigger_calibration(left, right)
        self.cancel()
        return left, right
