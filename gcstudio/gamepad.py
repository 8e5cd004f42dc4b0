"""pygame joystick access producing raw ``InputSnapshot`` readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

try:
    import pygame
except ImportError as exc:  # pragma: no cover - runtime dependency
    raise SystemExit("Missing dependency: pygame. Install with `pip install pygame`.") from exc

from .coercion import axis_to_byte, trigger_to_byte
from .inputs import InputSnapshot

# raised by reads from a controller that went away
GamepadError = pygame.error


@dataclass
class ControllerInfo:
    index: int
    name: str
    guid: str
    axis_count: int
    button_count: int


@dataclass(frozen=True)
class GamepadMapping:
    main_axes: Tuple[int, int] = (0, 1)
    c_axes: Tuple[int, int] = (2, 3)
    l_trigger_axis: int = 4
    r_trigger_axis: int = 5
    confirm_button: int = 0


def init_input_system() -> None:
    pygame.init()
    pygame.joystick.init()


def shutdown_input_system() -> None:
    pygame.joystick.quit()
    pygame.quit()


def get_joystick_guid(joystick: pygame.joystick.Joystick) -> str:
    try:
        guid = joystick.get_guid()
    except (AttributeError, pygame.error):
        guid = "unknown"
    return str(guid or "unknown")


def _describe(index: int, joystick: pygame.joystick.Joystick) -> ControllerInfo:
    return ControllerInfo(
        index=index,
        name=str(joystick.get_name()),
        guid=get_joystick_guid(joystick),
        axis_count=joystick.get_numaxes(),
        button_count=joystick.get_numbuttons(),
    )


def list_controllers() -> List[ControllerInfo]:
    controllers = []
    for index in range(pygame.joystick.get_count()):
        joystick = pygame.joystick.Joystick(index)
        joystick.init()
        controllers.append(_describe(index, joystick))
    return controllers


def open_controller(index: int) -> Tuple[pygame.joystick.Joystick, ControllerInfo]:
    count = pygame.joystick.get_count()
    if count == 0:
        raise RuntimeError("No controller detected. Connect your controller and retry.")
    if not 0 <= index < count:
        raise RuntimeError(f"Controller index {index} is unavailable. Connected indexes: {list(range(count))}")
    joystick = pygame.joystick.Joystick(index)
    joystick.init()
    return joystick, _describe(index, joystick)


def validate_mapping(mapping: GamepadMapping, info: ControllerInfo) -> None:
    axes = {
        "Main stick": mapping.main_axes,
        "C-stick": mapping.c_axes,
        "Left trigger": (mapping.l_trigger_axis,),
        "Right trigger": (mapping.r_trigger_axis,),
    }
    for label, indexes in axes.items():
        if any(axis < 0 or axis >= info.axis_count for axis in indexes):
            raise RuntimeError(
                f"{label} axes {indexes} out of range for controller with {info.axis_count} axes."
            )
    if not 0 <= mapping.confirm_button < info.button_count:
        raise RuntimeError(
            f"Confirm button {mapping.confirm_button} out of range for controller with {info.button_count} buttons."
        )


class GamepadSource:
    """Callable reader; call it on the thread that initialised pygame."""

    def __init__(self, joystick: pygame.joystick.Joystick, mapping: GamepadMapping) -> None:
        self.joystick = joystick
        self.mapping = mapping

    def _stick(self, axes: Tuple[int, int]) -> Tuple[int, int]:
        x_axis, y_axis = axes
        return (
            axis_to_byte(self.joystick.get_axis(x_axis)),
            axis_to_byte(self.joystick.get_axis(y_axis), invert=True),
        )

    def read(self) -> InputSnapshot:
        pygame.event.pump()
        return InputSnapshot(
            main_stick=self._stick(self.mapping.main_axes),
            c_stick=self._stick(self.mapping.c_axes),
            l_trigger=trigger_to_byte(self.joystick.get_axis(self.mapping.l_trigger_axis)),
            r_trigger=trigger_to_byte(self.joystick.get_axis(self.mapping.r_trigger_axis)),
            confirm_pressed=bool(self.joystick.get_button(self.mapping.confirm_button)),
        )

    __call__ = read
