"""Error taxonomy shared by the editor, the profile store and calibration."""

from __future__ import annotations


class GcStudioError(Exception):
    """Base class for every recoverable gcstudio error."""


class SchemaMismatch(GcStudioError):
    """Document shape does not match the schema (corrupt persisted state)."""

    def __init__(self, message: str, path: tuple = ()) -> None:
        super().__init__(message)
        self.path = path


class UnsupportedSchema(GcStudioError):
    """A schema construct the editor does not implement."""

    def __init__(self, message: str, path: tuple = ()) -> None:
        super().__init__(message)
        self.path = path


class EditRejected(GcStudioError):
    """A value that the schema does not allow at this field."""


class CalibrationError(GcStudioError):
    pass


class InvalidCalibration(CalibrationError):
    """Captured calibration violates an invariant (trigger min must be < max)."""


class CalibrationIncomplete(CalibrationError):
    """Apply requested before every capture step was confirmed."""


class StoreError(GcStudioError):
    pass


class ProfileNotFound(StoreError):
    pass


class DuplicateName(StoreError):
    pass


class LastProfileError(StoreError):
    pass


class InvalidProfileName(StoreError):
    pass


class StoreIOError(GcStudioError):
    """Reading or writing the backing store failed."""
