"""Bundled profile schema, default store document and nullable defaults."""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict

from .calibration import default_stick_data, default_trigger_data

DEFAULT_SCHEMA_URL = "gcstudio.schema.json"
DEFAULT_PROFILE_NAME = "default"
DEFAULT_INVERSION_MAPPING = "oot-vc"

_BYTE = {"type": "integer", "minimum": 0, "maximum": 255}
_POINT = {"type": "array", "items": _BYTE, "minItems": 2, "maxItems": 2}

STORE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "gcstudio configuration",
    "type": "object",
    "properties": {
        "$schema": {"type": "string"},
        "current_profile": {"type": "string"},
        "profiles": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "config": {"$ref": "#/definitions/Profile"},
                },
            },
        },
    },
    "definitions": {
        "Profile": {
            "type": "object",
            "properties": {
                "driver": {
                    "description": "Virtual controller driver used to expose the adapter.",
                    "type": "string",
                    "enum": ["vigem"],
                },
                "rumble": {
                    "description": "Forward rumble from the virtual pad to the controller.",
                    "type": "string",
                    "enum": ["on", "off"],
                },
                "analog_scale": {
                    "description": "Scale applied to stick and trigger output.",
                    "type": "number",
                    "minimum": 0.0,
                    "maximum": 1.5,
                },
                "vigem_config": {
                    "type": "object",
                    "properties": {
                        "pad": {"type": "string", "enum": ["xbox360"]},
                        "trigger_mode": {
                            "description": "How the L/R digital buttons combine with the analog triggers.",
                            "type": "string",
                            "enum": ["analog", "digital", "combination", "stick_click"],
                        },
                    },
                },
                "calibration": {"$ref": "#/definitions/Calibration"},
                "ess": {
                    "type": "object",
                    "properties": {
                        "inversion_mapping": {
                            "description": "ESS adapter inversion map applied to the main stick.",
                            "anyOf": [
                                {"type": "string", "enum": ["oot-vc", "mm-vc", "z64-gc"]},
                                {"type": "null"},
                            ],
                        }
                    },
                },
            },
        },
        "Calibration": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "stick_data": {
                    "description": "Captured stick centers and notch points.",
                    "anyOf": [{"$ref": "#/definitions/SticksCalibration"}, {"type": "null"}],
                },
                "trigger_data": {
                    "description": "Captured trigger ranges.",
                    "anyOf": [{"$ref": "#/definitions/TriggersCalibration"}, {"type": "null"}],
                },
            },
        },
        "StickCalibration": {
            "type": "object",
            "properties": {
                "notch_points": {"type": "array", "items": _POINT, "minItems": 8, "maxItems": 8},
                "stick_center": _POINT,
            },
        },
        "SticksCalibration": {
            "type": "object",
            "properties": {
                "main_stick": {"$ref": "#/definitions/StickCalibration"},
                "c_stick": {"$ref": "#/definitions/StickCalibration"},
            },
        },
        "TriggerCalibration": {
            "type": "object",
            "properties": {"min": _BYTE, "max": _BYTE},
        },
        "TriggersCalibration": {
            "type": "object",
            "properties": {
                "l_trigger": {"$ref": "#/definitions/TriggerCalibration"},
                "r_trigger": {"$ref": "#/definitions/TriggerCalibration"},
            },
        },
    },
}

_DEFAULT_PROFILE_CONFIG: Dict[str, Any] = {
    "driver": "vigem",
    "rumble": "on",
    "analog_scale": 1.0,
    "vigem_config": {"pad": "xbox360", "trigger_mode": "stick_click"},
    "calibration": {"enabled": False, "stick_data": None, "trigger_data": None},
    "ess": {"inversion_mapping": None},
}

NULLABLE_DEFAULTS: Dict[str, Callable[[], Any]] = {
    "stick_data": default_stick_data,
    "trigger_data": default_trigger_data,
    "inversion_mapping": lambda: DEFAULT_INVERSION_MAPPING,
}


def default_profile_config() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULT_PROFILE_CONFIG)


def default_store_document(schema_url: str = DEFAULT_SCHEMA_URL) -> Dict[str, Any]:
    return {
        "$schema": schema_url,
        "current_profile": DEFAULT_PROFILE_NAME,
        "profiles": [{"name": DEFAULT_PROFILE_NAME, "config": default_profile_config()}],
    }
