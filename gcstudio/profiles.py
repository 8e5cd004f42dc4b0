"""Named configuration profiles and their persisted store document."""

from __future__ import annotations

import copy
import json
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .calibration import StickCal, TrigCal, Trigger
from .defaults import DEFAULT_SCHEMA_URL, default_store_document
from .errors import (
    DuplicateName,
    InvalidProfileName,
    LastProfileError,
    ProfileNotFound,
    SchemaMismatch,
    StoreIOError,
)
from .schema import SchemaNode, assign, document_kind

logger = logging.getLogger(__name__)

_PROFILE_KEYS = ("name", "config")
_STORE_KEYS = ("$schema", "current_profile", "profiles")


@dataclass
class Profile:
    name: str
    config: Dict[str, Any]
    dirty: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> "Profile":
        return Profile(
            name=self.name,
            config=copy.deepcopy(self.config),
            dirty=self.dirty,
            extra=copy.deepcopy(self.extra),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data["name"] = self.name
        data["config"] = copy.deepcopy(self.config)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int) -> "Profile":
        if not isinstance(data, dict):
            raise SchemaMismatch(f"profiles[{index}]: expected object, found {document_kind(data)}", ("profiles", index))
        name = data.get("name")
        config = data.get("config")
        if not isinstance(name, str):
            raise SchemaMismatch(f"profiles[{index}].name: expected string", ("profiles", index, "name"))
        if not isinstance(config, dict):
            raise SchemaMismatch(f"profiles[{index}].config: expected object", ("profiles", index, "config"))
        extra = {key: copy.deepcopy(value) for key, value in data.items() if key not in _PROFILE_KEYS}
        return cls(name=name, config=copy.deepcopy(config), extra=extra)


class JsonFileDocumentStore:
    """Reads and writes the whole store as one JSON file."""

    def __init__(self, path: pathlib.Path) -> None:
        self.path = pathlib.Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load_document(self) -> Dict[str, Any]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StoreIOError(f"Could not read {self.path}: {exc}") from exc
        except ValueError as exc:
            raise StoreIOError(f"{self.path} is not valid JSON: {exc}") from exc

    def save_document(self, document: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"Could not write {self.path}: {exc}") from exc


class ProfileStore:
    """In-memory profiles plus the edit buffer of the current one.

    Edits go to a copy of the current profile returned by ``edit_buffer()``.
    ``commit()`` copies the buffer back, ``save()`` commits and then writes
    the whole store through the backend.
    """

    def __init__(self, backend, schema: SchemaNode, reload_flag=None) -> None:
        self.backend = backend
        self.schema = schema
        self.reload_flag = reload_flag
        self.profiles: List[Profile] = []
        self.current_profile_name = ""
        self.schema_url: Optional[str] = DEFAULT_SCHEMA_URL
        self._extra: Dict[str, Any] = {}
        self._buffer: Optional[Profile] = None
        self._store_dirty = False
        self._replace_state(default_store_document())

    # Persistence

    def load(self) -> None:
        document = self.backend.load_document()
        self._replace_state(document)
        logger.info("Loaded %d profile(s), current profile %s", len(self.profiles), self.current_profile_name)
        self._request_reload()

    def save(self) -> None:
        self.commit()
        self.backend.save_document(self.to_document())
        for profile in self.profiles:
            profile.dirty = False
        if self._buffer is not None:
            self._buffer.dirty = False
        self._store_dirty = False
        logger.info("Saved %d profile(s)", len(self.profiles))
        self._request_reload()

    def to_document(self) -> Dict[str, Any]:
        document = copy.deepcopy(self._extra)
        if self.schema_url is not None:
            document["$schema"] = self.schema_url
        document["current_profile"] = self.current_profile_name
        document["profiles"] = [profile.to_dict() for profile in self.profiles]
        return document

    def _replace_state(self, document: Any) -> None:
        if not isinstance(document, dict):
            raise SchemaMismatch(f"store: expected object, found {document_kind(document)}")

        schema_url = document.get("$schema")
        if schema_url is not None and not isinstance(schema_url, str):
            raise SchemaMismatch("$schema: expected string", ("$schema",))

        current = document.get("current_profile")
        if not isinstance(current, str):
            raise SchemaMismatch("current_profile: expected string", ("current_profile",))

        raw_profiles = document.get("profiles")
        if not isinstance(raw_profiles, list) or not raw_profiles:
            raise SchemaMismatch("profiles: expected a non-empty array", ("profiles",))

        profiles = [Profile.from_dict(entry, index) for index, entry in enumerate(raw_profiles)]
        names = [profile.name for profile in profiles]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise SchemaMismatch(f"profiles: duplicate profile names {', '.join(duplicates)}", ("profiles",))

        if current not in names:
            logger.warning("Current profile %r does not exist; selecting %r", current, names[0])
            current = names[0]

        self.profiles = profiles
        self.current_profile_name = current
        self.schema_url = schema_url
        self._extra = {key: copy.deepcopy(value) for key, value in document.items() if key not in _STORE_KEYS}
        self._buffer = None
        self._store_dirty = False

    def _request_reload(self) -> None:
        if self.reload_flag is not None:
            self.reload_flag.request()

    # Selection and CRUD

    @property
    def profile_names(self) -> List[str]:
        return [profile.name for profile in self.profiles]

    @property
    def current_profile(self) -> Profile:
        return self.get_profile(self.current_profile_name)

    def get_profile(self, name: str) -> Profile:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        raise ProfileNotFound(f"Profile {name!r} does not exist")

    def select_profile(self, name: str) -> None:
        self.get_profile(name)
        if name != self.current_profile_name:
            self.current_profile_name = name
            self._store_dirty = True
        self._buffer = None

    def add_profile(self, name: str, config: Optional[Dict[str, Any]] = None, replace: bool = False) -> Profile:
        name = name.strip()
        if not name:
            raise InvalidProfileName("Profile name must not be empty")
        if config is None:
            config = self.edit_buffer().config
        profile = Profile(name=name, config=copy.deepcopy(config), dirty=True)

        existing = [index for index, other in enumerate(self.profiles) if other.name == name]
        if existing and not replace:
            raise DuplicateName(f"Profile {name!r} already exists")
        if existing:
            self.profiles[existing[0]] = profile
            logger.info("Replaced profile %s", name)
        else:
            self.profiles.append(profile)
            logger.info("Added profile %s", name)

        self.current_profile_name = name
        self._buffer = None
        self._store_dirty = True
        return profile

    def remove_profile(self, name: str) -> None:
        profile = self.get_profile(name)
        if len(self.profiles) == 1:
            raise LastProfileError("Cannot remove all profiles")
        self.profiles.remove(profile)
        if name == self.current_profile_name:
            self.current_profile_name = self.profiles[0].name
            self._buffer = None
        self._store_dirty = True
        logger.info("Removed profile %s", name)

    def update_schema_url(self, url: str) -> None:
        if url != self.schema_url:
            self.schema_url = url
            self._store_dirty = True

    # Edit buffer

    def edit_buffer(self) -> Profile:
        if self._buffer is None or self._buffer.name != self.current_profile_name:
            self._buffer = self.current_profile.copy()
            self._buffer.dirty = False
        return self._buffer

    def commit(self) -> None:
        if self._buffer is None or not self._buffer.dirty:
            return
        profile = self.current_profile
        profile.config = copy.deepcopy(self._buffer.config)
        profile.dirty = True
        self._buffer.dirty = False

    def discard_changes(self) -> None:
        self._buffer = None

    def is_dirty(self) -> bool:
        if self._store_dirty:
            return True
        if self._buffer is not None and self._buffer.dirty:
            return True
        return any(profile.dirty for profile in self.profiles)

    # Calibration

    def apply_stick_calibration(self, main_stick: StickCal, c_stick: StickCal) -> None:
        buffer = self.edit_buffer()
        data = {"main_stick": main_stick.to_dict(), "c_stick": c_stick.to_dict()}
        assign(buffer.config, ("calibration", "stick_data"), data)
        buffer.dirty = True
        logger.info("Applied stick calibration to profile %s", buffer.name)

    def apply_trigger_calibration(self, l_trigger: TrigCal, r_trigger: TrigCal) -> None:
        l_trigger.validate(Trigger.LEFT.label)
        r_trigger.validate(Trigger.RIGHT.label)
        buffer = self.edit_buffer()
        data = {"l_trigger": l_trigger.to_dict(), "r_trigger": r_trigger.to_dict()}
        assign(buffer.config, ("calibration", "trigger_data"), data)
        buffer.dirty = True
        logger.info("Applied trigger calibration to profile %s", buffer.name)
