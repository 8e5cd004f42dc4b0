#!/usr/bin/env python3
"""gcstudio desktop window.

Profile bar, a form generated from the profile schema, live controller
readings, guided calibration dialogs and a log panel, built from stock
PySide6 widgets.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pathlib
import sys
from collections import deque
from typing import Deque, Optional, Union

try:
    from PySide6 import QtCore, QtGui, QtWidgets
except ImportError as exc:  # pragma: no cover - runtime dependency
    raise SystemExit("Missing dependency: PySide6. Install with `pip install PySide6`.") from exc

from . import gamepad
from .calibration import NOTCH_LABELS, StickCalibrationSession, Trigger, TriggerCalibrationSession
from .cli import DEFAULT_CONFIG_PATH, load_store_schema
from .defaults import NULLABLE_DEFAULTS
from .editor import FieldView, SchemaEditor
from .errors import GcStudioError, StoreIOError
from .inputs import InputSnapshot, LatestInputs, ReloadFlag
from .profiles import JsonFileDocumentStore, ProfileStore
from .schema import Path, SchemaNode, format_path, profile_schema

logger = logging.getLogger(__name__)

LOG_LINES = 500
SPIN_LIMIT = 2_147_483_647
FLOAT_LIMIT = 1e9

CalibrationSession = Union[StickCalibrationSession, TriggerCalibrationSession]


class LogBuffer(logging.Handler):
    """Keeps the most recent formatted records for the log panel."""

    def __init__(self, capacity: int = LOG_LINES) -> None:
        super().__init__()
        self.lines: Deque[str] = deque(maxlen=capacity)
        self.version = 0
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))
        self.version += 1


class CalibrationDialog(QtWidgets.QDialog):
    def __init__(
        self,
        session: CalibrationSession,
        latest: LatestInputs,
        store: ProfileStore,
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.session = session
        self.latest = latest
        self.store = store
        self.manual_confirm = False
        self.is_sticks = isinstance(session, StickCalibrationSession)

        self.setWindowTitle("Stick Calibration" if self.is_sticks else "Trigger Calibration")
        self.resize(640, 420)
        self._build_ui()

        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(16)
        self.timer.timeout.connect(self._poll)
        self.timer.start()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # noqa: N802
        self.timer.stop()
        super().closeEvent(event)

    def _build_ui(self) -> None:
        layout = QtWidgets.QVBoxLayout(self)

        self.prompt_label = QtWidgets.QLabel()
        self.prompt_label.setStyleSheet("font-size:14px; font-weight:600;")
        self.prompt_label.setWordWrap(True)
        layout.addWidget(self.prompt_label)

        self.progress = QtWidgets.QProgressBar()
        layout.addWidget(self.progress)

        self.readout_label = QtWidgets.QLabel()
        self.readout_label.setStyleSheet("font-family: monospace;")
        layout.addWidget(self.readout_label)

        if self.is_sticks:
            rows = ["center"] + list(NOTCH_LABELS)
            columns = [stick.label for stick in StickCalibrationSession.STICKS]
        else:
            rows = ["min", "max"]
            columns = [trigger.label for trigger in TriggerCalibrationSession.TRIGGERS]
        self.points_table = QtWidgets.QTableWidget(len(rows), len(columns))
        self.points_table.setVerticalHeaderLabels(rows)
        self.points_table.setHorizontalHeaderLabels(columns)
        self.points_table.setEditTriggers(QtWidgets.QAbstractItemView.NoEditTriggers)
        self.points_table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self.points_table, 1)

        buttons = QtWidgets.QHBoxLayout()
        self.confirm_button = QtWidgets.QPushButton("Confirm (A)")
        self.confirm_button.pressed.connect(lambda: self._set_manual_confirm(True))
        self.confirm_button.released.connect(lambda: self._set_manual_confirm(False))
        restart_button = QtWidgets.QPushButton("Restart")
        restart_button.clicked.connect(self.restart)
        self.apply_button = QtWidgets.QPushButton("Apply")
        self.apply_button.clicked.connect(self.apply)
        discard_button = QtWidgets.QPushButton("Discard")
        discard_button.clicked.connect(self.discard)
        for button in (self.confirm_button, restart_button, self.apply_button, discard_button):
            buttons.addWidget(button)
        layout.addLayout(buttons)

        self._refresh()

    def _set_manual_confirm(self, pressed: bool) -> None:
        self.manual_confirm = pressed

    def _poll(self) -> None:
        snapshot = self.latest.snapshot()
        if self.manual_confirm:
            snapshot = dataclasses.replace(snapshot, confirm_pressed=True)
        if self.session.feed(snapshot):
            self._refresh()
        self._show_readout(snapshot)

    def _show_readout(self, snapshot: InputSnapshot) -> None:
        if self.is_sticks:
            main_x, main_y = snapshot.main_stick
            c_x, c_y = snapshot.c_stick
            text = f"Main ({main_x:3d}, {main_y:3d})   C ({c_x:3d}, {c_y:3d})"
        else:
            text = f"L {snapshot.l_trigger:3d}   R {snapshot.r_trigger:3d}"
        self.readout_label.setText(text)

    def _refresh(self) -> None:
        self.prompt_label.setText(self.session.prompt())
        done, total = self.session.progress()
        self.progress.setRange(0, total)
        self.progress.setValue(done)
        self.apply_button.setEnabled(self.session.finished)
        self.confirm_button.setEnabled(not self.session.finished)

        if self.is_sticks:
            for column, stick in enumerate(StickCalibrationSession.STICKS):
                center, notches = self.session.points(stick)
                cells = [center] + notches
                for row in range(len(NOTCH_LABELS) + 1):
                    point = cells[row] if row < len(cells) else None
                    self._set_cell(row, column, "" if point is None else f"({point[0]}, {point[1]})")
        else:
            for column, trigger in enumerate(TriggerCalibrationSession.TRIGGERS):
                bounds = self.session.bounds[trigger]
                for row, key in enumerate(("min", "max")):
                    value = bounds[key]
                    self._set_cell(row, column, "" if value is None else str(value))

    def _set_cell(self, row: int, column: int, text: str) -> None:
        self.points_table.setItem(row, column, QtWidgets.QTableWidgetItem(text))

    def restart(self) -> None:
        self.session.cancel()
        self._refresh()

    def apply(self) -> None:
        try:
            self.session.apply(self.store)
        except GcStudioError as exc:
            QtWidgets.QMessageBox.warning(self, "Calibration", f"{exc}\n\nRestart to capture again.")
            return
        self.accept()

    def discard(self) -> None:
        self.session.cancel()
        self.reject()


class StudioWindow(QtWidgets.QMainWindow):
    def __init__(self, config_path: pathlib.Path, schema: SchemaNode, log_buffer: LogBuffer) -> None:
        super().__init__()
        self.config_path = config_path
        self.log_buffer = log_buffer
        self.log_version = -1
        self.resize(1100, 820)

        self.reload_flag = ReloadFlag()
        self.store = ProfileStore(JsonFileDocumentStore(config_path), schema, self.reload_flag)
        self.editor = SchemaEditor(schema, NULLABLE_DEFAULTS)
        self.latest = LatestInputs()
        self.source: Optional[gamepad.GamepadSource] = None
        self.joystick = None
        self.syncing = False

        gamepad.init_input_system()
        self._build_ui()
        self._load_initial()
        self.refresh_controllers()

        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(16)
        self.timer.timeout.connect(self._poll)
        self.timer.start()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # noqa: N802
        if self.store.is_dirty():
            answer = QtWidgets.QMessageBox.question(
                self,
                "Unsaved changes",
                "Save changes before closing?",
                QtWidgets.QMessageBox.Save | QtWidgets.QMessageBox.Discard | QtWidgets.QMessageBox.Cancel,
            )
            if answer == QtWidgets.QMessageBox.Cancel:
                event.ignore()
                return
            if answer == QtWidgets.QMessageBox.Save and not self.save():
                event.ignore()
                return
        self.timer.stop()
        self._disconnect()
        gamepad.shutdown_input_system()
        super().closeEvent(event)

    def _build_ui(self) -> None:
        shell = QtWidgets.QWidget()
        root = QtWidgets.QVBoxLayout(shell)

        profile_bar = QtWidgets.QHBoxLayout()
        profile_bar.addWidget(QtWidgets.QLabel("Profile"))
        self.profile_combo = QtWidgets.QComboBox()
        self.profile_combo.setMinimumWidth(200)
        self.profile_combo.currentIndexChanged.connect(self._profile_selected)
        profile_bar.addWidget(self.profile_combo)
        for text, slot in (
            ("Add", self.add_profile),
            ("Remove", self.remove_profile),
            ("Save", self.save),
            ("Reload", self.reload),
            ("Discard", self.discard),
            ("Schema URL", self.update_schema_url),
        ):
            button = QtWidgets.QPushButton(text)
            button.clicked.connect(slot)
            profile_bar.addWidget(button)
        profile_bar.addStretch(1)
        root.addLayout(profile_bar)

        controller_bar = QtWidgets.QHBoxLayout()
        controller_bar.addWidget(QtWidgets.QLabel("Controller"))
        self.controller_combo = QtWidgets.QComboBox()
        self.controller_combo.setMinimumWidth(260)
        controller_bar.addWidget(self.controller_combo)
        for text, slot in (
            ("Refresh", self.refresh_controllers),
            ("Connect", self.connect_selected),
            ("Calibrate sticks", self.calibrate_sticks),
            ("Calibrate triggers", self.calibrate_triggers),
        ):
            button = QtWidgets.QPushButton(text)
            button.clicked.connect(slot)
            controller_bar.addWidget(button)
        controller_bar.addStretch(1)
        root.addLayout(controller_bar)

        self.inputs_label = QtWidgets.QLabel()
        self.inputs_label.setStyleSheet("font-family: monospace; color:#4B546E;")
        root.addWidget(self.inputs_label)

        splitter = QtWidgets.QSplitter(QtCore.Qt.Vertical)
        self.form_scroll = QtWidgets.QScrollArea()
        self.form_scroll.setWidgetResizable(True)
        splitter.addWidget(self.form_scroll)

        self.log_view = QtWidgets.QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumBlockCount(LOG_LINES)
        splitter.addWidget(self.log_view)
        splitter.setStretchFactor(0, 4)
        splitter.setStretchFactor(1, 1)
        root.addWidget(splitter, 1)

        self.message_label = QtWidgets.QLabel()
        self.message_label.setStyleSheet("color:#6C748A;")
        root.addWidget(self.message_label)

        self.setCentralWidget(shell)

    def _message(self, text: str) -> None:
        self.message_label.setText(text)

    def _load_initial(self) -> None:
        if not self.store.backend.exists():
            self._message(f"New configuration. Save to create {self.config_path}.")
        else:
            try:
                self.store.load()
            except GcStudioError as exc:
                QtWidgets.QMessageBox.critical(
                    self,
                    "Configuration",
                    f"Could not load {self.config_path}:\n{exc}\n\nStarting from defaults; saving will overwrite it.",
                )
        self._sync_profiles()
        self.rebuild_form()

    # Profiles

    def _sync_profiles(self) -> None:
        self.syncing = True
        self.profile_combo.clear()
        self.profile_combo.addItems(self.store.profile_names)
        self.profile_combo.setCurrentText(self.store.current_profile_name)
        self.syncing = False

    def _profile_selected(self, index: int) -> None:
        if self.syncing or index < 0:
            return
        self.store.commit()
        self.store.select_profile(self.profile_combo.itemText(index))
        self.rebuild_form()

    def add_profile(self) -> None:
        name, ok = QtWidgets.QInputDialog.getText(self, "Add profile", "Profile name:")
        if not ok:
            return
        replace = False
        if name.strip() in self.store.profile_names:
            answer = QtWidgets.QMessageBox.question(
                self, "Add profile", f"Profile {name.strip()!r} already exists. Overwrite it?"
            )
            if answer != QtWidgets.QMessageBox.Yes:
                return
            replace = True
        try:
            self.store.add_profile(name, replace=replace)
        except GcStudioError as exc:
            QtWidgets.QMessageBox.warning(self, "Add profile", str(exc))
            return
        self._sync_profiles()
        self.rebuild_form()

    def remove_profile(self) -> None:
        name = self.store.current_profile_name
        answer = QtWidgets.QMessageBox.question(self, "Remove profile", f"Remove profile {name!r}?")
        if answer != QtWidgets.QMessageBox.Yes:
            return
        try:
            self.store.remove_profile(name)
        except GcStudioError as exc:
            QtWidgets.QMessageBox.warning(self, "Remove profile", str(exc))
            return
        self._sync_profiles()
        self.rebuild_form()

    def save(self) -> bool:
        try:
            self.store.save()
        except StoreIOError as exc:
            QtWidgets.QMessageBox.critical(self, "Save", str(exc))
            return False
        self._message(f"Saved {self.config_path}")
        return True

    def reload(self) -> None:
        if self.store.is_dirty():
            answer = QtWidgets.QMessageBox.question(self, "Reload", "Discard unsaved changes and reload?")
            if answer != QtWidgets.QMessageBox.Yes:
                return
        try:
            self.store.load()
        except GcStudioError as exc:
            QtWidgets.QMessageBox.critical(self, "Reload", str(exc))
            return
        self._sync_profiles()
        self.rebuild_form()

    def discard(self) -> None:
        self.store.discard_changes()
        self.rebuild_form()
        self._message("Discarded unsaved edits of the current profile")

    def update_schema_url(self) -> None:
        url, ok = QtWidgets.QInputDialog.getText(self, "Schema URL", "$schema:", text=self.store.schema_url or "")
        if ok and url.strip():
            self.store.update_schema_url(url.strip())

    # Form

    def rebuild_form(self) -> None:
        scroll = self.form_scroll.verticalScrollBar().value()
        view = self.editor.render(self.store.edit_buffer().config)

        container = QtWidgets.QWidget()
        layout = QtWidgets.QFormLayout(container)
        self._add_field(view, layout)
        self.form_scroll.setWidget(container)
        self.form_scroll.verticalScrollBar().setValue(scroll)

    def _add_field(self, view: FieldView, layout: QtWidgets.QFormLayout) -> None:
        if view.kind == "object":
            if not view.label:
                for child in view.children:
                    self._add_field(child, layout)
                return
            box = QtWidgets.QGroupBox(view.label)
            inner = QtWidgets.QFormLayout(box)
            for child in view.children:
                self._add_field(child, inner)
            box.setToolTip(view.description)
            layout.addRow(box)
            return

        if view.kind == "nullable":
            box = QtWidgets.QGroupBox(view.label if view.present else f"{view.label} (not set)")
            box.setCheckable(True)
            box.setChecked(bool(view.present))
            box.setToolTip(view.description)
            box.toggled.connect(lambda checked, p=view.path: self._set_present(p, checked))
            inner = QtWidgets.QFormLayout(box)
            for child in view.children:
                if child.kind == "object":
                    for grandchild in child.children:
                        self._add_field(grandchild, inner)
                else:
                    self._add_field(dataclasses.replace(child, label="value"), inner)
            layout.addRow(box)
            return

        widget = self._field_widget(view)
        widget.setToolTip(view.description or format_path(view.path))
        layout.addRow(view.label, widget)

    def _field_widget(self, view: FieldView) -> QtWidgets.QWidget:
        if view.kind == "boolean":
            check = QtWidgets.QCheckBox()
            check.setChecked(bool(view.value))
            check.toggled.connect(lambda checked, p=view.path: self._toggle(p))
            return check

        if view.kind in ("integer", "number"):
            return self._number_widget(view)

        if view.kind == "enum":
            combo = QtWidgets.QComboBox()
            combo.addItems(list(view.variants))
            if view.value not in view.variants:
                combo.addItem(str(view.value))
                combo.setStyleSheet("color:#C04F4F;")
            combo.setCurrentText(str(view.value))
            combo.activated.connect(lambda index, p=view.path, w=combo: self._edit(p, w.itemText(index)))
            return combo

        if view.kind == "array":
            row = QtWidgets.QWidget()
            layout = QtWidgets.QHBoxLayout(row)
            layout.setContentsMargins(0, 0, 0, 0)
            for child in view.children:
                layout.addWidget(self._leaf_widget(child))
            layout.addStretch(1)
            return row

        if view.kind == "grid":
            grid_widget = QtWidgets.QWidget()
            grid = QtWidgets.QGridLayout(grid_widget)
            grid.setContentsMargins(0, 0, 0, 0)
            for column in range(view.columns):
                grid.addWidget(QtWidgets.QLabel(f"[{column}]"), 0, column + 1)
            for row in range(view.rows):
                grid.addWidget(QtWidgets.QLabel(f"[{row}]"), row + 1, 0)
            for child in view.children:
                row, column = child.cell
                grid.addWidget(self._leaf_widget(child), row + 1, column + 1)
            return grid_widget

        label = QtWidgets.QLabel(view.message)
        label.setWordWrap(True)
        color = "#C04F4F" if view.kind == "mismatch" else "#8A8F9E"
        label.setStyleSheet(f"color:{color};")
        return label

    def _leaf_widget(self, view: FieldView) -> QtWidgets.QWidget:
        if view.kind in ("integer", "number"):
            widget = self._number_widget(view)
        else:
            widget = self._field_widget(view)
        widget.setToolTip(format_path(view.path))
        return widget

    def _number_widget(self, view: FieldView) -> QtWidgets.QWidget:
        if view.kind == "integer":
            spin = QtWidgets.QSpinBox()
            spin.setRange(
                -SPIN_LIMIT if view.minimum is None else max(-SPIN_LIMIT, view.minimum),
                SPIN_LIMIT if view.maximum is None else min(SPIN_LIMIT, view.maximum),
            )
            spin.setValue(max(-SPIN_LIMIT, min(SPIN_LIMIT, view.value)))
        else:
            spin = QtWidgets.QDoubleSpinBox()
            spin.setDecimals(3)
            spin.setSingleStep(0.05)
            spin.setRange(
                -FLOAT_LIMIT if view.minimum is None else view.minimum,
                FLOAT_LIMIT if view.maximum is None else view.maximum,
            )
            spin.setValue(float(view.value))
        spin.setKeyboardTracking(False)
        spin.editingFinished.connect(lambda p=view.path, w=spin: self._edit(p, w.value()))
        return spin

    def _apply_edit(self, action, *args) -> None:
        try:
            changed = action(self.store.edit_buffer(), *args)
        except GcStudioError as exc:
            QtWidgets.QMessageBox.warning(self, "Edit", str(exc))
            changed = True
        if changed:
            QtCore.QTimer.singleShot(0, self.rebuild_form)

    def _edit(self, path: Path, value) -> None:
        self._apply_edit(self.editor.edit, path, value)

    def _toggle(self, path: Path) -> None:
        self._apply_edit(self.editor.toggle, path)

    def _set_present(self, path: Path, present: bool) -> None:
        self._apply_edit(self.editor.set_present, path, present)

    # Controller

    def refresh_controllers(self) -> None:
        self.controller_combo.clear()
        for info in gamepad.list_controllers():
            self.controller_combo.addItem(f"[{info.index}] {info.name}", info.index)
        if self.controller_combo.count() == 0:
            self._message("No controller detected")

    def connect_selected(self) -> None:
        index = self.controller_combo.currentData()
        if index is None:
            QtWidgets.QMessageBox.warning(self, "Controller", "No controller detected.")
            return

        self._disconnect()
        try:
            joystick, info = gamepad.open_controller(int(index))
            mapping = gamepad.GamepadMapping()
            gamepad.validate_mapping(mapping, info)
        except RuntimeError as exc:
            QtWidgets.QMessageBox.warning(self, "Controller", str(exc))
            return

        # pygame is only touched from this thread; the frame timer samples it
        self.joystick = joystick
        self.source = gamepad.GamepadSource(joystick, mapping)
        logger.info("Connected %s (#%d)", info.name, info.index)
        self._message(f"Connected {info.name}")

    def _disconnect(self) -> None:
        self.source = None
        if self.joystick is not None:
            self.joystick.quit()
            self.joystick = None
        self.latest.publish(InputSnapshot())

    def calibrate_sticks(self) -> None:
        self._calibrate(StickCalibrationSession())

    def calibrate_triggers(self) -> None:
        self._calibrate(TriggerCalibrationSession())

    def _calibrate(self, session: CalibrationSession) -> None:
        if self.source is None:
            self._message("No controller connected; use the Confirm button to step through")
        dialog = CalibrationDialog(session, self.latest, self.store, self)
        if dialog.exec() == QtWidgets.QDialog.Accepted:
            self.rebuild_form()
            self._message("Calibration applied. Save to keep it.")

    # Frame

    def _sample(self) -> None:
        if self.source is None:
            return
        try:
            self.latest.publish(self.source.read())
        except gamepad.GamepadError as exc:
            logger.error("Reading controller input failed: %s", exc)
            self._disconnect()
            self._message("Controller disconnected")

    def _poll(self) -> None:
        self._sample()
        snapshot = self.latest.snapshot()
        main_x, main_y = snapshot.main_stick
        c_x, c_y = snapshot.c_stick
        self.inputs_label.setText(
            f"Main ({main_x:3d}, {main_y:3d})   C ({c_x:3d}, {c_y:3d})   "
            f"{Trigger.LEFT.label} {snapshot.l_trigger:3d}   {Trigger.RIGHT.label} {snapshot.r_trigger:3d}   "
            f"A {'down' if snapshot.confirm_pressed else 'up'}"
        )

        dirty = " *" if self.store.is_dirty() else ""
        self.setWindowTitle(f"gcstudio - {self.config_path}{dirty}")

        if self.reload_flag.take():
            logger.info("Configuration changed; adapter reload requested")

        if self.log_buffer.version != self.log_version:
            self.log_version = self.log_buffer.version
            self.log_view.setPlainText("\n".join(self.log_buffer.lines))
            self.log_view.verticalScrollBar().setValue(self.log_view.verticalScrollBar().maximum())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gcstudio-gui", description="gcstudio desktop editor.")
    parser.add_argument(
        "--config",
        type=pathlib.Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Configuration store path (default: {DEFAULT_CONFIG_PATH}).",
    )
    parser.add_argument("--schema", type=pathlib.Path, default=None, help="Custom JSON Schema for the store.")
    parser.add_argument("--verbose", action="store_true", help="Log debug messages to the panel.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    log_buffer = LogBuffer()
    logging.getLogger().addHandler(log_buffer)

    try:
        schema = profile_schema(load_store_schema(args.schema))
    except GcStudioError as exc:
        print(f"Error: {exc}")
        return 1

    app = QtWidgets.QApplication(sys.argv[:1])
    window = StudioWindow(args.config, schema, log_buffer)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
