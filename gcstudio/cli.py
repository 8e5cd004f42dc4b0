#!/usr/bin/env python3
"""Command-line front end for profiles, schema-driven fields and calibration."""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import __version__
from .calibration import NOTCH_LABELS, StickCalibrationSession, TriggerCalibrationSession
from .defaults import DEFAULT_SCHEMA_URL, NULLABLE_DEFAULTS, STORE_SCHEMA, default_store_document
from .editor import FieldView, SchemaEditor
from .errors import GcStudioError, StoreIOError
from .profiles import JsonFileDocumentStore, ProfileStore
from .schema import SchemaNode, format_path, parse_path, profile_schema, resolve

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = pathlib.Path("gcstudio.json")


def prompt_yes_no(prompt: str, default: bool = True) -> bool:
    default_token = "Y/n" if default else "y/N"
    try:
        raw = input(f"{prompt} ({default_token}): ").strip().lower()
    except EOFError:
        return default

    if not raw:
        return default
    if raw in {"y", "yes"}:
        return True
    if raw in {"n", "no"}:
        return False
    return default


def parse_axis_pair(value: str) -> Tuple[int, int]:
    parts = [part.strip() for part in value.split(",") if part.strip()]
    if len(parts) != 2:
        raise argparse.ArgumentTypeError("Axis pair must look like: 0,1")

    try:
        first, second = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Axis values must be integers.") from exc

    if first == second:
        raise argparse.ArgumentTypeError("Axis values must be different.")

    return first, second


def load_store_schema(path: Optional[pathlib.Path]) -> Dict[str, Any]:
    if path is None:
        return STORE_SCHEMA
    return JsonFileDocumentStore(path).load_document()


def open_store(args: argparse.Namespace) -> ProfileStore:
    schema = profile_schema(load_store_schema(args.schema))
    backend = JsonFileDocumentStore(args.config)
    if not backend.exists():
        raise StoreIOError(f"{args.config} does not exist. Create it with `gcstudio init`.")
    logger.info("Opening store %s", args.config)
    store = ProfileStore(backend, schema)
    store.load()
    return store


def make_editor(schema: SchemaNode) -> SchemaEditor:
    return SchemaEditor(schema, NULLABLE_DEFAULTS)


def describe_field(view: FieldView) -> str:
    if view.kind == "boolean":
        return f"{view.label} = {'true' if view.value else 'false'}"
    if view.kind in ("integer", "number"):
        bounds = ""
        if view.minimum is not None or view.maximum is not None:
            low = "" if view.minimum is None else view.minimum
            high = "" if view.maximum is None else view.maximum
            bounds = f"  [{low}..{high}]"
        return f"{view.label} = {view.value}{bounds}"
    if view.kind == "enum":
        return f"{view.label} = {view.value}  ({' | '.join(view.variants)})"
    if view.kind == "array":
        values = ", ".join(str(child.value) for child in view.children)
        return f"{view.label} = [{values}]"
    if view.kind == "mismatch":
        return f"{view.label}: MISMATCH {view.message}"
    if view.kind == "unsupported":
        return f"{view.label}: unsupported ({view.message})"
    return f"{view.label}:"


def format_fields(view: FieldView, depth: int = 0) -> List[str]:
    indent = "  " * depth
    lines: List[str] = []

    if view.kind == "nullable":
        if not view.present:
            return [f"{indent}{view.label} = null  (optional, `gcstudio present {format_path(view.path)}`)"]
        for child in view.children:
            lines.extend(format_fields(child, depth))
        return lines

    if view.kind == "grid":
        lines.append(f"{indent}{view.label}: {view.columns} x {view.rows}")
        cells = {child.cell: child for child in view.children}
        for row in range(view.rows):
            values = []
            for column in range(view.columns):
                cell = cells.get((row, column))
                values.append("-" if cell is None else f"{cell.value:>3}")
            lines.append(f"{indent}  {' '.join(values)}")
        return lines

    if view.label:
        lines.append(f"{indent}{describe_field(view)}")
        depth += 1
    if view.kind == "object":
        for child in view.children:
            lines.extend(format_fields(child, depth))
    return lines


def command_init(args: argparse.Namespace) -> int:
    backend = JsonFileDocumentStore(args.config)
    if backend.exists() and not args.force:
        print(f"Error: {args.config} already exists. Use --force to overwrite.")
        return 1

    backend.save_document(default_store_document(args.schema_url))
    print(f"Wrote default configuration: {args.config}")

    if args.schema is None and args.schema_url == DEFAULT_SCHEMA_URL:
        schema_path = backend.path.parent / DEFAULT_SCHEMA_URL
        JsonFileDocumentStore(schema_path).save_document(STORE_SCHEMA)
        print(f"Wrote schema: {schema_path}")
    return 0


def command_schema(args: argparse.Namespace) -> int:
    print(json.dumps(load_store_schema(args.schema), indent=2))
    return 0


def command_profiles(args: argparse.Namespace) -> int:
    store = open_store(args)

    if args.action == "list":
        for name in store.profile_names:
            marker = "*" if name == store.current_profile_name else " "
            print(f"{marker} {name}")
        return 0

    if args.action == "select":
        store.select_profile(args.name)
        print(f"Selected profile: {args.name}")
    elif args.action == "add":
        config = None
        if args.source is not None:
            config = store.get_profile(args.source).config
        replace = args.replace
        if not replace and args.name.strip() in store.profile_names:
            replace = prompt_yes_no(f"Profile {args.name!r} exists. Overwrite it?", default=False)
            if not replace:
                print("Cancelled.")
                return 0
        store.add_profile(args.name, config=config, replace=replace)
        print(f"Added profile: {args.name.strip()}")
    elif args.action == "remove":
        store.remove_profile(args.name)
        print(f"Removed profile: {args.name} (current: {store.current_profile_name})")

    store.save()
    return 0


def command_fields(args: argparse.Namespace) -> int:
    store = open_store(args)
    editor = make_editor(store.schema)
    view = editor.render(store.edit_buffer().config)

    print(f"Profile: {store.current_profile_name}")
    for line in format_fields(view):
        print(line)

    if editor.diagnostics:
        print(f"\n{len(editor.diagnostics)} field(s) could not be edited:")
        for diagnostic in editor.diagnostics:
            print(f"  {diagnostic}")
    return 0


def _path_argument(text: str):
    try:
        return parse_path(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def command_edit(args: argparse.Namespace) -> int:
    store = open_store(args)
    editor = make_editor(store.schema)
    profile = store.edit_buffer()

    if args.command == "set":
        changed = editor.edit(profile, args.path, args.value)
    elif args.command == "toggle":
        changed = editor.toggle(profile, args.path)
    else:
        changed = editor.set_present(profile, args.path, args.command == "present")

    if not changed:
        print(f"No change to {format_path(args.path)}.")
        return 0

    store.save()
    value = resolve(profile.config, args.path)
    print(f"{format_path(args.path)} = {json.dumps(value)}")
    return 0


def command_schema_url(args: argparse.Namespace) -> int:
    store = open_store(args)
    store.update_schema_url(args.url)
    store.save()
    print(f"Schema URL: {args.url}")
    return 0


def _mapping_from_args(args: argparse.Namespace):
    from .gamepad import GamepadMapping

    return GamepadMapping(
        main_axes=args.main_axes,
        c_axes=args.c_axes,
        l_trigger_axis=args.l_trigger_axis,
        r_trigger_axis=args.r_trigger_axis,
        confirm_button=args.confirm_button,
    )


def _readout(session, snapshot) -> str:
    if isinstance(session, StickCalibrationSession):
        return f"main ({snapshot.main_stick[0]:3d},{snapshot.main_stick[1]:3d}) C ({snapshot.c_stick[0]:3d},{snapshot.c_stick[1]:3d})"
    return f"L {snapshot.l_trigger:3d}  R {snapshot.r_trigger:3d}"


def print_session_result(session) -> None:
    if isinstance(session, StickCalibrationSession):
        main_stick, c_stick = session.result()
        for label, cal in (("Main stick", main_stick), ("C-stick", c_stick)):
            print(f"{label}: center {cal.center}")
            for name, point in zip(NOTCH_LABELS, cal.notch_points):
                print(f"  {name:<12} {point}")
    else:
        l_trigger, r_trigger = session.result()
        print(f"Left trigger:  {l_trigger.min} .. {l_trigger.max}")
        print(f"Right trigger: {r_trigger.min} .. {r_trigger.max}")


def command_calibrate(args: argparse.Namespace) -> int:
    from .gamepad import GamepadSource, init_input_system, open_controller, shutdown_input_system, validate_mapping

    store = open_store(args)
    session = StickCalibrationSession() if args.target == "sticks" else TriggerCalibrationSession()
    frame_delay = 1 / max(20, args.fps)

    init_input_system()
    joystick = None
    try:
        joystick, info = open_controller(args.controller_index)
        mapping = _mapping_from_args(args)
        validate_mapping(mapping, info)
        source = GamepadSource(joystick, mapping)
        print(f"Using controller #{info.index}: {info.name}")
        print("Press Ctrl+C to cancel.\n")

        prompt = None
        while not session.finished:
            snapshot = source.read()
            session.feed(snapshot)
            if session.prompt() != prompt:
                prompt = session.prompt()
                done, total = session.progress()
                print(f"\n[{done}/{total}] {prompt}")
            print(f"\r{_readout(session, snapshot)}", end="", flush=True)
            time.sleep(frame_delay)
        print()
    except KeyboardInterrupt:
        session.cancel()
        print("\nCalibration cancelled.")
        return 0
    finally:
        if joystick is not None:
            joystick.quit()
        shutdown_input_system()

    print_session_result(session)
    if not args.yes and not prompt_yes_no(f"Apply to profile {store.current_profile_name!r} and save?"):
        session.cancel()
        print("Calibration discarded.")
        return 0

    session.apply(store)
    store.save()
    print(f"Saved calibration to profile {store.current_profile_name!r} in {args.config}")
    return 0


def command_list(args: argparse.Namespace) -> int:
    from .gamepad import init_input_system, list_controllers, shutdown_input_system

    init_input_system()
    try:
        controllers = list_controllers()
    finally:
        shutdown_input_system()

    if not controllers:
        print("No controllers detected.")
        return 1

    print("Connected controllers")
    print("---------------------")
    for controller in controllers:
        print(
            f"[{controller.index}] {controller.name} | guid={controller.guid} | "
            f"axes={controller.axis_count} buttons={controller.button_count}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcstudio",
        description="GameCube adapter profile editor and calibration tool.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=pathlib.Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Configuration store path (default: {DEFAULT_CONFIG_PATH}).",
    )
    parser.add_argument(
        "--schema",
        type=pathlib.Path,
        default=None,
        help="Custom JSON Schema for the store. Defaults to the bundled schema.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log informational messages.")

    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help="Write a default configuration store.")
    init.add_argument("--force", action="store_true", help="Overwrite an existing store.")
    init.add_argument(
        "--schema-url",
        default=DEFAULT_SCHEMA_URL,
        help=f"$schema value written to the store (default: {DEFAULT_SCHEMA_URL}).",
    )
    init.set_defaults(handler=command_init)

    schema = commands.add_parser("schema", help="Print the store schema.")
    schema.set_defaults(handler=command_schema)

    schema_url = commands.add_parser("schema-url", help="Update the $schema URL of the store.")
    schema_url.add_argument("url")
    schema_url.set_defaults(handler=command_schema_url)

    profiles = commands.add_parser("profiles", help="List, select, add or remove profiles.")
    actions = profiles.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List profiles; * marks the current one.")
    select = actions.add_parser("select", help="Make a profile current.")
    select.add_argument("name")
    add = actions.add_parser("add", help="Add a profile (copy of the current one by default).")
    add.add_argument("name")
    add.add_argument("--from", dest="source", default=None, help="Copy the config of this profile instead.")
    add.add_argument("--replace", action="store_true", help="Overwrite an existing profile without asking.")
    remove = actions.add_parser("remove", help="Remove a profile.")
    remove.add_argument("name")
    profiles.set_defaults(handler=command_profiles)

    fields = commands.add_parser("fields", help="Show the current profile as an editable field tree.")
    fields.set_defaults(handler=command_fields)

    set_field = commands.add_parser("set", help="Set a field of the current profile, e.g. set analog_scale 0.9")
    set_field.add_argument("path", type=_path_argument)
    set_field.add_argument("value")
    set_field.set_defaults(handler=command_edit)

    for name, help_text in (
        ("toggle", "Flip a boolean field."),
        ("null", "Clear an optional field."),
        ("present", "Fill an optional field with its default value."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("path", type=_path_argument)
        sub.set_defaults(handler=command_edit)

    calibrate = commands.add_parser("calibrate", help="Capture stick or trigger calibration from a controller.")
    calibrate.add_argument("target", choices=["sticks", "triggers"])
    calibrate.add_argument("--fps", type=int, default=60, help="Sampling rate (default: 60).")
    calibrate.add_argument("--yes", action="store_true", help="Apply and save without asking.")
    calibrate.add_argument(
        "--controller-index",
        type=int,
        default=0,
        help="Controller index (default: 0). See `gcstudio list`.",
    )
    calibrate.add_argument(
        "--main-axes",
        type=parse_axis_pair,
        default=(0, 1),
        help="Main stick axes, e.g. --main-axes 0,1",
    )
    calibrate.add_argument(
        "--c-axes",
        type=parse_axis_pair,
        default=(2, 3),
        help="C-stick axes, e.g. --c-axes 2,3",
    )
    calibrate.add_argument("--l-trigger-axis", type=int, default=4, help="Left trigger axis (default: 4).")
    calibrate.add_argument("--r-trigger-axis", type=int, default=5, help="Right trigger axis (default: 5).")
    calibrate.add_argument(
        "--confirm-button",
        type=int,
        default=0,
        help="Button that confirms each step, normally A (default: 0).",
    )
    calibrate.set_defaults(handler=command_calibrate)

    listing = commands.add_parser("list", help="List connected controllers.")
    listing.set_defaults(handler=command_list)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.handler(args)
    except (GcStudioError, RuntimeError) as exc:
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
