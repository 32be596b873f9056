# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Headless entry point: loads settings and the catalog, wires the scanner
# together and runs the detection tick until interrupted.

import argparse
import json
import os
import sys
import time

from config import SettingsManager
from core import DetectionEngine
from scanner import ScanOrchestrator
from services import Catalog, LoggingService, PlayerStateStore, ScanResultQueue
from utils import DebugImageWriter, get_app_dir, resolve_data_path
from vision import IconHashStore, OCRService, ScreenCapture
from vision.marker_localizer import load_template

# ============================================================================
# PATHS
# ============================================================================

BASE_DIR = get_app_dir()
SETTINGS_FILE = os.path.join(BASE_DIR, "raidscannersettings.json")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="raid_scanner",
        description="Recognize game screens, items and map position from screen captures.",
    )
    parser.add_argument("--settings", default=SETTINGS_FILE, help="Settings JSON file")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    parser.add_argument(
        "--scan",
        choices=("tooltip", "icon", "name"),
        help="Run one item scan and exit instead of the detection loop",
    )
    parser.add_argument(
        "--at",
        nargs=2,
        type=int,
        metavar=("X", "Y"),
        help="Screen point for --scan tooltip/icon",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=0.0,
        help="Stop the detection loop after this many seconds (0 = until Ctrl+C)",
    )
    parser.add_argument(
        "--set-threshold",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Store a recognition threshold override in the settings file and exit",
    )
    return parser.parse_args(argv)


def parse_threshold_overrides(pairs):
    """Turn NAME=VALUE strings into a dict, VALUE parsed as JSON when possible"""
    overrides = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name.strip():
            raise SystemExit(f"--set-threshold expects NAME=VALUE, got '{pair}'")
        try:
            value = json.loads(raw)
        except ValueError:
            value = raw
        overrides[name.strip()] = value
    return overrides


def build_orchestrator(settings_manager, capture, results, player_state):
    """Create the orchestrator and its collaborators from saved settings"""
    thresholds = settings_manager.load_thresholds()
    scan_settings = settings_manager.load_scan_settings()
    detection = settings_manager.load_state_detection_settings()
    paths = settings_manager.load_paths()
    debug = settings_manager.load_debug_settings()

    catalog = Catalog.from_json_file(resolve_data_path(paths["catalog_file"]), thresholds)
    icon_store = IconHashStore(resolve_data_path(paths["icon_directory"]))
    ocr = OCRService(resolve_data_path(paths["tesseract_path"]) or None)
    template = load_template(resolve_data_path(paths["marker_template"]))
    debug_writer = DebugImageWriter(
        resolve_data_path(debug["debug_directory"]), debug["save_debug_images"]
    )

    callbacks = player_state.callbacks()
    callbacks["on_scan_result"] = results.put

    return ScanOrchestrator(
        capture,
        ocr,
        catalog,
        icon_store,
        settings=thresholds,
        scan_settings=scan_settings,
        cooldowns=detection["cooldowns"],
        callbacks=callbacks,
        debug_writer=debug_writer,
        marker_template=template,
    )


def run_single_scan(orchestrator, kind, point):
    if kind == "name":
        return orchestrator.name_scan_at_screen()
    if point is None:
        raise SystemExit("--scan tooltip/icon needs --at X Y")
    if kind == "icon":
        return orchestrator.icon_scan(tuple(point))
    return orchestrator.tooltip_scan(tuple(point))


def main(argv=None):
    args = parse_args(argv)

    settings_manager = SettingsManager(args.settings)
    debug = settings_manager.load_debug_settings()
    level = LoggingService.parse_level(args.log_level or debug["log_level"])
    logging_service = LoggingService(os.path.join(BASE_DIR, "raid_scanner.log"), level)
    logger = logging_service.get_logger()

    if args.set_threshold:
        overrides = parse_threshold_overrides(args.set_threshold)
        stored = settings_manager.save_thresholds(overrides)
        logger.info(f"[Settings] Stored thresholds: {', '.join(stored) or 'none'}")
        return 0 if len(stored) == len(overrides) else 1

    capture = ScreenCapture()
    results = ScanResultQueue(settings_manager.load_scan_settings()["max_queued_results"])
    player_state = PlayerStateStore()
    orchestrator = build_orchestrator(settings_manager, capture, results, player_state)

    try:
        if args.scan:
            result = run_single_scan(orchestrator, args.scan, args.at)
            print(f"{result.item.name}\t{result.confidence:.2f}\t{result.kind}")
            return 0 if not result.failed else 1

        if not settings_manager.load_state_detection_settings()["enabled"]:
            logger.warning("State detection is disabled in settings, nothing to run")
            return 0

        engine = DetectionEngine(
            orchestrator,
            settings_manager.load_scan_settings()["tick_interval"],
            logger,
        )
        engine.start()
        started = time.time()
        try:
            while engine.is_running():
                if args.duration and time.time() - started >= args.duration:
                    break
                time.sleep(0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            engine.stop()

        snapshot = player_state.snapshot()
        logger.info(
            f"Last state: {snapshot.last_detected_state}, in raid: {snapshot.is_in_raid}, "
            f"queued map: {snapshot.queued_map_name or '-'}"
        )
        return 0
    finally:
        orchestrator.shutdown()
        capture.cleanup()


if __name__ == "__main__":
    sys.exit(main())
