"""
Scan Orchestrator - Raid Scanner
================================
Coordinates the three user-triggered scans and the periodic detection tick.

Scans:
    - name_scan_at_screen(): find a tooltip anywhere on the screen and read
      its title
    - icon_scan(point): identify the cursor-highlighted icon by hash
    - tooltip_scan(point): find the tooltip next to the cursor, read it, and
      fall back to icon hashes when the text does not match

Every scan returns (and emits) a ScanResult. When nothing can be found the
result is a zero-confidence "Scan failed: <reason>" placeholder, never an
exception.

Locking:
    Each scan kind has its own OrderedLock (name < icon < tooltip). The
    tooltip scan takes the icon lock and then its own, because its last
    fallback calls icon_scan() directly on the same thread; the nested call
    only re-enters the icon lock. Do not move that fallback onto another
    thread without re-deriving the order.

Tick:
    tick() is guarded by an in-progress flag, not a lock. A tick that
    arrives while the previous one is still running is skipped.

Callbacks (all optional):
    on_scan_result(ScanResult), on_state_changed(StateTransition),
    on_marker_detected(PlayerMarkerDetection), on_quests(ids),
    on_workbench_levels(dict), on_blueprints(ids), on_tracked_resources(ids),
    on_skill_tree(branches, available), on_queued_map(map_id, name),
    on_in_raid_hud(weapon, ammo_in_mag, ammo_reserve)
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from config.defaults import (
    DEFAULT_SCAN_SETTINGS,
    DEFAULT_THRESHOLDS,
    get_scan_geometry,
    resolution_scale,
)
from services.catalog import CatalogItem
from utils.debug_images import DebugImageWriter
from vision.color_detector import ColorDetector
from vision.frame import Rect
from vision.marker_localizer import MapLocalizer
from vision.ocr_service import (
    BODY_WHITELIST,
    PSM_AUTO,
    PSM_SINGLE_BLOCK,
    TITLE_WHITELIST,
    preprocess_for_ocr,
    upscale,
)
from vision.region_segmenter import RegionSegmenter
from vision.text_matcher import (
    MatchCandidate,
    MatchMethod,
    extract_likely_title,
    extract_title_from_title_region,
)
from .extractors import StateExtractors
from .icon_matcher import IconMatcher
from .locks import ScanLocks
from .results import ScanKind, ScanResult
from .state_classifier import StateClassifier

logger = logging.getLogger("RaidScanner")

TOOLTIP_ANCHOR_OFFSET = 15
MIN_TEXT_REGION = 20


def _clamp(value, low, high):
    return max(low, min(high, value))


def clamp_to_screen(x, y, width, height, screen):
    """Move (and shrink if needed) a capture rectangle into the screen"""
    width = min(int(width), screen.w)
    height = min(int(height), screen.h)
    x = _clamp(int(x), screen.left, screen.right - width)
    y = _clamp(int(y), screen.top, screen.bottom - height)
    return Rect(x, y, width, height)


def capture_attempts(point, scan_width, scan_height, screen):
    """
    Capture rectangles tried, in order, when looking for a tooltip.

    Tooltips open to the right of the cursor, so right-biased captures come
    first; centred, vertical and finally 3x-sized captures follow.

    Returns:
        list: [(label, Rect), ...] clamped to the screen
    """
    px, py = int(point[0]), int(point[1])
    top = py - scan_height // 2
    large_w = min(screen.w, scan_width * 3)
    large_h = min(screen.h, scan_height * 3)
    plan = [
        ("right-1", px + scan_width // 8, top, scan_width, scan_height),
        ("right-2", px + scan_width // 3, top, scan_width, scan_height),
        ("right-3", px + scan_width // 2, top, scan_width, scan_height),
        ("right", px, top, scan_width, scan_height),
        ("center-right", px - scan_width // 4, top, scan_width, scan_height),
        ("center", px - scan_width // 2, top, scan_width, scan_height),
        ("up", px - scan_width // 2, py - scan_height, scan_width, scan_height),
        ("down", px - scan_width // 2, py, scan_width, scan_height),
        ("large-center", px - large_w // 2, py - large_h // 2, large_w, large_h),
        ("large-right", px, py - large_h // 2, large_w, large_h),
    ]
    return [(label, clamp_to_screen(x, y, w, h, screen)) for label, x, y, w, h in plan]


def tooltip_regions(width, height):
    """
    Title band and body text region inside a tooltip crop.

    Returns:
        tuple: (title Rect or None, text Rect or None); a region under 20 px
            on either side is unusable and returned as None
    """
    bounds = Rect(0, 0, width, height)
    title_top = _clamp(int(height * 0.06), 20, 120)
    title_height = _clamp(int(height * 0.18), 60, 110)
    title = Rect(8, title_top, max(1, width - 16), title_height).intersect(bounds)
    text = Rect(8, 50, max(1, width - 16), max(1, min(320, height - 50))).intersect(bounds)

    def usable(rect):
        return rect if rect.w >= MIN_TEXT_REGION and rect.h >= MIN_TEXT_REGION else None

    return usable(title), usable(text)


class ScanOrchestrator:
    """
    Capture -> analyze -> emit, for user scans and the detection tick.
    """

    def __init__(
        self,
        capture,
        ocr_service,
        catalog,
        icon_store,
        settings=None,
        scan_settings=None,
        cooldowns=None,
        callbacks=None,
        debug_writer=None,
        marker_template=None,
        executor=None,
        sleep=time.sleep,
    ):
        """
        Args:
            capture: Capture source (capture(rect), capture_full_screen(),
                virtual_screen(), primary_screen())
            ocr_service: OCR engine wrapper (read_text)
            catalog (Catalog): Items, maps, quests, workstations, blueprints
            icon_store (IconHashStore): Lazily built icon hash index
            settings (dict): Threshold overrides (see DEFAULT_THRESHOLDS)
            scan_settings (dict): Scan behaviour overrides (see DEFAULT_SCAN_SETTINGS)
            cooldowns (dict): Extraction cooldown overrides
            callbacks (dict): Sink callbacks, see module docstring
            debug_writer (DebugImageWriter): Intermediate image dumps
            marker_template: Bool mask of the map marker (default arrow)
            executor: Executor for request_* calls (default: own thread pool)
            sleep (callable): Used for the tooltip settle delay
        """
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)
        self.scan_settings = dict(DEFAULT_SCAN_SETTINGS)
        if scan_settings:
            self.scan_settings.update(scan_settings)

        self.capture = capture
        self.ocr = ocr_service
        self.catalog = catalog
        self.icon_store = icon_store
        self._callbacks = callbacks or {}
        self.debug = debug_writer or DebugImageWriter(enabled=False)
        self._sleep = sleep

        screen = capture.primary_screen()
        self.scale = resolution_scale(screen.w, screen.h)
        self.geometry = get_scan_geometry(screen.w, screen.h)

        self.colors = ColorDetector(self.settings)
        self.segmenter = RegionSegmenter(self.settings, self.colors)
        self.icon_matcher = IconMatcher(icon_store, self.settings)
        self.classifier = StateClassifier(ocr_service, self.settings, debug_writer=self.debug)
        self.map_localizer = MapLocalizer(
            ocr_service, self.settings, marker_template, self.colors, self.debug
        )
        self.extractors = StateExtractors(
            catalog, self.map_localizer, self.settings, cooldowns, self._callbacks
        )

        self.locks = ScanLocks()
        self._tick_guard = threading.Lock()
        self._tick_in_progress = False

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, int(self.scan_settings["worker_threads"])),
            thread_name_prefix="RaidScanner-Scan",
        )

    # ========== CALLBACKS ==========

    def _emit(self, name, *args):
        callback = self._callbacks.get(name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"[Orchestrator] Callback {name} failed: {e}", exc_info=True)

    def _publish(self, result):
        if result.failed:
            logger.info(f"[{result.kind}] {result.item.name}")
        else:
            logger.info(
                f"[{result.kind}] Matched '{result.item.name}' ({result.item.id}) "
                f"conf={result.confidence:.2f} via {result.method}"
            )
        self._emit("on_scan_result", result)
        return result

    def _failed(self, reason, kind, anchor):
        duration = self.scan_settings["result_duration_ms"]
        return self._publish(ScanResult.scan_failed(reason, kind, anchor, duration))

    def _icon_result(self, match, kind, anchor):
        item = self.catalog.get_item(match.icon_id) or CatalogItem(match.icon_id, match.icon_id, match.icon_id)
        candidate = MatchCandidate(item, match.confidence, MatchMethod.HASH, match.icon_id)
        duration = self.scan_settings["result_duration_ms"]
        return self._publish(
            ScanResult.from_candidate(
                candidate, kind, anchor, duration, self.icon_store.icon_path(match.icon_id), ""
            )
        )

    # ========== ICON SCAN ==========

    def icon_scan(self, point):
        """
        Identify the cursor-highlighted icon at a screen point.

        Plain hash match first (distance <= 14), then the rotation-tolerant
        match on a tighter capture (distance <= 12, score >= 0.80).

        Returns:
            ScanResult
        """
        with self.locks.icon:
            try:
                return self._icon_scan(point)
            except Exception as e:
                logger.error(f"[IconScan] Unexpected failure: {e}", exc_info=True)
                return self._failed("Unexpected error", ScanKind.ICON, point)

    def _highlight_crop(self, point, size, label):
        px, py = int(point[0]), int(point[1])
        rect = clamp_to_screen(px - size // 2, py - size // 2, size, size, self.capture.virtual_screen())
        frame = self.capture.capture(rect)
        if frame is None:
            logger.debug(f"[IconScan] Capture failed for {label} at {rect}")
            return None
        bounds = self.segmenter.find_highlight_bounds(frame, (px - rect.x, py - rect.y))
        if bounds is None:
            logger.debug(f"[IconScan] No highlight box in {label} capture")
            return None
        crop = frame.crop(bounds)
        self.debug.save(f"{label}_scan", frame)
        self.debug.save(f"{label}_icon", crop)
        return crop

    def _icon_scan(self, point):
        logger.debug(f"[IconScan] Scanning at {point}")
        crop = self._highlight_crop(point, self.geometry["icon_scan_size"], "icon")
        if crop is not None:
            match = self.icon_matcher.match_selected(crop.pixels)
            if match is not None:
                return self._icon_result(match, ScanKind.ICON, point)

        rotated_crop = None
        if self.scan_settings["scan_rotated_icons"]:
            size = min(self.geometry["selection_scan_size"], self.geometry["selection_scan_cap"])
            rotated_crop = self._highlight_crop(point, size, "selected")
            if rotated_crop is not None:
                match = self.icon_matcher.match_rotations(rotated_crop.pixels)
                if match is not None:
                    return self._icon_result(match, ScanKind.ICON, point)

        if crop is None and rotated_crop is None:
            return self._failed("No icon found", ScanKind.ICON, point)
        return self._failed("Low confidence icon match", ScanKind.ICON, point)

    # ========== TOOLTIP SCAN ==========

    def tooltip_scan(self, point):
        """
        Identify the item whose tooltip is open next to a screen point.

        Chain: capture ladder -> tooltip bounds -> title/body OCR -> text
        match -> icon search inside the tooltip -> icon_scan(point).

        Returns:
            ScanResult
        """
        # Icon lock first: the last fallback re-enters it on this thread
        with self.locks.icon, self.locks.tooltip:
            try:
                return self._tooltip_scan(point)
            except Exception as e:
                logger.error(f"[TooltipScan] Unexpected failure: {e}", exc_info=True)
                return self._failed("Unexpected error", ScanKind.TOOLTIP, point)

    def find_tooltip(self, point):
        """
        Walk the capture ladder until a capture contains a tooltip.

        Returns:
            tuple: (FrameBuffer, Rect, label) or None
        """
        screen = self.capture.virtual_screen()
        width = self.geometry["tooltip_scan_width"]
        height = self.geometry["tooltip_scan_height"]
        for label, rect in capture_attempts(point, width, height, screen):
            frame = self.capture.capture(rect)
            if frame is None:
                continue
            found = self.segmenter.find_tooltip_bounds(frame)
            if found is None:
                continue
            bounds, kind = found
            logger.debug(f"[TooltipScan] Found {kind} tooltip at {bounds} (capture: {label})")
            return frame, bounds, label
        return None

    def read_tooltip(self, tooltip, label=""):
        """
        OCR a tooltip crop and match it against the item catalog.

        Returns:
            tuple: (MatchCandidate or None, title candidate text). None for the
                whole tuple when the body text region is unusable.
        """
        title_rect, text_rect = tooltip_regions(tooltip.width, tooltip.height)
        if text_rect is None:
            logger.debug(f"[TooltipScan] Text region too small in {tooltip.width}x{tooltip.height}")
            return None

        title_text = ""
        title_candidate = ""
        if title_rect is not None:
            title_crop = tooltip.crop(title_rect)
            title_processed = upscale(preprocess_for_ocr(title_crop), 2)
            self.debug.save(f"tooltip_{label}_title", title_crop)
            self.debug.save(f"tooltip_{label}_title_processed", title_processed)
            title_text = self.ocr.read_text(title_processed, psm=PSM_SINGLE_BLOCK, whitelist=TITLE_WHITELIST)
            logger.debug(f"[TooltipScan] OCR title = '{title_text}'")
            title_candidate = extract_title_from_title_region(title_text)

        text_processed = preprocess_for_ocr(tooltip.crop(text_rect))
        self.debug.save(f"tooltip_{label}_processed", text_processed)
        body_text = self.ocr.read_text(text_processed, psm=PSM_AUTO, whitelist=BODY_WHITELIST)
        logger.debug(f"[TooltipScan] OCR body = '{body_text}'")
        if not title_candidate:
            title_candidate = extract_likely_title(body_text)
        logger.debug(f"[TooltipScan] Title candidate = '{title_candidate}'")

        matcher = self.catalog.item_matcher()
        candidate = matcher.match(title_candidate) if title_candidate else None
        from_lines = matcher.match_lines(title_text, body_text)
        if from_lines is not None and (candidate is None or from_lines.confidence > candidate.confidence):
            candidate = from_lines
        return candidate, title_candidate

    def _tooltip_scan(self, point):
        logger.debug(f"[TooltipScan] Scanning at {point}")
        delay = self.scan_settings["tooltip_settle_delay"]
        if delay > 0:
            self._sleep(delay)

        found = self.find_tooltip(point)
        if found is None:
            logger.debug("[TooltipScan] No tooltip found, falling back to icon scan")
            return self.icon_scan(point)

        frame, bounds, label = found
        tooltip = frame.crop(bounds)
        self.debug.save(f"tooltip_{label}_full", frame)
        self.debug.save(f"tooltip_{label}_crop", tooltip)

        read = self.read_tooltip(tooltip, label)
        if read is None:
            return self.icon_scan(point)
        candidate, title_candidate = read

        anchor = (int(point[0]) + TOOLTIP_ANCHOR_OFFSET, int(point[1]) + TOOLTIP_ANCHOR_OFFSET)
        duration = self.scan_settings["result_duration_ms"]
        if candidate is not None:
            raw_text = candidate.matched_text or title_candidate
            return self._publish(
                ScanResult.from_candidate(candidate, ScanKind.TOOLTIP, anchor, duration, "", raw_text)
            )

        icon = self.icon_matcher.search_tooltip(frame.pixels, bounds, self.scale)
        if icon is not None:
            return self._icon_result(icon, ScanKind.TOOLTIP, anchor)

        logger.debug("[TooltipScan] No text or icon match, falling back to icon scan")
        return self.icon_scan(point)

    # ========== NAME SCAN ==========

    def name_scan_at_screen(self):
        """
        Find a tooltip anywhere on the primary screen and read its name.

        Returns:
            ScanResult
        """
        with self.locks.name:
            try:
                return self._name_scan()
            except Exception as e:
                logger.error(f"[NameScan] Unexpected failure: {e}", exc_info=True)
                return self._failed("Unexpected error", ScanKind.NAME, (0, 0))

    def _name_scan(self):
        frame = self.capture.capture_full_screen()
        if frame is None:
            return self._failed("Capture failed", ScanKind.NAME, (0, 0))
        origin_x, origin_y = frame.origin
        found = self.segmenter.find_tooltip_bounds(frame)
        if found is None:
            logger.debug("[NameScan] No tooltip on screen")
            return self._failed("No item name found", ScanKind.NAME, (origin_x, origin_y))

        bounds, _ = found
        anchor = (origin_x + bounds.x, origin_y + bounds.bottom)
        read = self.read_tooltip(frame.crop(bounds), "name")
        if read is None or read[0] is None:
            return self._failed("No item name found", ScanKind.NAME, anchor)
        candidate, title_candidate = read
        duration = self.scan_settings["result_duration_ms"]
        return self._publish(
            ScanResult.from_candidate(
                candidate, ScanKind.NAME, anchor, duration, "", candidate.matched_text or title_candidate
            )
        )

    # ========== DETECTION TICK ==========

    def _begin_tick(self):
        with self._tick_guard:
            if self._tick_in_progress:
                return False
            self._tick_in_progress = True
            return True

    def _end_tick(self):
        with self._tick_guard:
            self._tick_in_progress = False

    @property
    def tick_in_progress(self):
        with self._tick_guard:
            return self._tick_in_progress

    def tick(self):
        """
        One detection pass on the calling thread.

        Returns:
            bool: False if skipped because another tick is still running
        """
        if not self._begin_tick():
            logger.debug("[Tick] Previous tick still running, skipping")
            return False
        self._tick_body()
        return True

    def _tick_body(self):
        try:
            self._run_tick()
        except Exception as e:
            logger.error(f"[Tick] Detection pass failed: {e}", exc_info=True)
        finally:
            self._end_tick()

    def _run_tick(self):
        frame = self.capture.capture_full_screen()
        if frame is None:
            logger.debug("[Tick] No frame captured")
            return
        outcome = self.classifier.update(frame)
        transition = outcome.transition
        if transition is not None:
            if transition.left_raid:
                self.extractors.on_left_raid()
            self._emit("on_state_changed", transition)

        committed = outcome.committed
        if outcome.raw is committed and committed.is_actionable:
            self.extractors.run(committed, outcome.reader)

    # ========== WORKER DISPATCH ==========

    def request_tick(self):
        """
        Run a tick on the worker pool.

        Returns:
            Future, or None if skipped because a tick is in progress
        """
        if not self._begin_tick():
            logger.debug("[Tick] Previous tick still running, skipping")
            return None
        try:
            return self._executor.submit(self._tick_body)
        except RuntimeError as e:
            self._end_tick()
            logger.warning(f"[Tick] Could not schedule tick: {e}")
            return None

    def request_icon_scan(self, point):
        return self._executor.submit(self.icon_scan, point)

    def request_tooltip_scan(self, point):
        return self._executor.submit(self.tooltip_scan, point)

    def request_name_scan(self):
        return self._executor.submit(self.name_scan_at_screen)

    def shutdown(self, wait=True):
        """Stop the worker pool (only if this orchestrator created it)"""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
