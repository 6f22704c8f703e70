"""Repaint scheduling for a chart's base and overlay surfaces."""

from __future__ import annotations

import io
import logging
import threading
from typing import Callable

from PIL import Image

from candlechart.schemas.chart_state import ChartState
from candlechart.services.chart_store import Change, ChartStore, Resize

from .overlay import CrosshairRenderer
from .renderer import ChartRenderer
from .surface import Surface, backing_size, compose

logger = logging.getLogger(__name__)


class RenderLoop:
    """Repaints only the layers a committed change invalidated.

    Store changes set per-layer dirty flags and wake a frame thread, which
    paints at most once per frame interval. Without changes the thread sleeps.
    """

    def __init__(
        self,
        store: ChartStore,
        *,
        device_pixel_ratio: float = 1.0,
        frame_rate: float = 30.0,
        renderer: ChartRenderer | None = None,
        overlay_renderer: CrosshairRenderer | None = None,
    ) -> None:
        if frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")
        self.store = store
        self.device_pixel_ratio = device_pixel_ratio
        self.frame_interval = 1.0 / frame_rate
        self.renderer = renderer or ChartRenderer()
        self.overlay_renderer = overlay_renderer or CrosshairRenderer()

        self.base: Surface | None = None
        self.overlay: Surface | None = None
        self.base_frames = 0
        self.overlay_frames = 0

        self._flags_lock = threading.Lock()
        self._paint_lock = threading.Lock()
        self._base_dirty = False
        self._overlay_dirty = False
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def mounted(self) -> bool:
        return self.base is not None and self.overlay is not None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------
    # Lifecycle
    # -------------------------

    def mount(self) -> None:
        if self.mounted:
            return
        dims = self.store.snapshot().dimensions
        self.base = Surface(dims.width, dims.height, self.device_pixel_ratio)
        self.overlay = Surface(dims.width, dims.height, self.device_pixel_ratio, transparent=True)
        self._unsubscribe = self.store.subscribe(self._on_change)
        self._mark(base=True, overlay=True)

    def start(self) -> None:
        if self.running:
            return
        self.mount()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="chart-render-loop", daemon=True)
        self._thread.start()
        logger.info("render loop started at %.0f fps", 1.0 / self.frame_interval)

    def stop(self) -> None:
        """Stop the frame thread and detach from the store."""
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.base = None
        self.overlay = None
        logger.info("render loop stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            self._wake.wait()
            self._wake.clear()
            if self._stop.is_set():
                break
            try:
                self.tick()
            except Exception as exc:  # noqa: BLE001
                logger.exception("render frame failed: %s", exc)
            self._stop.wait(self.frame_interval)

    # -------------------------
    # Dirty tracking
    # -------------------------

    def _on_change(self, change: Change) -> None:
        if change.base or change.overlay:
            self._mark(base=change.base, overlay=change.overlay)

    def _mark(self, *, base: bool, overlay: bool) -> None:
        with self._flags_lock:
            self._base_dirty = self._base_dirty or base
            self._overlay_dirty = self._overlay_dirty or overlay
        self._wake.set()

    def tick(self) -> bool:
        """Paint whichever layers are dirty. Returns True if anything was painted."""
        with self._flags_lock:
            base, overlay = self._base_dirty, self._overlay_dirty
            self._base_dirty = self._overlay_dirty = False
        if not (base or overlay):
            return False
        self._paint(self.store.snapshot(), base=base, overlay=overlay)
        return True

    def _paint(self, state: ChartState, *, base: bool, overlay: bool) -> None:
        with self._paint_lock:
            if self.base is None or self.overlay is None:
                return
            if base:
                self.renderer.render(state, self.base)
                self.base_frames += 1
            if overlay:
                self.overlay_renderer.render(state, self.overlay)
                self.overlay_frames += 1

    def render_now(self) -> None:
        """Synchronously repaint both layers from the latest snapshot."""
        with self._flags_lock:
            self._base_dirty = self._overlay_dirty = False
        self._paint(self.store.snapshot(), base=True, overlay=True)

    # -------------------------
    # Resize
    # -------------------------

    def resize(self, width: float, height: float, device_pixel_ratio: float | None = None) -> bool:
        """Resize both surfaces and repaint immediately.

        Returns False without touching the store when the surfaces have not
        been mounted yet.
        """
        if not self.mounted:
            logger.debug("resize to %sx%s ignored: surfaces not mounted", width, height)
            return False
        if device_pixel_ratio is not None:
            self.device_pixel_ratio = device_pixel_ratio

        with self._paint_lock:
            if self.base is None or self.overlay is None:
                return False
            self.base.resize(width, height, self.device_pixel_ratio)
            self.overlay.resize(width, height, self.device_pixel_ratio)
        logger.debug(
            "resized surfaces to %s (dpr=%s)",
            backing_size(width, height, self.device_pixel_ratio),
            self.device_pixel_ratio,
        )
        self.store.dispatch(Resize(width=width, height=height))
        self.render_now()
        return True

    # -------------------------
    # Output
    # -------------------------

    def frame(self) -> Image.Image:
        if not self.mounted:
            self.mount()
        if not (self.base_frames and self.overlay_frames):
            self.render_now()
        else:
            self.tick()
        with self._paint_lock:
            if self.base is None or self.overlay is None:
                raise RuntimeError("render loop was stopped while composing a frame")
            return compose(self.base, self.overlay)

    def frame_png(self) -> bytes:
        buf = io.BytesIO()
        self.frame().save(buf, format="PNG")
        return buf.getvalue()
