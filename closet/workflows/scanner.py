"""Live camera scanning with auto-capture.

Frames are probed on a fixed cadence. Every probe carries a sequence number;
a response is applied only if it is newer than the last applied one. The
first applied response that is ready with enough confidence locks the
scanner and hands one fresh frame to the capture callback.
"""
import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Set

from closet.core.config import settings
from closet.core.errors import ClosetError
from closet.core.images import compress_jpeg, to_data_url
from closet.workflows.functions import FunctionsClient
from closet.workflows.state import StateCell

logger = logging.getLogger("uvicorn.error")

CAPTURE_FILENAME = "captured-clothing.jpg"
CAPTURE_QUALITY = 95

FEEDBACK_STARTING = "Starting camera..."
FEEDBACK_POINT = "Point camera at clothing item"
FEEDBACK_CAPTURED = "Item captured!"
FEEDBACK_SCANNING = "Scanning..."
FEEDBACK_CAPTURE_FAILED = "Capture failed. Scanning again..."
CAMERA_ERROR = "Could not access camera. Please ensure camera permissions are granted."


class FrameSource(Protocol):
    async def open(self) -> None:
        ...

    async def grab(self) -> bytes:
        ...

    async def close(self) -> None:
        ...


@dataclass(frozen=True)
class CapturedFile:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class ScanState:
    active: bool = False
    feedback: str = FEEDBACK_STARTING
    confidence: float = 0
    clothing_type: Optional[str] = None
    is_capturing: bool = False
    applied_seq: int = 0
    error: Optional[str] = None


def should_auto_capture(response: Mapping[str, Any], is_capturing: bool, threshold: float = 80) -> bool:
    if is_capturing:
        return False
    try:
        confidence = float(response.get("confidence") or 0)
    except (TypeError, ValueError):
        return False
    return response.get("ready") is True and confidence >= threshold


class CameraScanner:
    def __init__(
        self,
        camera: FrameSource,
        functions: FunctionsClient,
        on_capture: Callable[[CapturedFile], Awaitable[Any]],
        *,
        interval_s: Optional[float] = None,
        first_probe_s: Optional[float] = None,
        capture_delay_s: Optional[float] = None,
        threshold: Optional[float] = None,
        quality: Optional[int] = None,
    ):
        self.camera = camera
        self.functions = functions
        self.on_capture = on_capture
        self.interval_s = settings.SCAN_INTERVAL_MS / 1000.0 if interval_s is None else interval_s
        self.first_probe_s = settings.SCAN_FIRST_PROBE_MS / 1000.0 if first_probe_s is None else first_probe_s
        self.capture_delay_s = (
            settings.SCAN_CAPTURE_DELAY_MS / 1000.0 if capture_delay_s is None else capture_delay_s
        )
        self.threshold = settings.SCAN_READY_CONFIDENCE if threshold is None else threshold
        self.quality = settings.FRAME_JPEG_QUALITY if quality is None else quality
        self.cell: StateCell[ScanState] = StateCell(ScanState())
        self._seq = 0
        self._loop_task: Optional[asyncio.Task] = None
        self._probes: Set[asyncio.Task] = set()
        self.capture_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ScanState:
        return self.cell.state

    async def start(self) -> ScanState:
        try:
            await self.camera.open()
        except Exception as exc:
            logger.warning("scanner camera open failed err=%s", exc)
            return await self.cell.update(lambda s: replace(s, active=False, error=CAMERA_ERROR))
        await self.cell.update(lambda s: replace(s, active=True, feedback=FEEDBACK_POINT, error=None))
        self._loop_task = asyncio.create_task(self._run(self.first_probe_s))
        return self.state

    async def stop(self) -> None:
        await self.cell.update(lambda s: replace(s, active=False))
        current = asyncio.current_task()
        tasks = [t for t in (self._loop_task, *self._probes) if t is not None and t is not current]
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None
        await self.camera.close()

    def _scanning(self) -> bool:
        return self.state.active and not self.state.is_capturing

    async def _run(self, first_delay: float) -> None:
        # one early probe, then a fixed grid of ticks counted from the start
        loop = asyncio.get_running_loop()
        started = loop.time()
        await asyncio.sleep(first_delay)
        if not self._scanning():
            return
        self._spawn_probe()
        tick = 1
        while True:
            due = started + tick * self.interval_s
            tick += 1
            await asyncio.sleep(max(0.0, due - loop.time()))
            if not self._scanning():
                return
            self._spawn_probe()

    def _spawn_probe(self) -> None:
        # probes overlap; completion order is not guaranteed
        task = asyncio.create_task(self.probe())
        self._probes.add(task)
        task.add_done_callback(self._probes.discard)

    def next_seq(self) -> int:
        self._seq += 1
        return self._seq

    async def probe(self) -> bool:
        """Send one frame for detection; returns True if its response was applied."""
        seq = self.next_seq()
        try:
            frame = compress_jpeg(await self.camera.grab(), quality=self.quality)
            resp = await self.functions.detect_clothing(to_data_url(frame, "image/jpeg"))
        except ClosetError as exc:
            logger.info("scanner probe seq=%s failed err=%s", seq, exc)
            return False
        except Exception as exc:
            logger.warning("scanner probe seq=%s frame error err=%s", seq, exc)
            return False
        return await self.apply_detection(seq, resp)

    async def apply_detection(self, seq: int, resp: Mapping[str, Any]) -> bool:
        fired = False

        def transition(s: ScanState) -> ScanState:
            nonlocal fired
            if seq <= s.applied_seq or not s.active:
                return s
            capture = should_auto_capture(resp, s.is_capturing, self.threshold)
            fired = capture
            return replace(
                s,
                applied_seq=seq,
                feedback=FEEDBACK_CAPTURED if capture else str(resp.get("feedback") or FEEDBACK_SCANNING),
                confidence=float(resp.get("confidence") or 0),
                clothing_type=resp.get("clothing_type") or None,
                is_capturing=s.is_capturing or capture,
            )

        before = self.state.applied_seq
        after = await self.cell.update(transition)
        if fired:
            self.capture_task = asyncio.create_task(self._capture())
        return after.applied_seq != before

    async def _capture(self) -> None:
        try:
            raw = await self.camera.grab()
            data = compress_jpeg(raw, quality=CAPTURE_QUALITY)
        except Exception as exc:
            logger.warning("scanner capture failed err=%s", exc)
            st = await self.cell.update(
                lambda s: replace(s, is_capturing=False, feedback=FEEDBACK_CAPTURE_FAILED)
            )
            if st.active and (self._loop_task is None or self._loop_task.done()):
                self._loop_task = asyncio.create_task(self._run(0))
            return
        captured = CapturedFile(CAPTURE_FILENAME, "image/jpeg", data)
        await asyncio.sleep(self.capture_delay_s)
        await self.stop()
        logger.info("scanner auto-capture bytes=%s", len(data))
        await self.on_capture(captured)
