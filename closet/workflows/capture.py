"""Item capture: upload or scan, AI processing, editable review, save."""
import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional

from closet.core.errors import ClosetError, InvalidFile, SagaFailed
from closet.core.images import decode_data_url, file_ext, is_image, to_data_url
from closet.core.saga import Saga
from closet.core.vocab import DEFAULT_TAGS, ENUM_FIELDS, coerce_ai_tags, subtype_options, validate_tags
from closet.services.gateway import ClosetGateway
from closet.workflows.functions import FunctionsClient
from closet.workflows.scanner import CAMERA_ERROR, CameraScanner, CapturedFile, FrameSource
from closet.workflows.state import Notice, StateCell

logger = logging.getLogger("uvicorn.error")

STATUS_ANALYZING = "Analyzing clothing..."
STATUS_EXTRACTING = "Extracting clothing item..."
STATUS_FINISHING = "Finishing up..."
CLOSET_ROUTE = "/app/closet"


@dataclass(frozen=True)
class TagDraft:
    category: str = DEFAULT_TAGS["category"]
    subtype: str = ""
    primary_color: str = ""
    season: str = "unknown"
    pattern: str = "unknown"
    dress_level: str = "unknown"
    layer_role: str = "unknown"
    favorite: bool = False
    notes: str = ""

    @property
    def subtype_options(self) -> List[str]:
        return subtype_options(self.category)

    def with_category(self, category: str) -> "TagDraft":
        validate_tags({"category": category})
        return replace(self, category=category, subtype="")

    def with_field(self, name: str, value: Any) -> "TagDraft":
        if name == "category":
            return self.with_category(value)
        if name == "subtype":
            if value and value not in self.subtype_options:
                raise ValueError("invalid_subtype")
        elif name in ENUM_FIELDS:
            validate_tags({name: value})
        elif name == "favorite":
            value = bool(value)
        elif name != "notes":
            raise ValueError(f"unknown_field_{name}")
        return replace(self, **{name: value})

    @classmethod
    def from_ai(cls, raw: Dict[str, Any]) -> "TagDraft":
        return cls(**coerce_ai_tags(raw))

    def row_fields(self) -> Dict[str, Any]:
        out = asdict(self)
        out["notes"] = out["notes"] or None
        return out


@dataclass(frozen=True)
class CaptureState:
    phase: str = "upload"  # upload | scanning | camera_error | processing | review | saving | saved
    file: Optional[CapturedFile] = None
    original_url: Optional[str] = None
    cutout_url: Optional[str] = None
    draft: TagDraft = field(default_factory=TagDraft)
    status_text: str = ""
    notice: Optional[Notice] = None
    error: Optional[str] = None
    item_id: Optional[str] = None
    redirect: Optional[str] = None

    @property
    def preview_url(self) -> Optional[str]:
        return self.cutout_url or self.original_url


class CapturePipeline:
    def __init__(self, gateway: ClosetGateway, functions: FunctionsClient, user_id: str):
        self.gateway = gateway
        self.functions = functions
        self.user_id = user_id
        self.cell: StateCell[CaptureState] = StateCell(CaptureState())
        self.scanner: Optional[CameraScanner] = None

    @property
    def state(self) -> CaptureState:
        return self.cell.state

    # scanning

    async def start_scanning(self, camera: FrameSource, **scanner_opts) -> CaptureState:
        await self.cell.update(lambda s: replace(s, phase="scanning", notice=None, error=None))
        self.scanner = CameraScanner(camera, self.functions, self.accept_file, **scanner_opts)
        scan = await self.scanner.start()
        if scan.error:
            return await self.cell.update(lambda s: replace(s, phase="camera_error", error=CAMERA_ERROR))
        return self.state

    async def exit_camera(self) -> CaptureState:
        if self.scanner is not None and self.scanner.state.active:
            await self.scanner.stop()
        self.scanner = None
        return await self.cell.update(lambda s: replace(s, phase="upload", error=None))

    # processing

    async def accept_file(self, file: CapturedFile) -> CaptureState:
        if not is_image(file.content_type):
            err = InvalidFile(file.content_type)
            logger.info("capture rejected file type=%s", file.content_type)
            return await self.cell.update(
                lambda s: replace(s, notice=Notice("Invalid file", str(err), "destructive"))
            )
        original_url = to_data_url(file.data, file.content_type)
        await self.cell.update(
            lambda s: replace(
                CaptureState(),
                phase="processing",
                file=file,
                original_url=original_url,
                status_text=STATUS_ANALYZING,
            )
        )
        tagging = asyncio.create_task(self._tag(original_url))
        await self.cell.update(lambda s: replace(s, status_text=STATUS_EXTRACTING))
        extracting = asyncio.create_task(self._cutout(original_url))
        draft, cutout_url = await asyncio.gather(tagging, extracting)
        await self.cell.update(lambda s: replace(s, status_text=STATUS_FINISHING))
        return await self.cell.update(
            lambda s: replace(s, phase="review", draft=draft, cutout_url=cutout_url, status_text="")
        )

    async def _tag(self, image: str) -> TagDraft:
        try:
            return TagDraft.from_ai(await self.functions.analyze_clothing(image))
        except ClosetError as exc:
            logger.info("capture tagging failed, keeping defaults err=%s", exc)
            return TagDraft()

    async def _cutout(self, image: str) -> Optional[str]:
        try:
            return await self.functions.remove_background(image)
        except ClosetError as exc:
            logger.info("capture background removal failed err=%s", exc)
            await self.cell.update(
                lambda s: replace(s, notice=Notice("Background removal failed", "Using original image instead."))
            )
            return None

    # review

    async def set_category(self, category: str) -> CaptureState:
        return await self.set_field("category", category)

    async def set_field(self, name: str, value: Any) -> CaptureState:
        self._require("review")
        return await self.cell.update(lambda s: replace(s, draft=s.draft.with_field(name, value)))

    async def restart(self) -> CaptureState:
        return await self.cell.update(lambda s: CaptureState())

    async def save(self) -> CaptureState:
        self._require("review")
        st = await self.cell.update(lambda s: replace(s, phase="saving", notice=None))
        item_id = str(uuid.uuid4())
        file = st.file
        ext = file_ext(file.filename, file.content_type)
        bucket_o, bucket_c = self.gateway.originals_bucket, self.gateway.cutouts_bucket

        async def put_original(ctx):
            key, url = await self.gateway.upload_original(self.user_id, item_id, file.data, file.content_type, ext)
            return {"key": key, "url": url}

        async def drop_original(ctx):
            await self.gateway.store.remove(bucket_o, [ctx["original"]["key"]])

        async def put_cutout(ctx):
            if not st.cutout_url:
                return None
            data, _ = decode_data_url(st.cutout_url)
            key, url = await self.gateway.upload_cutout(self.user_id, item_id, data)
            return {"key": key, "url": url}

        async def drop_cutout(ctx):
            if ctx.get("cutout"):
                await self.gateway.store.remove(bucket_c, [ctx["cutout"]["key"]])

        async def insert_row(ctx):
            fields = st.draft.row_fields()
            fields["original_image_url"] = ctx["original"]["url"]
            fields["cutout_image_url"] = ctx["cutout"]["url"] if ctx.get("cutout") else None
            return await self.gateway.insert_item(self.user_id, fields, item_id=item_id)

        saga = (
            Saga("save_item")
            .step("original", put_original, drop_original)
            .step("cutout", put_cutout, drop_cutout)
            .step("row", insert_row)
        )
        try:
            await saga.run()
        except SagaFailed as exc:
            logger.warning("capture save failed user=%s step=%s err=%s", self.user_id, exc.step, exc.cause)
            return await self.cell.update(
                lambda s: replace(s, phase="review", notice=Notice("Failed to save", "Please try again.", "destructive"))
            )
        return await self.cell.update(
            lambda s: replace(
                s,
                phase="saved",
                item_id=item_id,
                redirect=CLOSET_ROUTE,
                notice=Notice("Item added!", "Your clothing item has been saved."),
            )
        )

    def _require(self, phase: str) -> None:
        if self.state.phase != phase:
            raise RuntimeError(f"capture is in {self.state.phase}, not {phase}")
