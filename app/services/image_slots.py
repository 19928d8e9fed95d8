# app/services/image_slots.py
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import FailedSlot, PartialUploadFailure, ValidationError
from app.core.storage_utils import BlobStore, generate_filename
from app.models.product import ProductImage
from app.repositories.product_repo import ProductRepository

logger = logging.getLogger(__name__)

settings = get_settings()

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class ExistingImage:
    url: str


@dataclass(frozen=True)
class PendingUpload:
    content_type: str
    data: bytes = field(repr=False)


Slot = ExistingImage | PendingUpload | None


@dataclass
class ColorSlots:
    color_id: uuid.UUID
    slots: list[Slot] = field(default_factory=list)


@dataclass
class ImageSaveOutcome:
    images: list[ProductImage]
    partial_failure: PartialUploadFailure | None = None


class ImageSlotAssigner:
    """
    Per-color image slots (up to MAX_IMAGE_SLOTS each) -> product_images rows.

    Saving replaces the product's whole image set: pending uploads are
    pushed to the blob store first (concurrently, bounded by a timeout),
    then every image row of the product is deleted and re-inserted from the
    slots. Slot 0 of the product's first color is the primary image.
    """

    def __init__(
        self,
        repo: ProductRepository,
        blob_store: BlobStore,
        max_slots: int | None = None,
        max_workers: int | None = None,
        upload_timeout: float | None = None,
    ):
        self.repo = repo
        self.blob_store = blob_store
        self.max_slots = max_slots or settings.MAX_IMAGE_SLOTS
        self.max_workers = max_workers or settings.UPLOAD_MAX_WORKERS
        self.upload_timeout = (
            settings.UPLOAD_TIMEOUT_SECONDS if upload_timeout is None else upload_timeout
        )

    # ----- Editor state -----

    def load_slots(self, session: Session, product_id: uuid.UUID) -> list[ColorSlots]:
        """
        Current slots per color, in color order.

        Legacy images (no color) are attributed to the first color when it
        has no images of its own; the next save persists them under it.
        """
        colors = self.repo.list_colors(session, product_id)
        images = self.repo.list_images_for_product(session, product_id)

        by_color: dict[uuid.UUID, list[ProductImage]] = {}
        legacy: list[ProductImage] = []
        for image in images:
            if image.color_id is None:
                legacy.append(image)
            else:
                by_color.setdefault(image.color_id, []).append(image)

        result: list[ColorSlots] = []
        for position, color in enumerate(colors):
            slots: list[Slot] = [None] * self.max_slots
            own = by_color.get(color.id, [])
            if position == 0 and not own and legacy:
                for idx, image in enumerate(legacy[: self.max_slots]):
                    slots[idx] = ExistingImage(image.image_url)
            for image in own:
                if image.sort_order < self.max_slots:
                    slots[image.sort_order] = ExistingImage(image.image_url)
            result.append(ColorSlots(color_id=color.id, slots=slots))
        return result

    # ----- Save -----

    def save(
        self,
        session: Session,
        product_id: uuid.UUID,
        colors_slots: list[ColorSlots],
    ) -> ImageSaveOutcome:
        colors = self.repo.list_colors(session, product_id)
        order = {c.id: c.sort_order for c in colors}
        primary_color_id = colors[0].id if colors else None

        self._validate(colors_slots, order)

        uploaded, failures = self._upload_pending(product_id, colors_slots)

        new_images: list[ProductImage] = []
        for entry in sorted(colors_slots, key=lambda e: order[e.color_id]):
            urls: list[str] = []
            for idx, slot in enumerate(entry.slots):
                if isinstance(slot, ExistingImage):
                    urls.append(slot.url)
                elif isinstance(slot, PendingUpload):
                    url = uploaded.get((entry.color_id, idx))
                    if url is not None:
                        urls.append(url)
            # compacted: the first filled slot becomes slot 0
            for sort_order, url in enumerate(urls):
                new_images.append(
                    ProductImage(
                        product_id=product_id,
                        color_id=entry.color_id,
                        image_url=url,
                        sort_order=sort_order,
                        is_primary=entry.color_id == primary_color_id and sort_order == 0,
                    )
                )

        old_urls = {img.image_url for img in self.repo.list_images_for_product(session, product_id)}
        images = self.repo.replace_images(session, product_id, new_images)
        self._cleanup_blobs(old_urls - {img.image_url for img in images})

        partial = PartialUploadFailure(failures) if failures else None
        if partial:
            logger.warning("Product %s saved with %s", product_id, partial.message)
        return ImageSaveOutcome(images=images, partial_failure=partial)

    def _validate(
        self,
        colors_slots: list[ColorSlots],
        order: dict[uuid.UUID, int],
    ) -> None:
        seen: set[uuid.UUID] = set()
        for entry in colors_slots:
            if entry.color_id not in order:
                raise ValidationError(
                    "Color does not belong to this product", color_id=str(entry.color_id)
                )
            if entry.color_id in seen:
                raise ValidationError(
                    "Color listed twice in image slots", color_id=str(entry.color_id)
                )
            seen.add(entry.color_id)

            if len(entry.slots) > self.max_slots:
                raise ValidationError(
                    f"At most {self.max_slots} images per color",
                    color_id=str(entry.color_id),
                )
            for slot in entry.slots:
                if isinstance(slot, PendingUpload):
                    self._validate_and_get_ext(slot)

    @staticmethod
    def _validate_and_get_ext(upload: PendingUpload) -> str:
        if upload.content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationError(
                "Unsupported image type. Allowed: JPEG, PNG, WEBP.",
                content_type=upload.content_type,
            )
        if len(upload.data) > settings.MAX_IMAGE_BYTES:
            raise ValidationError("Image too large (max 5MB).")
        if not upload.data:
            raise ValidationError("Image file is empty.")
        return ALLOWED_IMAGE_CONTENT_TYPES[upload.content_type]

    def _upload_pending(
        self,
        product_id: uuid.UUID,
        colors_slots: list[ColorSlots],
    ) -> tuple[dict[tuple[uuid.UUID, int], str], list[FailedSlot]]:
        """
        Fan out every pending upload, join them all, and sort results into
        URLs per (color_id, slot) and failed slots.
        """
        jobs: dict[tuple[uuid.UUID, int], tuple[str, bytes]] = {}
        for entry in colors_slots:
            for idx, slot in enumerate(entry.slots):
                if isinstance(slot, PendingUpload):
                    ext = self._validate_and_get_ext(slot)
                    path = f"products/{product_id}/colors/{entry.color_id}/{generate_filename(ext)}"
                    jobs[(entry.color_id, idx)] = (path, slot.data)

        uploaded: dict[tuple[uuid.UUID, int], str] = {}
        failures: list[FailedSlot] = []
        if not jobs:
            return uploaded, failures

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures: dict[Future, tuple[uuid.UUID, int]] = {
                executor.submit(self.blob_store.upload, path, data): slot_key
                for slot_key, (path, data) in jobs.items()
            }
            done, not_done = wait(futures, timeout=self.upload_timeout)
        finally:
            # Do not block on uploads that outlived the timeout
            executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            color_id, slot = futures[future]
            try:
                uploaded[(color_id, slot)] = future.result()
            except Exception as exc:
                logger.warning(
                    "Image upload failed for product %s color %s slot %s: %s",
                    product_id,
                    color_id,
                    slot,
                    exc,
                )
                failures.append(FailedSlot(color_id=color_id, slot=slot, reason=str(exc)))

        for future in not_done:
            color_id, slot = futures[future]
            logger.warning(
                "Image upload timed out for product %s color %s slot %s",
                product_id,
                color_id,
                slot,
            )
            failures.append(FailedSlot(color_id=color_id, slot=slot, reason="upload timed out"))
            # no record will point at it; drop the blob once it lands
            future.add_done_callback(self._discard_late_upload)

        failures.sort(key=lambda f: (str(f.color_id), f.slot))
        return uploaded, failures

    def _discard_late_upload(self, future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        url = future.result()
        try:
            self.blob_store.delete_url(url)
        except Exception:
            logger.warning("Could not delete late upload %s", url, exc_info=True)
        else:
            logger.info("Deleted upload that finished after the timeout: %s", url)

    def _cleanup_blobs(self, urls: set[str]) -> None:
        """Best-effort removal of blobs no image row points to anymore."""
        for url in urls:
            try:
                self.blob_store.delete_url(url)
            except Exception:
                logger.warning("Could not delete unreferenced image %s", url, exc_info=True)
