# app/routers/products.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    UploadFile,
    status,
)
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from app.core.storage_utils import BlobStore, get_blob_store
from app.database import get_session
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    ColorSlotsManifest,
    ImageManifest,
    ImageSaveResponse,
    MatrixPreview,
    MatrixPreviewRequest,
    ProductCreate,
    ProductImageRead,
    ProductRead,
    ProductUpdate,
    ReconcileResult,
    SlotManifest,
    VariantRead,
    VariantsSubmission,
)
from app.services.image_slots import ColorSlots, ExistingImage, PendingUpload
from app.services.product_service import ProductService

# Admin surface: authentication is applied by the surrounding application.
router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo)


@router.get("", response_model=list[ProductRead])
def list_products(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    only_active: bool = True,
):
    """
    List products.

    - `only_active=True` hides inactive products by default.
    """
    return service.list_products(
        session, skip=skip, limit=limit, only_active=only_active
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_product(session, product_id)


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
):
    return service.create_product(session, payload)


@router.patch("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    return service.update_product(session, product_id, payload)


@router.post("/{product_id}/deactivate", response_model=ProductRead)
def deactivate_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Hide a product from the storefront (products are never hard-deleted).
    """
    return service.deactivate_product(session, product_id)


# -------- Variants --------


@router.get("/{product_id}/variants", response_model=list[VariantRead])
def list_variants(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Variants with their color/size labels and stock status.
    """
    return service.list_variants(session, product_id)


@router.post("/{product_id}/variants/preview", response_model=MatrixPreview)
def preview_variants(
    product_id: uuid.UUID,
    payload: MatrixPreviewRequest,
    session: Session = Depends(get_session),
):
    """
    Show what a save would generate ("2 colors × 3 sizes = 6 variants"),
    including SKU initials collisions. Writes nothing.
    """
    return service.preview_variants(session, product_id, payload.colors, payload.sizes)


@router.put("/{product_id}/variants", response_model=ReconcileResult)
def save_variants(
    product_id: uuid.UUID,
    payload: VariantsSubmission,
    session: Session = Depends(get_session),
):
    """
    Save the full color/size selection of a product.

    - Existing color × size variants keep their stock.
    - Removed colors/sizes delete their variants (and stock history).
    - New combinations are created with seed stock.
    """
    return service.save_variants(session, product_id, payload.colors, payload.sizes)


# -------- Images --------


@router.get("/{product_id}/images", response_model=list[ProductImageRead])
def list_product_images(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    service.get_product(session, product_id)
    return repo.list_images_for_product(session, product_id)


@router.get("/{product_id}/images/slots", response_model=ImageManifest)
def get_image_slots(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """
    Current per-color slots, in the same shape `PUT /images` accepts.

    Legacy images without a color are listed under the first color, so
    sending this manifest back migrates them.
    """
    colors_slots = service.load_image_slots(session, product_id, blob_store)
    return ImageManifest(
        colors=[
            ColorSlotsManifest(
                color_id=entry.color_id,
                slots=[
                    SlotManifest(image_url=slot.url) if isinstance(slot, ExistingImage) else None
                    for slot in entry.slots
                ],
            )
            for entry in colors_slots
        ]
    )


@router.put(
    "/{product_id}/images",
    response_model=ImageSaveResponse,
    summary="Replace all per-color image slots of a product",
)
def save_product_images(
    product_id: uuid.UUID,
    manifest: str = Form(...),
    files: list[UploadFile] = File(default=[]),
    session: Session = Depends(get_session),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """
    Multipart save of image slots.

    - `manifest`: JSON ImageManifest; each slot keeps an `image_url` or
      points at `files[upload_index]`, `null` for an empty slot.
    - Accepts JPEG, PNG, WEBP.
    - Slots whose upload fails are skipped and listed in `warnings`.
    """
    try:
        parsed = ImageManifest.model_validate_json(manifest)
    except PydanticValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        )

    colors_slots: list[ColorSlots] = []
    for entry in parsed.colors:
        slots = []
        for slot in entry.slots:
            if slot is None:
                slots.append(None)
            elif slot.image_url is not None:
                slots.append(ExistingImage(slot.image_url))
            else:
                if slot.upload_index >= len(files):
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"upload_index {slot.upload_index} has no matching file",
                    )
                upload = files[slot.upload_index]
                if not upload.content_type:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="Missing content-type for one of the uploaded files",
                    )
                slots.append(PendingUpload(upload.content_type, upload.file.read()))
        colors_slots.append(ColorSlots(color_id=entry.color_id, slots=slots))

    outcome = service.save_images(session, product_id, colors_slots, blob_store)
    warnings = [outcome.partial_failure.to_detail()] if outcome.partial_failure else []
    return ImageSaveResponse(
        images=[ProductImageRead.model_validate(img, from_attributes=True) for img in outcome.images],
        warnings=warnings,
    )
