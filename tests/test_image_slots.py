import time
import uuid

import pytest

from app.core.errors import ValidationError
from app.models.product import ProductImage
from app.services.image_slots import (
    ColorSlots,
    ExistingImage,
    ImageSlotAssigner,
    PendingUpload,
)
from conftest import FakeBlobStore, new_colors, new_sizes


@pytest.fixture
def hoodie(session, product_repo, reconciler, make_product):
    product = make_product()
    reconciler.reconcile(session, product, new_colors("Jet Black", "Pearl White"), new_sizes("S"))
    black, white = product_repo.list_colors(session, product.id)
    return product, black, white


def png(tag: str) -> PendingUpload:
    return PendingUpload("image/png", f"png-{tag}".encode())


def assigner(repo, blob_store, **kwargs):
    kwargs.setdefault("upload_timeout", 5)
    return ImageSlotAssigner(repo, blob_store, max_slots=5, max_workers=2, **kwargs)


def test_primary_is_first_slot_of_first_color(session, product_repo, blob_store, hoodie):
    product, black, white = hoodie

    outcome = assigner(product_repo, blob_store).save(
        session,
        product.id,
        [
            ColorSlots(white.id, [png("w0")]),
            ColorSlots(black.id, [png("b0"), png("b1")]),
        ],
    )

    assert outcome.partial_failure is None
    primaries = [img for img in outcome.images if img.is_primary]
    assert len(primaries) == 1
    assert primaries[0].color_id == black.id
    assert primaries[0].sort_order == 0
    assert len(blob_store.uploads) == 3
    assert all(path.startswith(f"products/{product.id}/colors/") for path in blob_store.uploads)


def test_no_primary_when_first_color_has_no_images(session, product_repo, blob_store, hoodie):
    product, _black, white = hoodie

    outcome = assigner(product_repo, blob_store).save(
        session, product.id, [ColorSlots(white.id, [png("w0")])]
    )

    assert [img.is_primary for img in outcome.images] == [False]


def test_slots_are_compacted(session, product_repo, blob_store, hoodie):
    """Gaps are removed: the first filled slot becomes slot 0"""
    product, black, _white = hoodie

    outcome = assigner(product_repo, blob_store).save(
        session,
        product.id,
        [ColorSlots(black.id, [None, ExistingImage("https://cdn.test/keep.png"), None, png("b3")])],
    )

    images = sorted(outcome.images, key=lambda img: img.sort_order)
    assert [img.sort_order for img in images] == [0, 1]
    assert images[0].image_url == "https://cdn.test/keep.png"
    assert images[0].is_primary is True


def test_failed_upload_is_skipped_and_reported(session, product_repo, hoodie):
    product, black, _white = hoodie
    store = FakeBlobStore(fail_on={b"png-bad"})

    outcome = assigner(product_repo, store).save(
        session, product.id, [ColorSlots(black.id, [png("ok"), png("bad")])]
    )

    assert len(outcome.images) == 1
    failure = outcome.partial_failure
    assert failure is not None
    assert [(f.color_id, f.slot) for f in failure.failed_slots] == [(black.id, 1)]
    assert failure.failed_slots[0].reason == "storage unavailable"
    assert failure.to_detail()["failed_slots"][0]["color_id"] == str(black.id)


def test_upload_timeout_reported_as_failed_slot(session, product_repo, hoodie):
    product, black, _white = hoodie
    store = FakeBlobStore(delay=1.0)

    outcome = assigner(product_repo, store, upload_timeout=0.05).save(
        session, product.id, [ColorSlots(black.id, [png("slow")])]
    )

    assert outcome.images == []
    assert [f.reason for f in outcome.partial_failure.failed_slots] == ["upload timed out"]


def test_upload_finishing_after_timeout_is_deleted(session, product_repo, hoodie):
    product, black, _white = hoodie
    store = FakeBlobStore(delay=0.3)

    assigner(product_repo, store, upload_timeout=0.05).save(
        session, product.id, [ColorSlots(black.id, [png("late")])]
    )

    deadline = time.monotonic() + 5
    while not store.deleted and time.monotonic() < deadline:
        time.sleep(0.05)

    [path] = store.uploads
    assert store.deleted == [f"https://cdn.test/assets/{path}"]
    assert product_repo.list_images_for_product(session, product.id) == []


def test_save_replaces_images_and_cleans_up_blobs(session, product_repo, blob_store, hoodie):
    product, black, _white = hoodie
    slot_assigner = assigner(product_repo, blob_store)
    first = slot_assigner.save(session, product.id, [ColorSlots(black.id, [png("a"), png("b")])])
    kept_url, dropped_url = [img.image_url for img in sorted(first.images, key=lambda i: i.sort_order)]

    second = slot_assigner.save(session, product.id, [ColorSlots(black.id, [ExistingImage(kept_url)])])

    assert [img.image_url for img in second.images] == [kept_url]
    assert product_repo.list_images_for_product(session, product.id)[0].image_url == kept_url
    assert blob_store.deleted == [dropped_url]


def test_invalid_content_type_rejected(session, product_repo, blob_store, hoodie):
    product, black, _white = hoodie

    with pytest.raises(ValidationError):
        assigner(product_repo, blob_store).save(
            session, product.id, [ColorSlots(black.id, [PendingUpload("image/gif", b"gif")])]
        )
    assert blob_store.uploads == {}


def test_too_many_slots_rejected(session, product_repo, blob_store, hoodie):
    product, black, _white = hoodie

    with pytest.raises(ValidationError):
        assigner(product_repo, blob_store).save(
            session, product.id, [ColorSlots(black.id, [png(str(i)) for i in range(6)])]
        )


def test_foreign_color_rejected(session, product_repo, blob_store, hoodie):
    product, _black, _white = hoodie

    with pytest.raises(ValidationError):
        assigner(product_repo, blob_store).save(
            session, product.id, [ColorSlots(uuid.uuid4(), [png("x")])]
        )


def test_legacy_images_load_under_first_color(session, product_repo, blob_store, hoodie):
    product, black, white = hoodie
    session.add(ProductImage(product_id=product.id, image_url="https://cdn.test/legacy.png"))
    session.commit()

    slots = assigner(product_repo, blob_store).load_slots(session, product.id)

    assert [entry.color_id for entry in slots] == [black.id, white.id]
    assert slots[0].slots[0] == ExistingImage("https://cdn.test/legacy.png")
    assert slots[1].slots == [None] * 5


def test_legacy_images_migrate_on_save(session, product_repo, blob_store, hoodie):
    product, black, _white = hoodie
    session.add(ProductImage(product_id=product.id, image_url="https://cdn.test/legacy.png"))
    session.commit()
    slot_assigner = assigner(product_repo, blob_store)

    slot_assigner.save(session, product.id, slot_assigner.load_slots(session, product.id))

    images = product_repo.list_images_for_product(session, product.id)
    assert len(images) == 1
    assert images[0].color_id == black.id
    assert images[0].is_primary is True
    assert blob_store.deleted == []
