from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Sequence

from valuation_studio.config import settings
from valuation_studio.errors import (
    CapacityExceeded,
    CurationError,
    IndexOutOfRange,
    StoreWriteFailed,
    UploadFailed,
)
from valuation_studio.models import Image, PendingUpload
from valuation_studio.providers.base import BinaryUploader
from valuation_studio.storage import RecordStore


logger = logging.getLogger(__name__)


def reestablish_primary(images: Sequence[Image]) -> list[Image]:
    """
    Restore the single-primary rule on an ordered image set.

    Keeps the first primary image if there is one and clears any others; otherwise the
    first image becomes primary. An empty set is returned as is.
    """
    out = list(images)
    if not out:
        return out
    primary_at = next((i for i, img in enumerate(out) if img.is_primary), 0)
    for i, img in enumerate(out):
        if img.is_primary != (i == primary_at):
            out[i] = replace(img, is_primary=(i == primary_at))
    return out


def _check_index(images: Sequence[Image], index: int) -> None:
    # Negative indices are rejected rather than counted from the end.
    if index < 0 or index >= len(images):
        raise IndexOutOfRange(index, len(images))


@dataclass(frozen=True)
class ImageOutcome:
    index: int
    committed: bool
    image_id: str | None = None
    url: str | None = None
    error: CurationError | None = None


@dataclass(frozen=True)
class CommitResult:
    images: list[Image]
    outcomes: list[ImageOutcome] = field(default_factory=list)
    # Set when the images were inserted but their primary flags could not be written.
    primary_error: StoreWriteFailed | None = None

    @property
    def committed(self) -> list[int]:
        return [o.index for o in self.outcomes if o.committed]

    @property
    def failed(self) -> list[int]:
        return [o.index for o in self.outcomes if not o.committed]

    @property
    def ok(self) -> bool:
        return not self.failed


class AssetCurator:
    def __init__(
        self,
        uploader: BinaryUploader | None = None,
        store: RecordStore | None = None,
        max_images: int | None = None,
    ) -> None:
        self.uploader = uploader
        self.store = store
        self.max_images = settings.max_images if max_images is None else max_images

    def stage_images(self, images: Sequence[Image], files: Sequence[PendingUpload]) -> list[Image]:
        if len(images) + len(files) > self.max_images:
            logger.info(
                "rejecting %d staged image(s): %d already present, limit %d",
                len(files),
                len(images),
                self.max_images,
            )
            raise CapacityExceeded(len(images), len(files), self.max_images)
        staged = [Image(pending=f) for f in files]
        return reestablish_primary([*images, *staged])

    def remove_image(self, images: Sequence[Image], index: int) -> list[Image]:
        _check_index(images, index)
        removed = images[index]
        remaining = [img for i, img in enumerate(images) if i != index]
        if removed.is_primary and remaining:
            logger.debug("primary image removed; promoting first remaining image")
        return reestablish_primary(remaining)

    def set_primary(self, images: Sequence[Image], index: int) -> list[Image]:
        _check_index(images, index)
        return reestablish_primary([replace(img, is_primary=(i == index)) for i, img in enumerate(images)])

    async def commit(self, property_id: str, images: Sequence[Image]) -> CommitResult:
        """
        Upload every pending image and insert a record for each image not yet persisted.

        Uploads run concurrently and failures are reported per index rather than raised.
        A failed image keeps its payload; an uploaded image whose insert failed keeps its url,
        so committing the returned set again only repeats the work that did not succeed.
        """
        if self.uploader is None or self.store is None:
            raise RuntimeError("commit needs an uploader and a record store")

        out = list(images)
        outcomes: dict[int, ImageOutcome] = {}

        pending = [i for i, img in enumerate(out) if img.pending is not None]
        urls = await asyncio.gather(*(self._upload(i, out[i].pending) for i in pending))
        for i, result in zip(pending, urls):
            if isinstance(result, UploadFailed):
                outcomes[i] = ImageOutcome(index=i, committed=False, error=result)
            else:
                out[i] = replace(out[i], url=result, pending=None)

        to_insert = [i for i, img in enumerate(out) if not img.is_persisted and img.pending is None and img.url]
        if to_insert:
            records = [{"url": out[i].url, "is_primary": out[i].is_primary} for i in to_insert]
            try:
                ids = self.store.insert_images(property_id, records)
            except StoreWriteFailed as exc:
                logger.error("inserting %d image record(s) for %s failed: %s", len(records), property_id, exc.reason)
                for i in to_insert:
                    outcomes[i] = ImageOutcome(index=i, committed=False, url=out[i].url, error=exc)
            else:
                for i, image_id in zip(to_insert, ids):
                    out[i] = replace(out[i], image_id=image_id)
                    outcomes[i] = ImageOutcome(index=i, committed=True, image_id=image_id, url=out[i].url)

        primary_error = None
        if any(o.committed for o in outcomes.values()):
            out, primary_error = self._settle_primary(property_id, out)

        return CommitResult(
            images=out,
            outcomes=[outcomes[i] for i in sorted(outcomes)],
            primary_error=primary_error,
        )

    def _settle_primary(self, property_id: str, images: list[Image]) -> tuple[list[Image], StoreWriteFailed | None]:
        # The stored set must hold the primary; an unpersisted primary hands it to the first stored image.
        persisted = [i for i, img in enumerate(images) if img.is_persisted]
        if not any(images[i].is_primary for i in persisted):
            logger.info("primary image of %s is not stored; promoting stored image %d", property_id, persisted[0])
            images = self.set_primary(images, persisted[0])
        flags = {images[i].image_id: images[i].is_primary for i in persisted}
        try:
            self.store.update_image_flags(property_id, flags)
        except StoreWriteFailed as exc:
            logger.error("writing primary flags for %s failed: %s", property_id, exc.reason)
            return images, exc
        return images, None

    async def _upload(self, index: int, payload: PendingUpload) -> str | UploadFailed:
        try:
            return await self.uploader.upload(payload)
        except Exception as exc:
            # Any uploader failure is reported for this index; the other uploads still complete.
            logger.warning("upload of image %d (%s) failed: %s", index, payload.filename, exc)
            return UploadFailed(index, str(exc))

    def sync(self, property_id: str, images: Sequence[Image]) -> None:
        """Write primary flags and removals of already-persisted images back to the store."""
        if self.store is None:
            raise RuntimeError("sync needs a record store")
        self.store.update_images(property_id, [img for img in images if img.is_persisted])
