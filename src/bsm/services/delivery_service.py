from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from bsm.domain.errors import ImageHostError, NotFoundError, ValidationError
from bsm.domain.models import DELIVERY_TTL_MS, DeliveryRecord
from bsm.repositories.unit_of_work import now_iso

log = logging.getLogger("bsm.sweep")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SweepReport:
    checked: int = 0
    deleted: int = 0
    errors: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"status": "ok", "checked": self.checked, "deleted": self.deleted, "errors": list(self.errors)}


class DeliveryService:
    def __init__(self, repo, image_host, ttl_ms: int = DELIVERY_TTL_MS):
        self.repo = repo
        self.images = image_host
        self.ttl_ms = int(ttl_ms)

    def add_delivery(self, content: bytes, filename: str, notes: Optional[str] = None) -> DeliveryRecord:
        if not content:
            raise ValidationError("Please select an image.")
        uploaded = self.images.upload(content, filename)

        created_ms = now_ms()
        record_id = self.repo.add_delivery_record(
            now_iso(), uploaded.url, uploaded.public_id, (notes or "").strip() or None, created_ms + self.ttl_ms
        )
        log.info("delivery_added record_id=%s public_id=%s", record_id, uploaded.public_id)
        rec = self.repo.get_delivery_record(record_id)
        if not rec:
            raise NotFoundError("Delivery record not found.")
        return rec

    def list_deliveries(self) -> list[DeliveryRecord]:
        return self.repo.list_delivery_records()

    def sweep_expired(self, now: int | None = None) -> SweepReport:
        """
        Remove every record whose expire_at has passed, plus its hosted image.

        Image and record deletion are attempted independently for each record;
        any exception from either step is collected in the report rather than raised.
        """
        cutoff = now_ms() if now is None else int(now)
        expired = self.repo.list_expired_delivery_records(cutoff)
        report = SweepReport(checked=len(expired))

        for rec in expired:
            try:
                if not rec.image_public_id:
                    raise ImageHostError("Missing image public id")
                self.images.destroy(rec.image_public_id)
            except Exception as e:
                log.warning("image_delete_failed record_id=%s error=%s", rec.id, e)
                report.errors.append({"id": rec.id, "error": str(e)})

            try:
                if self.repo.delete_delivery_record(rec.id):
                    report.deleted += 1
            except Exception as e:
                log.warning("record_delete_failed record_id=%s error=%s", rec.id, e)
                report.errors.append({"id": rec.id, "error": str(e)})

        log.info("delivery_swept checked=%s deleted=%s errors=%s", report.checked, report.deleted, len(report.errors))
        return report
