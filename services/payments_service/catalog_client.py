"""Client for the sibling services that own students, educators and products."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.service_client import ServiceClient
from services.payments_service.models import ProductType

logger = get_logger(__name__)

CALLING_SERVICE = "payments"


class CatalogClient:
    """Reads students, educators and products, and records enrollments.

    Lookups return None for unknown ids; every other failure raises
    ``ServiceCallError``.
    """

    def __init__(
        self,
        catalog_url: Optional[str] = None,
        students_url: Optional[str] = None,
        educators_url: Optional[str] = None,
    ):
        settings = get_settings()
        self.catalog = ServiceClient(
            catalog_url or settings.CATALOG_SERVICE_URL, calling_service=CALLING_SERVICE
        )
        self.students = ServiceClient(
            students_url or settings.STUDENTS_SERVICE_URL,
            calling_service=CALLING_SERVICE,
        )
        self.educators = ServiceClient(
            educators_url or settings.EDUCATORS_SERVICE_URL,
            calling_service=CALLING_SERVICE,
        )

    async def get_student(self, student_id: str) -> Optional[dict]:
        return await self.students.get_json(f"/internal/students/{student_id}")

    async def get_educator(self, educator_id: str) -> Optional[dict]:
        return await self.educators.get_json(f"/internal/educators/{educator_id}")

    async def get_product(
        self, product_type: ProductType, product_id: str
    ) -> Optional[dict]:
        return await self.catalog.get_json(
            f"/internal/products/{product_type.value}/{product_id}"
        )

    async def enroll_student(
        self,
        *,
        product_type: ProductType,
        product_id: str,
        student_id: str,
        snapshot: dict[str, Any],
        intent_id: uuid.UUID,
    ) -> None:
        """
        Grant the student access to the product.

        The catalog service deduplicates on ``intent_id`` and on
        (student, product), so repeating a call is harmless.
        """
        await self.catalog.post_json(
            f"/internal/products/{product_type.value}/{product_id}/enrollments",
            {"student_id": student_id, "product_snapshot": snapshot},
            idempotency_key=str(intent_id),
        )
        logger.info(
            f"Enrolled student {student_id} in {product_type.value} {product_id}",
            extra={"extra_fields": {"intent_id": str(intent_id)}},
        )
