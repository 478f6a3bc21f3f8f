"""HTTP client for the external order service."""

import httpx

from payroute.common.errors import OrderCreationError
from payroute.common.logging import logger, request_id_ctx
from payroute.services.payments.schemas import OrderRecord


class OrderClient:
    """Records confirmed payments as orders; one call per payment, no retries."""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def create_order(self, record: OrderRecord) -> None:
        try:
            resp = await self.http.post(
                "/orders",
                headers={"x-request-id": request_id_ctx.get()},
                json=record.model_dump(by_alias=True),
            )
        except httpx.HTTPError as exc:
            logger.error("order_service_unreachable payment_id=%s error=%s", record.payment_id, exc)
            raise OrderCreationError(details=str(exc)) from exc
        if resp.status_code >= 400:
            logger.error(
                "order_service_rejected payment_id=%s status=%s body=%s",
                record.payment_id,
                resp.status_code,
                resp.text,
            )
            raise OrderCreationError(details=resp.text or f"order service returned {resp.status_code}")

    async def aclose(self) -> None:
        await self.http.aclose()
