import json
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reconciler.core.models import GatewayPayment, WebhookEvent


class MalformedEventError(Exception):
    def __init__(self, event_id: str, reason: str):
        super().__init__(f"Malformed webhook {event_id}: {reason}")
        self.event_id = event_id
        self.reason = reason


class _WebhookPayload(BaseModel):
    """Queued payload: {id, event, payment: {id, status, value?, ...}, receivedAt}"""

    model_config = ConfigDict(populate_by_name=True)

    event: str | None = None
    payment: GatewayPayment
    received_at: datetime | None = Field(default=None, alias="receivedAt")


def decode_webhook_event(event_id: str, raw: str | bytes) -> WebhookEvent:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEventError(event_id, f"payload is not utf-8: {e}") from e

    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(event_id, f"payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedEventError(event_id, "payload is not a JSON object")

    try:
        payload = _WebhookPayload.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedEventError(event_id, errors) from e

    return WebhookEvent(
        event_id=event_id,
        event_kind=payload.event,
        payment=payload.payment,
        received_at=payload.received_at or datetime.now(timezone.utc),
    )
