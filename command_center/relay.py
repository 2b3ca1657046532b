import logging

import httpx


logger = logging.getLogger(__name__)

RELAY_SECRET_HEADER = "X-Relay-Secret"


class EmailRelay:
    """Client for the outbound email relay (a small HTTP endpoint that owns SMTP)."""

    def __init__(self, url: str, secret: str, client: httpx.AsyncClient):
        self.url = (url or "").strip()
        self.secret = (secret or "").strip()
        self.client = client

    @property
    def configured(self) -> bool:
        return bool(self.url and self.secret)

    async def send(self, notification_email: str, subject: str, body: str) -> bool:
        if not self.configured:
            return False
        response = await self.client.post(
            self.url,
            json={"notificationEmail": notification_email, "subject": subject, "body": body},
            headers={RELAY_SECRET_HEADER: self.secret},
        )
        if response.is_success:
            return True
        logger.warning("Email relay returned %s", response.status_code)
        return False
