"""Push device tokens registered by customers."""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class DeviceToken(BaseModel):
    """One push registration token; a token belongs to one customer at a time."""

    customer_id = models.CharField(max_length=128, db_index=True)
    token = models.CharField(max_length=512, unique=True)
    user_agent = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "device_tokens"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.customer_id} ({self.token[:12]}...)"
