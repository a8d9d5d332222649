from __future__ import annotations

from vanish.models.base import Base as Base  # noqa: F401
from vanish.models.expiry import ExpiryEntry  # noqa: F401
