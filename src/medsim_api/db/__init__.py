from __future__ import annotations

from medsim_api.db.models import Base

__all__ = ["Base"]
