from __future__ import annotations

import uuid
from datetime import date

REQUISITION_PREFIX = "REQ"
PO_PREFIX = "PO"
GRN_PREFIX = "GRN"
REPLACEMENT_PREFIX = "REPL"
CONSUMPTION_PREFIX = "CONS"


def make_doc_no(prefix: str, on: date | None = None) -> str:
    """PREFIX-YYYYMMDD-XXXXXX (suffixe aléatoire, unicité garantie par la contrainte DB)."""
    on = on or date.today()
    return f"{prefix}-{on:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"
