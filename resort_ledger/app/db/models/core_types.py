import enum


class ConsumptionType(str, enum.Enum):
    lumpsum = "LUMPSUM"
    recipe_lumpsum = "RECIPE_LUMPSUM"
    recipe_portion = "RECIPE_PORTION"
    replacement = "REPLACEMENT"


RECIPE_CONSUMPTION_TYPES = {ConsumptionType.recipe_lumpsum, ConsumptionType.recipe_portion}


class ConsumptionStatus(str, enum.Enum):
    draft = "DRAFT"
    posted = "POSTED"


class ReplacementStatus(str, enum.Enum):
    open = "OPEN"
    sent_to_vendor = "SENT_TO_VENDOR"
    closed = "CLOSED"


class RequisitionType(str, enum.Enum):
    internal = "INTERNAL"
    vendor = "VENDOR"


class RequisitionStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    on_hold = "ON_HOLD"
    rejected = "REJECTED"
    po_created = "PO_CREATED"
    grn_created = "GRN_CREATED"


class POStatus(str, enum.Enum):
    open = "OPEN"
    partial = "PARTIAL"
    closed = "CLOSED"


class GRNStatus(str, enum.Enum):
    open = "OPEN"
    closed = "CLOSED"


class MovementType(str, enum.Enum):
    consumption = "CONSUMPTION"
    replacement_out = "REPLACEMENT_OUT"
    replacement_in = "REPLACEMENT_IN"
    goods_receipt = "GOODS_RECEIPT"
    adjustment = "ADJUSTMENT"
