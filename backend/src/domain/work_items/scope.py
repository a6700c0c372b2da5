"""Operation scope codes carried by every work item (work_item.scope)."""

from enum import IntEnum


class WorkScope(IntEnum):
    """Kind of downstream ERP operation a work item represents.

    Values are shared with the downstream processors and must not change.
    """
    PRODUCT = 16
    CONTRACTOR = 32
    ORDER = 960
    PURCHASE_INVOICE = 1521
    CORRECTION = 1529
    STOCK = -16
    INVOICE = 2033
    INVOICE_CORRECTION = 2041
    INTERNAL_ISSUE = 1616
    INTERNAL_RECEIPT = 1617
    WAREHOUSE_TRANSFER = 1603
    MARKETPLACE_STATUS = -960
    MARKETPLACE_INCOME = -1521
    MARKETPLACE_RELEASE = -1616

    # Reserved for input that could not be classified; triaged manually
    UNRECOGNIZED = -1


def is_real_scope(value: int) -> bool:
    """True for scopes that map to a downstream operation."""
    try:
        return WorkScope(value) is not WorkScope.UNRECOGNIZED
    except ValueError:
        return False
