from __future__ import annotations

from typing import Mapping, Tuple

# Ordered canonical slots expected by the payment-slip template. The set is
# closed: adding a field means updating the template as well.
CANONICAL_FIELDS: Tuple[str, ...] = (
    "ClassName",
    "ParentName",
    "StudentId",
    "SeatNumber",
    "LunchFee",
    "FreshMilkFee",
    "SchoolMealFee",
    "AfterSchoolFee",
    "AgencyFee",
    "TotalFee",
    "TotalFeeAlt",
    "FeeDetails",
    "ParentNote",
    "ContactInfo",
    "Barcode1",
    "Barcode2",
    "Barcode3",
)

BARCODE_FIELDS: Tuple[str, ...] = ("Barcode1", "Barcode2", "Barcode3")
BARCODE_IMAGE_FIELDS: Tuple[str, ...] = tuple(f"{name}_Img" for name in BARCODE_FIELDS)

# Fields whose resolved source columns form the ORDER BY clause.
SORT_KEY_FIELDS: Tuple[str, ...] = ("ClassName", "StudentId", "SeatNumber")

# Columns that must exist before any row-level check makes sense.
REQUIRED_COLUMNS: Tuple[str, ...] = (
    "ClassName",
    "ParentName",
    "StudentId",
    "Barcode1",
    "Barcode2",
    "Barcode3",
)
# Per-row order of the non-empty checks.
REQUIRED_VALUE_FIELDS: Tuple[str, ...] = (
    "ClassName",
    "StudentId",
    "ParentName",
    "Barcode1",
    "Barcode2",
    "Barcode3",
)

STUDENT_ID_FIELD = "StudentId"
STUDENT_ID_LENGTH = 6
PAYMENT_NOTE_FIELD = "ParentNote"
REPORT_NOTE_FIELD = "ReportNote"

# Dataset name the rendering template binds to.
DATASET_NAME = "ReportData"

# Code 39 printable alphabet shared by the validator and the encoder. Changing
# it changes what downstream scanners accept on the printed slip.
CODE39_ALPHABET: str = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ-. $/+%"
CODE39_CHARSET = frozenset(CODE39_ALPHABET)
CODE39_SENTINEL = "*"

DEFAULT_FIELD_MAPPING: Mapping[str, str] = {
    "ClassName": "班級",
    "ParentName": "姓名",
    "StudentId": "學號",
    "SeatNumber": "座號",
    "LunchFee": "學期午餐金額",
    "FreshMilkFee": "新生訓練午餐費",
    "SchoolMealFee": "暑期輔導午餐費",
    "AfterSchoolFee": "退前一學期午餐費",
    "AgencyFee": "超商代收手續費",
    "TotalFee": "應繳金額",
    "TotalFeeAlt": "實繳金額",
    "FeeDetails": "實繳金額中文",
    "ParentNote": "繳費截止日",
    "ContactInfo": "原始銷帳編號",
    "Barcode1": "第1段條碼",
    "Barcode2": "第2段條碼",
    "Barcode3": "第3段條碼",
}


def first_illegal_code39_char(value: str) -> str | None:
    """Return the first character of ``value`` outside the Code 39 alphabet."""

    for char in value:
        folded = char.upper()
        if folded not in CODE39_CHARSET:
            # Some characters fold to more than one letter (e.g. German sharp s).
            return folded if len(folded) == 1 else char
    return None
