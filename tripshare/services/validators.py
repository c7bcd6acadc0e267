"""
Field rules shared by booking creation and edits.
"""

import re

from tripshare.core.exceptions import ValidationError

EGYPT_MOBILE = re.compile(r"^0(10|11|12|15)\d{8}$")


def normalize_phone(value: str) -> str:
    """Return the 11-digit mobile number or raise ValidationError."""
    digits = re.sub(r"\D", "", value or "")
    if not digits:
        raise ValidationError("رقم الهاتف مطلوب")
    if len(digits) != 11:
        raise ValidationError("رقم الهاتف يجب أن يكون 11 رقماً")
    if not EGYPT_MOBILE.match(digits):
        raise ValidationError("يجب أن يبدأ الرقم بـ 010 أو 011 أو 012 أو 015")
    return digits


def validate_seat_selection(labels: list[str], seat_count: int) -> list[str]:
    if not labels:
        return []
    if len(set(labels)) != len(labels):
        raise ValidationError("لا يمكن اختيار نفس المقعد أكثر من مرة")
    if len(labels) != seat_count:
        raise ValidationError("عدد المقاعد المختارة يجب أن يساوي عدد الأفراد")
    return list(labels)
