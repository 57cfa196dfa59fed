"""
Field validators for marketplace models.
"""

import re
from decimal import Decimal

from django.core.exceptions import ValidationError


PHONE_ALLOWED_CHARS = re.compile(r'^[\d\s\-\+\(\)]+$')


def validate_phone_number(value):
    """
    Validate a contact phone number.

    Blank is allowed. Otherwise the value may only hold digits, spaces,
    dashes, parentheses and a plus sign, and must carry at least 10 digits.

    Raises:
        ValidationError: If the phone number is malformed
    """
    if not value:
        return

    if not PHONE_ALLOWED_CHARS.match(value):
        raise ValidationError(
            'Phone number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_phone_chars'
        )

    if len(re.sub(r'\D', '', value)) < 10:
        raise ValidationError(
            'Phone number must contain at least 10 digits.',
            code='phone_too_short'
        )


def validate_positive_amount(value):
    """Reject zero and negative prices."""
    if value is not None and Decimal(value) <= 0:
        raise ValidationError(
            'Amount must be greater than 0.',
            code='non_positive_amount'
        )


def validate_not_blank(value):
    """Reject strings that are empty once whitespace is stripped."""
    if value is None or not str(value).strip():
        raise ValidationError(
            'This field cannot be blank.',
            code='blank'
        )
