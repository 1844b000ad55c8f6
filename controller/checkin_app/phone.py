"""Phone number normalization and validation for the check-in form."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

import phonenumbers
from phonenumbers import NumberParseException, PhoneMetadata, PhoneNumberFormat

logger = logging.getLogger(__name__)

INVALID_PHONE_MESSAGE = "Please enter a valid phone number"
EMPTY_PHONE_MESSAGE = "Please enter your phone number"

_NON_GEO_REGION = "001"


@dataclass(frozen=True)
class Valid:
    phone: str

    @property
    def is_valid(self) -> bool:
        return True


@dataclass(frozen=True)
class Invalid:
    reason: str

    @property
    def is_valid(self) -> bool:
        return False


ValidationResult = Union[Valid, Invalid]


def digits_only(raw: Optional[str]) -> str:
    return "".join(ch for ch in (raw or "") if ch.isdigit())


class PhoneValidator:
    """Validate raw keypad input against libphonenumber metadata.

    The digits are tried as a national number of the default region first and
    then as a ``+``-prefixed international number, so both a bare subscriber
    number and one typed with its country code are accepted.
    """

    def __init__(self, *, default_region: str = "US", min_digits: int = 10, strict: bool = False) -> None:
        self.default_region = default_region
        self.min_digits = min_digits
        self.strict = strict

    def validate(self, raw: Optional[str], default_region: Optional[str] = None) -> ValidationResult:
        digits = digits_only(raw)
        if len(digits) < self.min_digits:
            return Invalid(INVALID_PHONE_MESSAGE)

        region = (default_region or self.default_region).upper()
        for candidate, parse_region in ((digits, region), ("+" + digits, None)):
            normalized = self._normalize(candidate, parse_region)
            if normalized:
                return Valid(normalized)
        return Invalid(INVALID_PHONE_MESSAGE)

    def _normalize(self, candidate: str, region: Optional[str]) -> Optional[str]:
        try:
            number = phonenumbers.parse(candidate, region)
        except NumberParseException as exc:
            logger.debug("Phone candidate rejected by parser (region=%s): %s", region, exc)
            return None
        if not self._is_acceptable(number):
            return None
        return phonenumbers.format_number(number, PhoneNumberFormat.E164)

    def _is_acceptable(self, number: phonenumbers.PhoneNumber) -> bool:
        if self.strict:
            return phonenumbers.is_valid_number(number)

        national = phonenumbers.national_significant_number(number)
        for region in phonenumbers.region_codes_for_country_code(number.country_code):
            if region == _NON_GEO_REGION:
                metadata = PhoneMetadata.metadata_for_nongeo_region(number.country_code)
            else:
                metadata = PhoneMetadata.metadata_for_region(region)
            if metadata is None or metadata.general_desc is None:
                continue
            pattern = metadata.general_desc.national_number_pattern
            if pattern and re.fullmatch(pattern, national):
                return True
        return False


__all__ = [
    "EMPTY_PHONE_MESSAGE",
    "INVALID_PHONE_MESSAGE",
    "Invalid",
    "PhoneValidator",
    "Valid",
    "ValidationResult",
    "digits_only",
]
