"""
==============================================================================
Extraction Endpoint
==============================================================================

Stateless phone number extraction from arbitrary text.

==============================================================================
"""

from fastapi import APIRouter

from phonescan.config import get_settings
from phonescan.scanner.extractor import PhoneExtractor, digit_count
from phonescan.schemas.session import ExtractRequest, ExtractResponse


router = APIRouter(prefix="/extract", tags=["Extraction"])


@router.post("", response_model=ExtractResponse)
async def extract_phone(body: ExtractRequest):
    """
    Extract a normalized phone number from text.

    phone_number is null when the text holds no valid number.
    """
    extractor = PhoneExtractor(allow_digit_fallback=get_settings().extractor_digit_fallback)
    phone_number = extractor.extract(body.text)

    return ExtractResponse(
        phone_number=phone_number,
        digits=digit_count(phone_number) if phone_number else 0,
    )
