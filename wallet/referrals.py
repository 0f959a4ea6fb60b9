import logging
import secrets
import string
from typing import Callable, Optional

from .config import Settings
from .errors import ReferralCodeExhaustedError

logger = logging.getLogger(__name__)

REFERRAL_ALPHABET = string.ascii_uppercase + string.digits


def generate_referral_code(length: int) -> str:
    return "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))


def normalize_referral_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def allocate_referral_code(
    is_taken: Callable[[str], bool],
    settings: Settings,
    generate: Callable[[int], str] = generate_referral_code,
) -> str:
    """Draw codes until one is free.

    Each length gets ``referral_code_max_attempts`` draws. When they all
    collide the length grows by ``referral_code_fallback_step`` and the
    search continues once more before giving up.
    """
    lengths = (
        settings.referral_code_length,
        settings.referral_code_length + settings.referral_code_fallback_step,
    )
    for length in lengths:
        for _ in range(settings.referral_code_max_attempts):
            code = generate(length)
            if not is_taken(code):
                return code
        logger.warning(
            "Referral code space crowded: %d collisions at length %d",
            settings.referral_code_max_attempts, length,
        )
    raise ReferralCodeExhaustedError(
        f"Could not allocate a unique referral code after trying lengths {lengths}"
    )
