import os
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ConfigDict


ENV_PREFIX = "BETPOA_"


class Settings(BaseModel):
    currency: str = "KES"
    phone_country_code: str = "254"
    phone_subscriber_digits: int = 9

    welcome_bonus: Decimal = Decimal("150.00")
    deposit_credit: Decimal = Decimal("20.00")
    referral_bonus: Decimal = Decimal("5.00")

    game_type: str = "spinning"
    win_probability: float = Field(default=0.001, ge=0, le=1)
    win_multiplier: int = Field(default=100, gt=0)

    withdrawal_minimum: Decimal = Decimal("10.00")
    bonus_unlock_threshold: Decimal = Decimal("300.00")
    small_play_max_stake: Decimal = Decimal("10.00")

    history_limit: int = Field(default=50, gt=0)

    referral_code_length: int = Field(default=6, gt=0)
    referral_code_max_attempts: int = Field(default=20, gt=0)
    referral_code_fallback_step: int = Field(default=2, gt=0)

    model_config = ConfigDict(frozen=True)

    @property
    def phone_pattern(self) -> str:
        return rf"^{self.phone_country_code}\d{{{self.phone_subscriber_digits}}}$"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)
        overrides = {}
        for name in cls.model_fields:
            value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls(**overrides)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
