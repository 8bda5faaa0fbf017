import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sports_api.core.phone import PHONE_INPUT_MAX_LENGTH

_DIGIT_RE = re.compile(r"\d")


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class SendCodeIn(CamelModel):
    # Normalization inspects the raw value, including a leading "+".
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=False)

    phone_number: str = Field(alias="phoneNumber", min_length=1, max_length=PHONE_INPUT_MAX_LENGTH)

    @field_validator("phone_number")
    @classmethod
    def _has_digits(cls, value: str) -> str:
        if not _DIGIT_RE.search(value):
            raise ValueError("Phone number must contain digits")
        return value


class VerifyCodeIn(SendCodeIn):
    code: str = Field(pattern=r"^\d{6}$")


class UserOut(CamelModel):
    id: int
    phone_number: str | None = Field(alias="phoneNumber")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    display_name: str | None = Field(default=None, alias="displayName")
    onboarding_completed: bool = Field(default=False, alias="onboardingCompleted")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)
