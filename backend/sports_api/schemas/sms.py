from pydantic import Field

from sports_api.schemas.auth import CamelModel, SendCodeIn


class SmsTestIn(SendCodeIn):
    test_code: str | None = Field(default=None, alias="testCode", pattern=r"^\d{6}$")


class SmsStatusCallback(CamelModel):
    message_sid: str | None = Field(default=None, alias="MessageSid")
    message_status: str | None = Field(default=None, alias="MessageStatus")
    to: str | None = Field(default=None, alias="To")
    error_code: str | None = Field(default=None, alias="ErrorCode")
    error_message: str | None = Field(default=None, alias="ErrorMessage")
