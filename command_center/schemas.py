from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class LoginRequest(StrictModel):
    password: str = ""


class LoginResponse(BaseModel):
    success: bool = True
    token: str


class MeResponse(BaseModel):
    authenticated: bool


class PasswordChangeRequest(StrictModel):
    password: str


class PasswordResetConfirm(StrictModel):
    token: str
    new_password: str = Field(alias="newPassword")


class SuccessResponse(BaseModel):
    success: bool = True


class SentResponse(BaseModel):
    success: bool = True
    sent: bool


class PublicSettingsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    support_email: str = Field(serialization_alias="supportEmail")


class HealthResponse(BaseModel):
    ok: bool = True
