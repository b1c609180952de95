from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EmailInput(BaseModel):
    """
    Structured email fields as submitted by the web form, the browser
    extension or the forwarding webhook. Missing fields default to "".
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender_email: str = Field(default="", alias="senderEmail")
    subject: str = ""
    message: str = ""
    links: str = ""  # newline-separated
    attachments: str = ""  # comma-separated

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

    def is_complete(self) -> bool:
        return all(
            field.strip() for field in (self.sender_email, self.subject, self.message)
        )


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_safe: bool = Field(alias="isSafe")
    explanation: str
    confidence: int = Field(ge=60, le=95)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class CheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    issue: Optional[str] = None


class Assessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_score: int
    issues: List[str]
    verdict: Verdict


class SafetyTip(BaseModel):
    category: str
    tip: str
    severity: str = "info"  # danger | warning | info
