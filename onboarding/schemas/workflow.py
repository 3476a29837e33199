from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from onboarding.schemas.application import ApplicationOut, EmailLogOut


class WorkflowEmailIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template: str
    note: Optional[str] = None
    offer_letter_path: Optional[str] = Field(default=None, alias="offerLetterPath")
    auto_generate_offer: bool = Field(default=True, alias="autoGenerateOffer")


class WorkflowBatchIn(WorkflowEmailIn):
    application_ids: list[Union[int, str]] = Field(alias="applicationIds", min_length=1)


class WorkflowEmailOut(BaseModel):
    message: str
    email: EmailLogOut
    application: ApplicationOut


class BatchItemOut(BaseModel):
    application_id: str
    status: Literal["sent", "failed"]
    reason: Optional[str] = None


class WorkflowBatchOut(BaseModel):
    message: str
    template: str
    sent: int
    failed: int
    results: list[BatchItemOut]


class DirectEmailIn(BaseModel):
    subject: str = ""
    message: str = ""


class DirectEmailOut(BaseModel):
    message: str
    application: ApplicationOut


class OfferLetterGenerateIn(BaseModel):
    format: Literal["pdf", "html"] = "pdf"
    name: Optional[str] = None
    role: Optional[str] = None
    duration: Optional[str] = None
    date: Optional[str] = None


class OfferLetterFileOut(BaseModel):
    message: str
    path: str
    filename: str
    size: int
    format: Optional[str] = None
