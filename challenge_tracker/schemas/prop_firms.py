from typing import Any

from pydantic import BaseModel, Field


class PhaseRuleResponse(BaseModel):
    name: str
    target_pct: float
    daily_dd_pct: float
    max_dd_pct: float


class PropFirmResponse(BaseModel):
    id: str
    name: str
    phases: list[PhaseRuleResponse]


class PropFirmListResponse(BaseModel):
    prop_firms: list[PropFirmResponse]
    total: int


class PropFirmGuessResponse(BaseModel):
    server: str
    prop_firm: str


class ExtractedField(BaseModel):
    value: Any = None
    parsed: bool = False


class RuleExtractionRequest(BaseModel):
    challenges: list[dict] = Field(default_factory=list)
    text: str = ""
    program_types: list[str] = Field(default_factory=list)
    platforms: list[dict] = Field(default_factory=list)


class RuleExtractionResponse(BaseModel):
    fields: dict[str, ExtractedField]
    program_types: str = ""
    platforms: dict[str, bool] = Field(default_factory=dict)
