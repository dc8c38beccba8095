from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

Condition = Literal["contains", "equals", "is_empty", "is_not_empty"]
Combinator = Literal["AND", "OR", ""]
Role = Literal["title", "industry", "location", "category"]

#conditions that need at least one token
TOKEN_CONDITIONS = {"contains", "equals"}


class FilterRule(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    column: str = Field(min_length=1)
    condition: Condition
    tokens: Tuple[str, ...] = ()
    #how this rule joins the previous one; "" opens a sequence
    combinator: Combinator = Field("", validation_alias=AliasChoices("combinator", "subop"))

    @field_validator("condition", mode="before")
    @classmethod
    def normalise_condition(cls, value: Any) -> Any:
        #older clients send "is empty" / "is not empty"
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return value

    @field_validator("combinator", mode="before")
    @classmethod
    def normalise_combinator(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def check_tokens(self) -> "FilterRule":
        if self.condition in TOKEN_CONDITIONS and not self.tokens:
            raise ValueError(f"condition '{self.condition}' requires at least one token")
        return self


class MatchCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    count: int = Field(0, ge=0)


class Winner(MatchCandidate):
    is_control: bool = False
    matched: bool = False


class ReconciliationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    winner: Winner
    alternates: Tuple[MatchCandidate, ...] = ()
    error: Optional[str] = None


# -----------------------------
#  request / response bodies
# -----------------------------

class VerifyTermsRequest(BaseModel):
    terms: List[str] = Field(min_length=1)
    column: Optional[str] = None
    role: Role = "title"


class ReconcileRequest(BaseModel):
    description: Optional[str] = None
    terms: Optional[List[str]] = None
    role: Role = "title"
    column: Optional[str] = None


class MatchesResponse(BaseModel):
    matches: List[ReconciliationResult]
    used_values: List[str]
    terms: Optional[List[str]] = None


class CompileRequest(BaseModel):
    filters: List[FilterRule] = []
    expand_locations: bool = True


class CompileResponse(BaseModel):
    filters: List[FilterRule]
    query: Dict[str, Any]


class AudienceRequest(BaseModel):
    description: str = Field(min_length=1)
    roles: List[Role] = ["title", "industry", "location"]


class AudienceResponse(BaseModel):
    matches: Dict[str, List[ReconciliationResult]]
    filters: List[FilterRule]
    query: Dict[str, Any]


class LocationComponents(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class DistinctValuesResponse(BaseModel):
    column: str
    values: List[MatchCandidate]
