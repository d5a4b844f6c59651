from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field


class PreviousMessage(BaseModel):
    role: str = "user"
    content: str = ""


class GenerateContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    previous_messages: list[PreviousMessage] = Field(default_factory=list, alias="previousMessages")
    system_context: Optional[str] = Field(default=None, alias="systemContext")


class BillEntity(BaseModel):
    bill_number: Optional[str] = None
    title: Optional[str] = None
    status_desc: Optional[str] = None
    committee: Optional[str] = None
    last_action: Optional[str] = None
    description: Optional[str] = None


class MemberEntity(BaseModel):
    people_id: Optional[int] = None
    name: Optional[str] = None
    party: Optional[str] = None
    district: Optional[str] = None
    chamber: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    phone_capitol: Optional[str] = None


class CommitteeEntity(BaseModel):
    committee_name: Optional[str] = None
    chamber: Optional[str] = None
    chair_name: Optional[str] = None
    description: Optional[str] = None
    member_count: Optional[int] = None


class EntityContext(BaseModel):
    bill: Optional[BillEntity] = None
    member: Optional[MemberEntity] = None
    committee: Optional[CommitteeEntity] = None

    @property
    def kind(self) -> Optional[Literal["bill", "member", "committee"]]:
        if self.bill:
            return "bill"
        if self.member:
            return "member"
        if self.committee:
            return "committee"
        return None


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    type: Literal["chat", "default"] = "chat"
    stream: bool = True
    model: Optional[str] = None
    context: Optional[GenerateContext] = None
    entity_context: Optional[EntityContext] = Field(default=None, alias="entityContext")
    enhance_with_nys_data: bool = Field(default=True, alias="enhanceWithNYSData")
    fast_mode: Optional[bool] = Field(default=None, alias="fastMode")

    @property
    def history(self) -> list[PreviousMessage]:
        return self.context.previous_messages if self.context else []

    @property
    def system_context(self) -> Optional[str]:
        return self.context.system_context if self.context else None

    @property
    def is_fast_mode(self) -> bool:
        if self.fast_mode is not None:
            return self.fast_mode
        return self.type == "chat"


class NumberedCitation(BaseModel):
    number: int
    url: Optional[str] = None
    title: str
    excerpt: str = ""


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generated_text: str = Field(alias="generatedText")
    model: str
    citations: list[NumberedCitation] = Field(default_factory=list)
    nys_data_used: bool = Field(default=False, alias="nysDataUsed")


class BillCitation(BaseModel):
    identifier: str
    title: Optional[str] = None
    status: Optional[str] = None
    committee: Optional[str] = None
    description: Optional[str] = None
    session_id: Optional[int] = None
    sponsor_name: Optional[str] = None
    sponsor_party: Optional[str] = None
    sponsor_district: Optional[str] = None
    sponsor_chamber: Optional[str] = None
    committee_slug: Optional[str] = None


class Message(BaseModel):
    id: str
    role: Literal["user", "assistant"]
    content: str = ""
    is_streaming: bool = False
    citations: list[BillCitation] = Field(default_factory=list)
    related_bills: list[BillCitation] = Field(default_factory=list)
    web_citations: Optional[list[NumberedCitation]] = None
    reasoning: Optional[str] = None
    reasoning_in_progress: bool = False
    feedback: Optional[Literal["good", "bad"]] = None
    thinking_phrase: Optional[str] = None
    prompt_log: Optional[str] = None


class ProviderInfo(BaseModel):
    name: str
    display_name: str
    models: list[str] = Field(default_factory=list)
    api_key_detected: bool = False
    streaming: bool = True


class ConfigResponse(BaseModel):
    model: str
    providers: dict[str, ProviderInfo] = Field(default_factory=dict)
    vector_backend: str = "supabase"


class SemanticSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    session_year: Optional[int] = Field(default=None, alias="sessionYear")
    bill_number: Optional[str] = Field(default=None, alias="billNumber")
    threshold: float = Field(default=0.55, ge=0.0, le=1.0)
    limit: int = Field(default=10, ge=1, le=50)


class ChunkMatch(BaseModel):
    bill_number: Optional[str] = None
    chunk_type: Optional[str] = "body"
    chunk_index: Optional[int] = 0
    content: Optional[str] = ""
    similarity: float = 0.0


class SemanticSearchResponse(BaseModel):
    success: bool = True
    query: str
    results: list[ChunkMatch] = Field(default_factory=list)
    count: int = 0
