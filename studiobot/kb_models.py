from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator, model_validator

from .errors import KnowledgeBaseError
from .triggers import parse_trigger

# Sections a KB must carry before we answer anything from it.
REQUIRED_KB_KEYS = (
    "business",
    "square_booking_links",
    "packages",
    "booking_policies",
    "intents_and_answers",
    "bot_guardrails",
)
DEFAULT_ROUTE_MODE = "studio"
PACKAGE_ROUTE_TYPES = {"square_package", "package"}


def _as_text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return None


class StudioInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None  # never shown to users verbatim

    @field_validator("city", "state", "address", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _as_text(v)


class Business(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    owner: Optional[str] = None
    primary_phone: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    studio: StudioInfo = Field(default_factory=StudioInfo)

    @field_validator("name", "owner", "primary_phone", "website", "email", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("studio", mode="before")
    @classmethod
    def _studio(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, StudioInfo)) else {}


class UrlRoute(BaseModel):
    type: Literal["url"] = "url"
    url: Optional[str] = None


class PackageRoute(BaseModel):
    type: Literal["square_package", "package"] = "square_package"
    package_id: Optional[str] = None
    mode: Optional[str] = None


Route = Union[UrlRoute, PackageRoute]


def parse_route(v: Any) -> Optional[Route]:
    """Build a route from KB JSON; anything unrecognised is no route at all."""
    if isinstance(v, (UrlRoute, PackageRoute)):
        return v
    if not isinstance(v, dict):
        return None
    kind = v.get("type") or v.get("kind")
    if kind == "url":
        url = v.get("url")
        return UrlRoute(url=url if isinstance(url, str) else None)
    if kind in PACKAGE_ROUTE_TYPES:
        package_id = _as_text(v.get("package_id") or v.get("packageId"))
        mode = v.get("mode")
        return PackageRoute(
            type=kind,
            package_id=package_id or None,
            mode=mode if isinstance(mode, str) and mode else None,
        )
    return None


class Intent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    # LiteralTrigger / PatternTrigger instances, parsed once at load
    triggers: List[Any] = Field(default_factory=list)
    answer: Any = None
    followups: List[str] = Field(default_factory=list)
    route: Optional[Route] = None

    @model_validator(mode="before")
    @classmethod
    def _pick_id(cls, data: Any) -> Any:
        if isinstance(data, dict):
            ident = data.get("id") or data.get("intent_id") or data.get("name")
            data = {**data, "id": str(ident) if ident else None}
        return data

    @field_validator("triggers", mode="before")
    @classmethod
    def _parse_triggers(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [parse_trigger(t) for t in v if t is not None]

    @field_validator("followups", mode="before")
    @classmethod
    def _followups(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(x) for x in v if x is not None]

    @field_validator("route", mode="before")
    @classmethod
    def _route(cls, v: Any) -> Optional[Route]:
        return parse_route(v)


class KnowledgeBase(BaseModel):
    """Read-only snapshot of the KB JSON used for one chat request."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kb_version: Optional[str] = None
    last_updated_local: Optional[str] = None
    business: Business = Field(default_factory=Business)
    link_table: Dict[str, Any] = Field(default_factory=dict, alias="square_booking_links")
    packages: List[Any] = Field(default_factory=list)
    booking_policies: Any = None
    bot_guardrails: Any = None
    official_pages: Dict[str, Any] = Field(default_factory=dict)
    intents: List[Intent] = Field(default_factory=list, alias="intents_and_answers")

    _raw: Dict[str, Any] = PrivateAttr(default_factory=dict)

    @field_validator("kb_version", "last_updated_local", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("official_pages", mode="before")
    @classmethod
    def _pages(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @property
    def raw(self) -> Dict[str, Any]:
        return self._raw

    def intent_ids(self) -> List[str]:
        return [it.id for it in self.intents if it.id]

    @classmethod
    def from_json(cls, data: Any) -> "KnowledgeBase":
        if not isinstance(data, dict):
            raise KnowledgeBaseError("KB must be a JSON object")
        for key in REQUIRED_KB_KEYS:
            if key not in data:
                raise KnowledgeBaseError(f"KB missing required key: {key}")
        if not isinstance(data["intents_and_answers"], list):
            raise KnowledgeBaseError("KB intents_and_answers must be an array")
        if not isinstance(data["packages"], list):
            raise KnowledgeBaseError("KB packages must be an array")
        if not isinstance(data["square_booking_links"], dict):
            raise KnowledgeBaseError("KB square_booking_links must be an object")
        try:
            kb = cls.model_validate(data)
        except ValidationError as e:
            raise KnowledgeBaseError(f"KB failed validation: {e}") from e
        kb._raw = data
        return kb


class ModelReply(BaseModel):
    intent_id: Optional[str] = None
    confidence: float = 0.0
    reply: str = ""
    followups: List[str] = Field(default_factory=list)
    links_shared: List[str] = Field(default_factory=list)
    escalated: bool = False
    kb_evidence: List[str] = Field(default_factory=list)


class ChatResult(BaseModel):
    reply: str
    followups: List[str] = Field(default_factory=list)
    route_url: Optional[str] = None
    matched_intent_id: Optional[str] = None
    # int score on the heuristic path, 0.0-1.0 confidence on the model path
    match_score: Union[int, float] = 0
    used_model: bool = False
    escalated: bool = False
    evidence: List[str] = Field(default_factory=list)
    links_shared: List[str] = Field(default_factory=list)
    source: str = "intent"
    escalation_reason: Optional[str] = None
