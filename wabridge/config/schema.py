"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NormalizeConfig(Base):
    """Payload canonicalization settings."""

    # "number" converts integers beyond 2**53 - 1 to float (lossy), "string" keeps exact digits.
    large_ints: Literal["number", "string"] = "number"
    max_depth: int | None = Field(default=128, ge=1)


class ChatwootConfig(Base):
    """Chatwoot webhook handling."""

    edit_sync: bool = True  # Mirror Chatwoot message edits back to WhatsApp


class Config(Base):
    """Root configuration for wabridge."""

    normalize: NormalizeConfig = Field(default_factory=NormalizeConfig)
    chatwoot: ChatwootConfig = Field(default_factory=ChatwootConfig)
