from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

from services.message import DestinationEndpoint
from services.util import get_env


_DEFAULT_USERNAME = "Telegram Discord Mirror Bot"
_DEFAULT_AVATAR = "https://discord.com/assets/1f0bfc0865d324c2587920a7d80c609b.png"


# ---------------------------------------------------------------------------
# Base for every config block: unknown keys are a validation error
# ---------------------------------------------------------------------------

class _StrictConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

class TelegramConfig(_StrictConfig):
    bot_token: str = ""


class IdentityDefaults(_StrictConfig):
    """Webhook identity used when an endpoint does not set its own."""
    username:   str = _DEFAULT_USERNAME
    avatar_url: str = _DEFAULT_AVATAR


class EndpointConfig(_StrictConfig):
    url:        str = Field(min_length=1)
    username:   str = ""
    avatar_url: str = ""

    def to_endpoint(self, defaults: IdentityDefaults) -> DestinationEndpoint:
        return DestinationEndpoint(
            url=self.url,
            username=self.username or defaults.username,
            avatar_url=self.avatar_url or defaults.avatar_url,
        )


# ---------------------------------------------------------------------------
# Top-level application config
# ---------------------------------------------------------------------------

class AppConfig(_StrictConfig):
    telegram:               TelegramConfig   = Field(default_factory=TelegramConfig)
    defaults:               IdentityDefaults = Field(default_factory=IdentityDefaults)
    max_concurrent_fetches: int              = Field(default=8, ge=0)  # 0 = unbounded
    save_media_dir:         str              = ""
    log_dir:                str              = "logs"
    routes: dict[int, Annotated[list[EndpointConfig], Field(min_length=1)]] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict) -> AppConfig:
        """Validate a loaded config dict; ``MIRROR_BOT_TOKEN`` in the
        environment wins over ``telegram.bot_token``."""
        data = dict(raw)
        token = get_env("MIRROR_BOT_TOKEN")
        if token:
            data["telegram"] = {**(data.get("telegram") or {}), "bot_token": token.strip()}
        return cls.model_validate(data)

    @model_validator(mode="after")
    def _require_token(self) -> AppConfig:
        if not self.telegram.bot_token:
            raise ValueError("telegram.bot_token is required (or set MIRROR_BOT_TOKEN)")
        return self

    def build_routes(self) -> dict[int, list[DestinationEndpoint]]:
        return {
            channel_id: [ep.to_endpoint(self.defaults) for ep in endpoints]
            for channel_id, endpoints in self.routes.items()
        }
