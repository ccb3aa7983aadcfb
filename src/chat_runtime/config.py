"""Runtime configuration.

All settings come from environment variables so the server can be
configured the same way under the CLI, uvicorn --factory, or a container.

    CHAT_RUNTIME_MODEL            Model id (default: gpt-4.1)
    CHAT_RUNTIME_API_KEY          API key (falls back to OPENAI_API_KEY, then "lm-studio")
    CHAT_RUNTIME_ENDPOINT         Base URL of an OpenAI-compatible server
    CHAT_RUNTIME_THINKING         Enable inline <think> reasoning mode (1/true/yes)
    CHAT_RUNTIME_SYSTEM_PROMPT    System prompt for new sessions
    CHAT_RUNTIME_APPROVAL_POLICY  ignore | reject (approvals with no pending call)
    CHAT_RUNTIME_CORS_ORIGINS     Comma-separated allowed origins
    CHAT_RUNTIME_BUILTIN_TOOLS    Register bundled tools (default: on)
    CHAT_RUNTIME_LOG_LEVEL        Logging level (default: INFO)
    CHAT_RUNTIME_IMAGES_DIR       Directory served under /api/images (default: images)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .protocols.approval import ApprovalPolicy
from .session_store import DEFAULT_SYSTEM_PROMPT

ENV_PREFIX = "CHAT_RUNTIME_"

DEFAULT_MODEL = "gpt-4.1"
DEFAULT_API_KEY = "lm-studio"
DEFAULT_CORS_ORIGINS = ("http://localhost:4200",)
DEFAULT_IMAGES_DIR = "images"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


@dataclass
class RuntimeConfig:
    """Settings for one server process."""

    model: str = DEFAULT_MODEL
    api_key: str = DEFAULT_API_KEY
    endpoint: str | None = None
    thinking: bool = False
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    approval_policy: ApprovalPolicy = ApprovalPolicy.IGNORE
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    builtin_tools: bool = True
    log_level: str = "INFO"
    images_dir: str = DEFAULT_IMAGES_DIR

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RuntimeConfig:
        """Build configuration from environment variables.

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        def get(key: str) -> str | None:
            return env.get(ENV_PREFIX + key)

        policy_raw = (get("APPROVAL_POLICY") or ApprovalPolicy.IGNORE.value).strip().lower()
        try:
            policy = ApprovalPolicy(policy_raw)
        except ValueError:
            raise ValueError(
                f"Invalid {ENV_PREFIX}APPROVAL_POLICY: {policy_raw!r} "
                f"(expected one of {[p.value for p in ApprovalPolicy]})"
            ) from None

        log_level = (get("LOG_LEVEL") or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Invalid {ENV_PREFIX}LOG_LEVEL: {log_level!r}")

        origins_raw = get("CORS_ORIGINS")
        origins = (
            [o.strip() for o in origins_raw.split(",") if o.strip()]
            if origins_raw is not None
            else list(DEFAULT_CORS_ORIGINS)
        )

        return cls(
            model=get("MODEL") or DEFAULT_MODEL,
            api_key=get("API_KEY") or env.get("OPENAI_API_KEY") or DEFAULT_API_KEY,
            endpoint=get("ENDPOINT") or None,
            thinking=_parse_bool(ENV_PREFIX + "THINKING", get("THINKING"), False),
            system_prompt=get("SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
            approval_policy=policy,
            cors_origins=origins,
            builtin_tools=_parse_bool(ENV_PREFIX + "BUILTIN_TOOLS", get("BUILTIN_TOOLS"), True),
            log_level=log_level,
            images_dir=get("IMAGES_DIR") or DEFAULT_IMAGES_DIR,
        )
