"""
Pydantic models for the Layer Airdrop runner.

Platform payloads keep the platform's snake_case field names. Configuration
models also accept camelCase keys so existing ``config.json`` files load
unchanged.
"""

from __future__ import annotations

import random
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


# ============================================================
#  Configuration
# ============================================================


_CONFIG_MODEL = {"populate_by_name": True, "alias_generator": to_camel}


class DelayRange(BaseModel):
    """Inclusive range of seconds to sleep."""

    min: float = 0.0
    max: float = 0.0

    model_config = _CONFIG_MODEL

    @model_validator(mode="after")
    def _check_order(self) -> "DelayRange":
        if self.min < 0 or self.max < self.min:
            raise ValueError(f"invalid delay range [{self.min}, {self.max}]")
        return self

    def pick(self, rng: random.Random) -> float:
        return rng.uniform(self.min, self.max)


class CountRange(BaseModel):
    """Inclusive integer range."""

    min: int = 1
    max: int = 1

    model_config = _CONFIG_MODEL

    @model_validator(mode="after")
    def _check_order(self) -> "CountRange":
        if self.min < 1 or self.max < self.min:
            raise ValueError(f"invalid count range [{self.min}, {self.max}]")
        return self

    def pick(self, rng: random.Random) -> int:
        return rng.randint(self.min, self.max)


class RetrySettings(BaseModel):
    """Retry/backoff parameters for one call site."""

    max_retries: int = 3
    base_delay: float = 5.0
    max_delay: float = 60.0

    model_config = _CONFIG_MODEL


class EndpointSettings(BaseModel):
    """Remote hosts and the fixed identification values they expect."""

    platform_url: str = "https://api.service.crestal.network"
    identity_url: str = "https://auth.privy.io"
    app_id: str = "cm4v61vl108sdivml83sbeykh"
    origin: str = "https://nation.fun"
    siwe_domain: str = "nation.fun"
    siwe_statement: str = (
        "By signing, you are proving you own this wallet and logging in. "
        "This does not initiate a transaction or cost any fees."
    )
    siwe_resources: list[str] = Field(default_factory=lambda: ["https://privy.io"])
    chain_id: int = 8453

    model_config = _CONFIG_MODEL


class AgentInfo(BaseModel):
    """Agent record as returned by ``/v1/agents``."""

    id: int
    agent_id: str | None = None
    status: str | None = None
    intent_kit_agent_info: dict[str, Any] | None = None

    model_config = {"extra": "allow"}

    @property
    def name(self) -> str:
        info = self.intent_kit_agent_info or {}
        return str(info.get("name") or self.agent_id or self.id)

    @property
    def usable(self) -> bool:
        return self.id > 0


def _default_fallback_agent() -> AgentInfo:
    return AgentInfo(
        id=4717,
        agent_id="d0h424g52tqs73cjj2p0",
        status="pre_launch",
        intent_kit_agent_info={"name": "Layer Airdrop"},
    )


DEFAULT_CHAT_PROMPTS = [
    "What is Layer Airdrop and how does it work?",
    "How can I increase my chances of qualifying for the airdrop?",
    "Which tasks count towards my airdrop score?",
    "Can you explain how credits are used on this platform?",
    "What are the latest updates on the project roadmap?",
    "How is the airdrop allocation calculated?",
    "Is there a snapshot date I should know about?",
    "What chains does the platform support?",
    "How do agents on Nation work?",
    "What should I do to stay eligible until the distribution?",
]

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:124.0) Gecko/20100101 Firefox/124.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36 OPR/108.0.0.0",
]


class ChatSessionSettings(BaseModel):
    """Pacing and length of one chat session."""

    message_count: CountRange = Field(default_factory=lambda: CountRange(min=5, max=10))
    typing_delay: DelayRange = Field(default_factory=lambda: DelayRange(min=3.0, max=8.0))
    reading_delay: DelayRange = Field(default_factory=lambda: DelayRange(min=2.0, max=8.0))
    session_delay: DelayRange = Field(default_factory=lambda: DelayRange(min=30.0, max=60.0))

    model_config = _CONFIG_MODEL


class BotConfig(BaseModel):
    """Process-wide configuration. Read-only after startup."""

    endpoints: EndpointSettings = Field(default_factory=EndpointSettings)
    min_credit_balance: Decimal = Decimal("1")
    request_delay: DelayRange = Field(default_factory=lambda: DelayRange(min=1.0, max=3.0))
    chat_session: ChatSessionSettings = Field(default_factory=ChatSessionSettings)
    chat_prompts: list[str] = Field(default_factory=lambda: list(DEFAULT_CHAT_PROMPTS))
    ip_check_services: list[str] = Field(
        default_factory=lambda: [
            "https://api.ipify.org?format=json",
            "https://ifconfig.me/ip",
            "https://icanhazip.com",
        ]
    )
    user_agents: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))

    auth_attempts: int = 2
    auth_retry_delay: DelayRange = Field(default_factory=lambda: DelayRange(min=5.0, max=10.0))

    # Used when the credit endpoint cannot be read; see CreditGate.
    default_free_credits: Decimal = Decimal("480")
    airdrop_agent_creator: str = "0x9E89C1B5AeD05632C29e89E5e4EbB1E96BbE5Bfc"
    fallback_agent: AgentInfo = Field(default_factory=_default_fallback_agent)

    public_proxy_url: str = "https://raw.githubusercontent.com/monosans/proxy-list/main/proxies/all.txt"
    http_timeout: float = 30.0
    proxy_check_timeout: float = 10.0
    proxy_check_limit: int = 5

    identity_retry: RetrySettings = Field(default_factory=lambda: RetrySettings(max_retries=3, base_delay=5.0, max_delay=60.0))
    login_retry: RetrySettings = Field(default_factory=lambda: RetrySettings(max_retries=3, base_delay=5.0, max_delay=60.0))
    credit_retry: RetrySettings = Field(default_factory=lambda: RetrySettings(max_retries=5, base_delay=5.0, max_delay=60.0))
    agent_retry: RetrySettings = Field(default_factory=lambda: RetrySettings(max_retries=3, base_delay=3.0, max_delay=30.0))
    chat_retry: RetrySettings = Field(default_factory=lambda: RetrySettings(max_retries=3, base_delay=5.0, max_delay=30.0))

    model_config = _CONFIG_MODEL


# ============================================================
#  Proxies
# ============================================================


class ProxyDescriptor(BaseModel):
    """One parsed proxy entry."""

    scheme: str = "http"
    host: str
    port: int
    username: str | None = None
    password: str | None = Field(None, repr=False)

    model_config = {"frozen": True}

    @property
    def url(self) -> str:
        auth = ""
        if self.username is not None and self.password is not None:
            auth = f"{self.username}:{self.password}@"
        return f"{self.scheme}://{auth}{self.host}:{self.port}"

    @property
    def display(self) -> str:
        """Proxy identity safe for logs (credentials omitted)."""
        return f"{self.scheme}://{self.host}:{self.port}"


# ============================================================
#  Parse results
# ============================================================


class ParseStatus(str, Enum):
    OK = "ok"
    MISSING_FIELD = "missing_field"
    MALFORMED = "malformed"


class Parsed(BaseModel, Generic[T]):
    """Tagged result of interpreting one endpoint payload."""

    status: ParseStatus
    value: T | None = None
    missing: list[str] = Field(default_factory=list)
    raw: Any = None

    @property
    def ok(self) -> bool:
        return self.status is ParseStatus.OK


# ============================================================
#  Authentication
# ============================================================


class LoginResult(BaseModel):
    """Platform ``/v1/login`` response."""

    access_token: str | None = Field(None, repr=False)
    refresh_token: str | None = Field(None, repr=False)

    model_config = {"extra": "allow"}


class SessionCredential(BaseModel):
    """Everything needed to act as a logged-in wallet. Never persisted."""

    access_token: str = Field(repr=False)
    refresh_token: str | None = Field(None, repr=False)
    wallet_address: str
    provider_token: str | None = Field(None, repr=False)
    user_agent: str


class AuthState(str, Enum):
    START = "start"
    NONCE_REQUESTED = "nonce_requested"
    MESSAGE_SIGNED = "message_signed"
    CHALLENGE_VERIFIED = "challenge_verified"
    LOGGED_IN = "logged_in"
    FAILED = "failed"


class AuthFailure(str, Enum):
    NONCE = "nonce"
    SIGN = "sign"
    VERIFY = "verify"
    LOGIN = "login"
    UNREGISTERED = "unregistered"


class AuthResult(BaseModel):
    """Outcome of the whole sign-in attempt loop."""

    credential: SessionCredential | None = None
    failure: AuthFailure | None = None
    attempts: int = 0
    states: list[AuthState] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.credential is not None


# ============================================================
#  Credit
# ============================================================


class CreditPayload(BaseModel):
    """Platform ``/v1/credit`` response. Balances arrive as decimal strings."""

    credits: Decimal | None = None
    free_credits: Decimal | None = None

    model_config = {"extra": "allow"}


class CreditSnapshot(BaseModel):
    """Normalized balance used once to gate a wallet."""

    paid_balance: Decimal = Decimal("0")
    free_balance: Decimal = Decimal("0")
    raw_payload: Any = None
    synthetic: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_available(self) -> Decimal:
        return self.paid_balance + self.free_balance


class GateDecision(str, Enum):
    PROCEED = "proceed"
    SKIP = "skip"


# ============================================================
#  Chat
# ============================================================


class ChatMessage(BaseModel):
    """One message in a ``/v1/chat`` response or history."""

    message: str | None = None
    author_type: str | None = None
    chat_id: str | None = None
    created_at: str | None = None

    model_config = {"extra": "allow"}


class ChatSession(BaseModel):
    """Mutable state of one conversation."""

    chat_id: str
    agent_id: int
    messages_sent: list[str] = Field(default_factory=list)
    used_prompt_indices: set[int] = Field(default_factory=set)


class ChatStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


class ChatOutcome(BaseModel):
    status: ChatStatus
    reason: str | None = None
    planned: int = 0
    messages_sent: int = 0
    chat_id: str | None = None


# ============================================================
#  Batch
# ============================================================


class WalletOutcome(BaseModel):
    """Result of processing one wallet."""

    address: str | None = None
    success: bool = False
    reason: str | None = None
    proxy: str | None = None
    credit: CreditSnapshot | None = None
    chat: ChatOutcome | None = None


class BatchSummary(BaseModel):
    total: int = 0
    success_count: int = 0
    fail_count: int = 0
    stopped: bool = False
    outcomes: list[WalletOutcome] = Field(default_factory=list)
