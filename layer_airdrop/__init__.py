"""
Layer Airdrop runner.

Signs each wallet in to the nation.fun platform (SIWE through the identity
provider), checks its credit balance and holds a short, paced chat session
with the Layer Airdrop agent, one wallet at a time.

Example::

    from layer_airdrop import RunContext, SessionOrchestrator

    ctx = RunContext()
    orchestrator = SessionOrchestrator(ctx, ctx.config.chat_prompts)
    summary = await orchestrator.run(["0x..."])
    print(summary.success_count, summary.fail_count)
"""

__version__ = "0.1.0"

from layer_airdrop.auth import AuthFlow, build_siwe_message
from layer_airdrop.chat import ChatDriver, PromptSelector
from layer_airdrop.client import IdentityProviderClient, PlatformClient
from layer_airdrop.context import RunContext
from layer_airdrop.credit import CreditGate
from layer_airdrop.errors import (
    AirdropError,
    InvalidKeyError,
    KeySourceError,
    MalformedResponseError,
    PermanentRequestError,
    RequestError,
    SigningError,
    TransientNetworkError,
    UnregisteredWalletError,
)
from layer_airdrop.orchestrator import SessionOrchestrator
from layer_airdrop.proxy import ProxyPool, parse_proxy
from layer_airdrop.signer import WalletIdentity, derive_identity, recover_address, sign_message
from layer_airdrop.transport import RetryPolicy, Transport
from layer_airdrop.types import (
    AgentInfo,
    AuthFailure,
    AuthResult,
    AuthState,
    BatchSummary,
    BotConfig,
    ChatOutcome,
    ChatSession,
    ChatStatus,
    CreditSnapshot,
    GateDecision,
    ProxyDescriptor,
    SessionCredential,
    WalletOutcome,
)

__all__ = [
    "AuthFlow",
    "build_siwe_message",
    "ChatDriver",
    "PromptSelector",
    "IdentityProviderClient",
    "PlatformClient",
    "RunContext",
    "CreditGate",
    "AirdropError",
    "InvalidKeyError",
    "KeySourceError",
    "MalformedResponseError",
    "PermanentRequestError",
    "RequestError",
    "SigningError",
    "TransientNetworkError",
    "UnregisteredWalletError",
    "SessionOrchestrator",
    "ProxyPool",
    "parse_proxy",
    "WalletIdentity",
    "derive_identity",
    "recover_address",
    "sign_message",
    "RetryPolicy",
    "Transport",
    "AgentInfo",
    "AuthFailure",
    "AuthResult",
    "AuthState",
    "BatchSummary",
    "BotConfig",
    "ChatOutcome",
    "ChatSession",
    "ChatStatus",
    "CreditSnapshot",
    "GateDecision",
    "ProxyDescriptor",
    "SessionCredential",
    "WalletOutcome",
]
