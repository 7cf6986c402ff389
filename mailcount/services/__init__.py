"""Service layer exports."""

from .authorization_flow import AuthorizationFlowController, bind_callback_listener
from .credential_admin import CredentialAdminService
from .credential_source import CredentialSourceResolver
from .message_counter import CancellationSignal, MessageCountAggregator
from .sender_count import SenderCountCache, SenderCountResult, SenderCountService
from .token_cipher import TokenCipherService
from .token_refresh import TokenAction, TokenRefreshPolicy
from .token_store import EncryptedTokenStore

__all__ = [
    "AuthorizationFlowController",
    "CancellationSignal",
    "CredentialAdminService",
    "CredentialSourceResolver",
    "EncryptedTokenStore",
    "MessageCountAggregator",
    "SenderCountCache",
    "SenderCountResult",
    "SenderCountService",
    "TokenAction",
    "TokenCipherService",
    "TokenRefreshPolicy",
    "bind_callback_listener",
]
