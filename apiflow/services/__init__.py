"""
Collaborators used by the step catalog

Document store, token verification, password hashing, email and trace
transport. The engine depends only on the protocols.
"""

from .store import DocumentStoreConnector, InMemoryDocumentStore
from .auth import AuthVerifier, JWTAuthVerifier
from .passwords import PasswordHasher, BcryptPasswordHasher
from .email import EmailTransport, SmtpEmailTransport
from .trace import TraceSink, TraceBroadcaster

__all__ = [
    "DocumentStoreConnector",
    "InMemoryDocumentStore",
    "AuthVerifier",
    "JWTAuthVerifier",
    "PasswordHasher",
    "BcryptPasswordHasher",
    "EmailTransport",
    "SmtpEmailTransport",
    "TraceSink",
    "TraceBroadcaster",
]
