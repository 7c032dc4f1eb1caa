from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..services.auth import AuthVerifier
    from ..services.email import EmailTransport
    from ..services.passwords import PasswordHasher
    from ..services.store import DocumentStoreConnector


@dataclass
class StepContext:
    """Collaborators and request data handed to every step of one execution"""
    execution_id: str
    store: "DocumentStoreConnector"
    verifier: Optional["AuthVerifier"] = None
    hasher: Optional["PasswordHasher"] = None
    mailer: Optional["EmailTransport"] = None
    headers: Dict[str, Any] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive request header lookup."""
        wanted = name.lower()
        for key, value in (self.headers or {}).items():
            if str(key).lower() == wanted:
                return value
        return None
