from typing import Protocol

import bcrypt


class PasswordHasher(Protocol):
    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, hashed: str) -> bool: ...


class BcryptPasswordHasher:
    """One-way salted hashing for stored passwords"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(str(plaintext).encode("utf-8"), salt).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(str(plaintext).encode("utf-8"), str(hashed).encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash
            return False
