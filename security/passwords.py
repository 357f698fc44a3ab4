from passlib.context import CryptContext


class PasswordHasher:
    """One-way password hashing (bcrypt via passlib).

    Plaintext passwords never leave this class; verify() is constant-time.
    """

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            # Malformed stored hash
            return False
