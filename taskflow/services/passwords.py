from passlib.context import CryptContext


class PasswordHasher:
    """Salted bcrypt hashing with a cost factor fixed at construction."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        # Verified against unknown emails so login failures cost the same
        self._dummy_hash = self._context.hash("taskflow-dummy-password")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        return self._context.verify(password, hashed_password)

    def verify_dummy(self, password: str) -> bool:
        self._context.verify(password, self._dummy_hash)
        return False
