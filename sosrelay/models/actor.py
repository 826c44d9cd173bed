"""Identity resolved from a bearer token. Viewers without a valid token are GUEST."""

from pydantic import BaseModel


class Actor(BaseModel):
    email: str
    name: str = ""

    @property
    def is_guest(self) -> bool:
        return self.email == GUEST.email


GUEST = Actor(email="guest", name="Guest")
