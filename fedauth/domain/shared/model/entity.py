from pydantic import BaseModel


class Entity(BaseModel):
    """Base class for domain entities: mutable, identified by ``id``."""
