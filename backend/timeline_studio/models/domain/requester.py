"""Authenticated requester identity handed over by the auth layer."""

from typing import Optional

from pydantic import BaseModel


class Requester(BaseModel):
    """The user on whose behalf a repository operation runs."""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
