"""
Pinpoint Backend — User & Session Schemas
==========================================

The credential columns never appear in any schema here; a User serialized
for the API carries identity and timestamps only.
"""

import uuid
from datetime import datetime

from pydantic import EmailStr, Field

from pinpoint.schemas.common import CamelModel


class UserOut(CamelModel):
    id: uuid.UUID
    name: str
    username: str
    created_at: datetime
    updated_at: datetime


class AddUserInput(CamelModel):
    """POST /api/User body."""
    name: str = Field(min_length=1, max_length=255)
    username: EmailStr
    password: str = Field(min_length=1)


class AddUserOutput(CamelModel):
    """
    201 body of POST /api/User.

    The plain password is echoed back to the caller that just chose it.
    """
    user: UserOut
    password: str


class SignInInput(CamelModel):
    """PUT /api/Me body."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SignInOutput(CamelModel):
    user: UserOut
    cy_token: str


class MeOutput(CamelModel):
    user: UserOut
