from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

ACCESS_PURPOSE = "access"
RESET_PASSWORD_PURPOSE = "reset_password"


class IdentityClaims(BaseModel):
    """Claims of an identity credential (authenticates API requests)."""
    purpose: Literal["access"] = ACCESS_PURPOSE
    id: str
    email: str
    full_name: str


class ResetClaims(BaseModel):
    """Claims of a reset-purpose credential (authorizes one password change)."""
    purpose: Literal["reset_password"] = RESET_PASSWORD_PURPOSE
    id: str
    # Matched against users.reset_token_jti; cleared once the password changes
    jti: str


TokenClaims = Annotated[Union[IdentityClaims, ResetClaims], Field(discriminator="purpose")]

token_claims_adapter = TypeAdapter(TokenClaims)
