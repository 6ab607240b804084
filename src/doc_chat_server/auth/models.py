"""
Authentication Models

Strongly-typed identity object produced after bearer-token verification.
"""

from pydantic import BaseModel, Field, ConfigDict


class UserContext(BaseModel):
    """
    Authenticated user context derived from a verified token.

    This object is injected into all protected routes.
    """

    user_id: int = Field(
        ...,
        ge=1,
        description="Storage identifier of the authenticated user.",
    )

    username: str = Field(
        ...,
        min_length=1,
        description="Login name of the authenticated user.",
    )

    model_config = ConfigDict(
        frozen=True,                # Makes UserContext immutable after creation
        extra="forbid",             # Prevents claim injection via unexpected fields
    )
