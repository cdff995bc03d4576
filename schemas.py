"""
Database and request schemas for the problem tracker.

Each stored model corresponds to a MongoDB collection
(collection name = lowercase class name).
"""
from typing import List, Optional, Union

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

_http_url = TypeAdapter(HttpUrl)

INT64_MIN, INT64_MAX = -2**63, 2**63 - 1


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


# ---------- Stored documents ----------

class Problem(BaseModel):
    name: str = Field(..., description="Problem title")
    rating: Union[int, float] = Field(..., description="Difficulty score")
    link: str = Field(..., description="Problem statement URL")
    submissionLink: str = Field(..., description="Accepted submission URL")
    tags: List[str] = Field(..., min_length=1)
    solved: bool = Field(default=False)

class User(BaseModel):
    username: str = Field(..., description="Unique handle")
    password: str = Field(..., description="Salted password hash")
    isAdmin: bool = Field(default=False)
    solvedProblems: List[str] = Field(default_factory=list, description="Problem ids solved")


# ---------- Request bodies ----------

class ProblemCreate(BaseModel):
    name: str = Field(..., min_length=1)
    rating: Union[int, float]
    link: str
    submissionLink: str
    tags: List[str] = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _non_blank(v)

    @field_validator("rating", mode="before")
    @classmethod
    def rating_is_numeric(cls, v):
        if isinstance(v, bool):
            raise ValueError("must be numeric")
        return v

    @field_validator("rating")
    @classmethod
    def fit_bson_int(cls, v: Union[int, float]) -> Union[int, float]:
        # BSON integers are 64-bit; larger values are kept as doubles.
        if isinstance(v, int) and not INT64_MIN <= v <= INT64_MAX:
            return float(v)
        return v

    @field_validator("link", "submissionLink")
    @classmethod
    def is_url(cls, v: str) -> str:
        # Validate, but keep the submitted text as-is.
        try:
            _http_url.validate_python(v)
        except ValidationError:
            raise ValueError("must be a valid URL") from None
        return v


class Credentials(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def trim_username(cls, v: str) -> str:
        return _non_blank(v).strip()


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("username")
    @classmethod
    def trim_username(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v
