from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


def _check_segment(value: str) -> str:
    # Control characters cannot appear in a request URL.
    if "/" in value or value in (".", "..") or not value.isprintable():
        raise ValueError(f"Invalid key component: {value!r}")
    return value


class Key(BaseModel):
    """Addresses one manual page: page name, distribution and language.

    Each field becomes a path segment in the cache and in candidate URLs,
    so separators and dot-segments are rejected.
    """

    model_config = ConfigDict(frozen=True)

    page: str
    dist: str
    lang: str = ""  # Empty means "no language preference"

    @field_validator("page", "dist")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return _check_segment(v)

    @field_validator("lang")
    @classmethod
    def validate_lang(cls, v: str) -> str:
        return _check_segment(v) if v else v
