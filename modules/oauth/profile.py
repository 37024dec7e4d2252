"""
Default profile normalization.

The mapping from raw provider fields to User attributes is data: for each
attribute an ordered list of candidate keys, the first present and non-empty
value wins.
"""

from typing import Any, Optional

from shared.models import User

PROFILE_FIELD_CANDIDATES: dict[str, tuple[str, ...]] = {
    "id": ("id", "sub"),
    "name": ("name", "login", "username"),
    "email": ("email",),
    "image": ("avatar_url", "picture", "image"),
}


def pick_field(profile: dict[str, Any], candidates: tuple[str, ...]) -> Optional[Any]:
    """Return the first candidate value that is present and not empty."""
    for key in candidates:
        value = profile.get(key)
        if value is not None and value != "":
            return value
    return None


def map_profile_fields(profile: dict[str, Any]) -> dict[str, Any]:
    """Apply PROFILE_FIELD_CANDIDATES to a raw profile."""
    return {
        attribute: pick_field(profile, candidates)
        for attribute, candidates in PROFILE_FIELD_CANDIDATES.items()
    }


def default_profile(profile: dict[str, Any]) -> User:
    """
    Build a User from a raw profile using the generic heuristics.

    Raises:
        ValueError: If the profile carries no usable identifier
    """
    fields = map_profile_fields(profile)
    if fields["id"] is None:
        raise ValueError("profile has no 'id' or 'sub' field")
    # Some providers (GitHub) use numeric ids
    fields["id"] = str(fields["id"])
    return User(**fields)
