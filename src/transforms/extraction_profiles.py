"""Extraction profiles and the profile registry.

A profile decides how a decoded payload becomes record fields and where
those records are stored. Profiles are a tagged variant: each kind owns
its ``extract`` strategy, so adding a profile never touches the projector.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import hashlib
import json
import math
import re
from typing import Any, Iterable, Literal, Union

from core.constants import HASH_ALGORITHM, PAYLOAD_FIELD, SUBJECT_FIELD, TIMESTAMP_FIELD
from core.errors import LogscrollConfigError
from core.types import DecodedPayload, SearchCriteria

_INTEGER_PREFIX_PATTERN = re.compile(r"^\s*([+-]?\d+)")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class FieldRule:
    """Maps a dotted path inside the payload onto an output column.

    Attributes:
        column: Output column name.
        path: Keys walked from the payload root. Lists met on the way
            contribute only their first element.
        cast: ``str`` or ``int`` conversion applied to the leaf.
    """

    column: str
    path: tuple[str, ...]
    cast: Literal["str", "int"] = "str"

    @classmethod
    def parse(cls, column: str, dotted_path: str, cast: Literal["str", "int"] = "str") -> "FieldRule":
        return cls(column=column, path=tuple(dotted_path.split(".")), cast=cast)

    def resolve(self, payload: DecodedPayload) -> Any:
        """Return the cast leaf value, or None when the path is missing."""
        current: Any = payload
        for key in self.path:
            current = _first_if_list(current)
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        current = _first_if_list(current)
        if isinstance(current, (dict, list)):
            return None
        if self.cast == "int":
            return _cast_int(current)
        return _cast_str(current)


@dataclass(frozen=True)
class StoreTarget:
    """Destination table and its uniqueness key."""

    table_name: str
    timestamp_column: str
    subject_column: str | None
    unique_key: tuple[str, ...]


@dataclass(frozen=True)
class StructuredProfile:
    """Extracts named leaf fields into flat columns.

    Attributes:
        name: Registry name.
        target: Destination table.
        sections: Top-level payload keys the profile recognises.
        rules: Column extraction rules.
        default_criteria: Match criteria selecting this profile's documents.
        source_fields: Document fields requested from the search backend.
        keep_empty: Keep records whose recognised sections yield no values.
    """

    name: str
    target: StoreTarget
    sections: tuple[str, ...]
    rules: tuple[FieldRule, ...]
    default_criteria: SearchCriteria = field(default_factory=SearchCriteria)
    source_fields: tuple[str, ...] = (TIMESTAMP_FIELD, SUBJECT_FIELD, PAYLOAD_FIELD)
    keep_empty: bool = False
    kind: Literal["structured"] = "structured"

    @property
    def output_columns(self) -> tuple[str, ...]:
        return tuple(rule.column for rule in self.rules)

    @property
    def tracks_subject(self) -> bool:
        return self.target.subject_column is not None

    def extract(self, payload: DecodedPayload) -> dict[str, Any] | None:
        """Project payload leaves onto columns.

        Args:
            payload: Decoded payload tree.

        Returns:
            Column values, or None when the payload carries no useful signal.
        """
        values = {rule.column: rule.resolve(payload) for rule in self.rules}
        if any(value is not None for value in values.values()):
            return values
        if self.keep_empty and self._has_section(payload):
            return values
        return None

    def with_empty_records(self, keep_empty: bool) -> "StructuredProfile":
        return replace(self, keep_empty=keep_empty)

    def _has_section(self, payload: DecodedPayload) -> bool:
        if not isinstance(payload, dict):
            return False
        return any(payload.get(section) is not None for section in self.sections)


@dataclass(frozen=True)
class RawPassthroughProfile:
    """Stores the whole decoded payload in a single JSON column.

    The payload digest stands in for the subject id in the uniqueness key.
    """

    name: str
    target: StoreTarget
    payload_column: str = "payload"
    digest_column: str = "payload_digest"
    default_criteria: SearchCriteria = field(default_factory=SearchCriteria)
    source_fields: tuple[str, ...] = (TIMESTAMP_FIELD, PAYLOAD_FIELD)
    kind: Literal["raw_passthrough"] = "raw_passthrough"

    @property
    def output_columns(self) -> tuple[str, ...]:
        return (self.payload_column, self.digest_column)

    @property
    def tracks_subject(self) -> bool:
        return self.target.subject_column is not None

    def extract(self, payload: DecodedPayload) -> dict[str, Any] | None:
        return {
            self.payload_column: payload,
            self.digest_column: payload_digest(payload),
        }

    def with_empty_records(self, keep_empty: bool) -> "RawPassthroughProfile":
        return self


ExtractionProfile = Union[StructuredProfile, RawPassthroughProfile]


class ProfileRegistry:
    """Name to profile lookup supplied at startup."""

    def __init__(self, profiles: Iterable[ExtractionProfile]) -> None:
        self._profiles: dict[str, ExtractionProfile] = {}
        for profile in profiles:
            key = _normalize_name(profile.name)
            if key in self._profiles:
                raise LogscrollConfigError(f"Duplicate extraction profile name: {profile.name}")
            self._profiles[key] = profile

    def get(self, name: str) -> ExtractionProfile:
        """Return the profile registered under ``name``.

        Raises:
            LogscrollConfigError: If no such profile exists.
        """
        profile = self._profiles.get(_normalize_name(name))
        if profile is None:
            raise LogscrollConfigError(
                f"Unknown extraction profile '{name}'. "
                f"Available profiles: {', '.join(self.names())}."
            )
        return profile

    def names(self) -> tuple[str, ...]:
        return tuple(profile.name for profile in self._profiles.values())


def payload_digest(payload: DecodedPayload) -> str:
    """Hash the canonical JSON form of a payload.

    Args:
        payload: Decoded payload tree.

    Returns:
        Hex digest that is stable across key order.
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(canonical.encode("utf-8"))
    return hasher.hexdigest()


def default_profile_registry() -> ProfileRegistry:
    """Build the registry of built-in profiles."""
    user_info = StructuredProfile(
        name="retrieve_user_info",
        target=StoreTarget(
            table_name="user_login",
            timestamp_column="login_time",
            subject_column="uid",
            unique_key=("login_time", "uid"),
        ),
        sections=("profile", "employment"),
        rules=(
            FieldRule.parse("email", "profile.email"),
            FieldRule.parse("mobile", "profile.mobile"),
            FieldRule.parse("name", "profile.name"),
            FieldRule.parse("id_type", "profile.idType"),
            FieldRule.parse("id_no", "profile.idNo"),
            FieldRule.parse("ebid", "employment.id"),
            FieldRule.parse("eid", "employment.eid"),
            FieldRule.parse("salary", "employment.salaryDetails.salary", cast="int"),
        ),
        default_criteria=SearchCriteria(
            match={"module": "RetrieveUserInfo", "action": "response"},
        ),
    )
    bukopin = RawPassthroughProfile(
        name="bukopin",
        target=StoreTarget(
            table_name="bukopin_data",
            timestamp_column="timestamp",
            subject_column=None,
            unique_key=("timestamp", "payload_digest"),
        ),
        default_criteria=SearchCriteria(
            match={"module": "Request.post", "type": "PayoutService", "action": "response"},
        ),
    )
    return ProfileRegistry([user_info, bukopin])


def _normalize_name(name: str) -> str:
    return name.strip().lower().replace("-", "_")


def _first_if_list(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _cast_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text or None


def _cast_int(value: Any) -> int | None:
    """Parse an integer the lenient way, keeping only the leading digits."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        parsed = int(value)
    elif isinstance(value, int):
        parsed = value
    else:
        match = _INTEGER_PREFIX_PATTERN.match(str(value))
        if match is None:
            return None
        parsed = int(match.group(1))
    if parsed < _INT32_MIN or parsed > _INT32_MAX:
        return None
    return parsed
