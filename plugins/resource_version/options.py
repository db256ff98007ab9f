"""Resolution options shared by every engine run of one build."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from .errors import ResourceVersionError

STRATEGIES = ("query", "rename")

DEFAULT_OPTIONS: Dict[str, Any] = {
    "type": "query",
    "length": 5,
    "exclude": [],
    "tag_attrs": {},
}

# md5 hex digests are 32 characters long.
MAX_HASH_LENGTH = 32


@dataclass(frozen=True)
class Options:
    """Resolution options, merged once per build and never mutated."""

    type: str = "query"
    length: int = 5
    exclude: Tuple[str, ...] = ()
    tag_attrs: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Options":
        """Merge ``config`` over the defaults and validate the result."""
        merged = dict(DEFAULT_OPTIONS)
        merged.update({k: v for k, v in config.items() if k in DEFAULT_OPTIONS and v is not None})

        strategy = merged["type"]
        if strategy not in STRATEGIES:
            raise ResourceVersionError(
                f"[resource_version] type must be one of {', '.join(STRATEGIES)}, got {strategy!r}"
            )

        length = merged["length"]
        if isinstance(length, bool) or not isinstance(length, int) or not 0 < length <= MAX_HASH_LENGTH:
            raise ResourceVersionError(
                f"[resource_version] length must be an integer between 1 and {MAX_HASH_LENGTH}, got {length!r}"
            )

        exclude = merged["exclude"] or []
        if isinstance(exclude, str):
            exclude = [exclude]

        tag_attrs: Dict[str, Tuple[str, ...]] = {}
        for tag, attrs in (merged["tag_attrs"] or {}).items():
            if isinstance(attrs, str):
                attrs = [attrs]
            tag_attrs[str(tag).lower()] = tuple(str(a).lower() for a in attrs)

        return cls(
            type=strategy,
            length=length,
            exclude=tuple(str(p) for p in exclude),
            tag_attrs=tag_attrs,
        )
