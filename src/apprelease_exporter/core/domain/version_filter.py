from __future__ import annotations

import re
from typing import Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, field_validator


# $1, ${1}, $name, ${name} and $$ (literal dollar)
_TEMPLATE_REF = re.compile(r"\$(?:(\$)|\{(\w+)\}|(\w+))")


def expand_template(match: re.Match[str], template: str) -> str:
    """Expand a ``$``-style replacement template against a regex match.

    Unknown or unmatched groups expand to an empty string.
    """

    def _ref(ref: re.Match[str]) -> str:
        if ref.group(1):
            return "$"
        key = ref.group(2) or ref.group(3)
        try:
            value = match.group(int(key) if key.isdigit() else key)
        except IndexError:
            return ""
        return value or ""

    return _TEMPLATE_REF.sub(_ref, template)


def _strip_pattern(value: object) -> object:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return value


class Replacement(BaseModel):
    """One ``match -> replace`` rewrite rule."""

    model_config = ConfigDict(frozen=True)

    match: Pattern[str]
    replace: str = ""

    def apply(self, value: str) -> str:
        return self.match.sub(lambda m: expand_template(m, self.replace), value)


class ProjectFilter(BaseModel):
    """Whitelist, blacklist and rewrite rules for raw version strings.

    Patterns are compiled once while the configuration is validated, so an
    invalid expression fails at startup rather than during a scrape.
    """

    model_config = ConfigDict(frozen=True)

    whitelist: Optional[Pattern[str]] = None
    blacklist: Optional[Pattern[str]] = None
    replacement: list[Replacement] = Field(default_factory=list)

    @field_validator("whitelist", "blacklist", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: object) -> object:
        return _strip_pattern(value)

    def normalize(self, raw: str) -> tuple[str, bool]:
        """Rewrite ``raw`` and decide whether it is a valid version.

        Order is fixed: replacements, then whitelist (substring match), then
        blacklist. A blacklist match always invalidates.

        Returns:
            Tuple of (normalized version, valid)
        """
        version = raw
        for rule in self.replacement:
            version = rule.apply(version)

        valid = True
        if self.whitelist is not None:
            valid = self.whitelist.search(version) is not None

        if self.blacklist is not None and self.blacklist.search(version) is not None:
            valid = False

        return version, valid
