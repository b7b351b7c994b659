"""Personalization tokens for respondent-facing text.

Section titles, descriptions and welcome text may contain tokens such as
``{client_name}`` that are filled in per respondent. Both the long
(``{client_name}``) and short (``{client}``) spellings are accepted,
case-insensitively.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_WHITESPACE = re.compile(r"\s+")
_TOKEN_PATTERNS = {
    name: re.compile(r"\{" + name + r"(?:_name)?\}", re.IGNORECASE)
    for name in ("client", "company", "project")
}


@dataclass(frozen=True)
class PersonalizationParams:
    """Values substituted into personalization tokens.

    The short names are older spellings; the long names win when both are set.
    """

    client_name: str | None = None
    company_name: str | None = None
    project_name: str | None = None
    client: str | None = None
    company: str | None = None
    project: str | None = None

    def values(self) -> dict[str, str]:
        return {
            "client": self.client_name or self.client or "",
            "company": self.company_name or self.company or "",
            "project": self.project_name or self.project or "",
        }


def personalize_text(text: str | None, params: PersonalizationParams | None = None) -> str:
    """Replace personalization tokens and tidy the result.

    Missing values become empty strings; the doubled spaces that leaves
    behind are collapsed and the text is trimmed.
    """
    if not text:
        return ""

    params = params or PersonalizationParams()
    result = text
    for name, value in params.values().items():
        # Callable replacement so backslashes in values are taken literally
        result = _TOKEN_PATTERNS[name].sub(lambda _match: value, result)  # noqa: B023

    return _WHITESPACE.sub(" ", result).strip()
