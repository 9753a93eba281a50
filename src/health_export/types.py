"""Shared type aliases and typed dictionaries."""

from __future__ import annotations

from typing import TypeAlias, TypedDict

JSONValue: TypeAlias = (
    str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
)
JSONObject: TypeAlias = dict[str, JSONValue]


class Committer(TypedDict):
    """Commit author block sent with contents API writes."""

    name: str
    email: str


class ContentsPutBody(TypedDict, total=False):
    """Request body for ``PUT /repos/{owner}/{repo}/contents/{path}``."""

    message: str
    content: str
    committer: Committer
    sha: str
    branch: str
