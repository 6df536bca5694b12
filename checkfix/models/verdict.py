"""
Verdict Model
=============
Pydantic model for the structured meaning of one agent response.

Fields:
    kind    — clean / issues_found / fixed / blocked / unparseable
    detail  — issue report (issues_found), summary (fixed) or reason (blocked);
              empty for clean and unparseable
"""
from typing import Literal

from pydantic import BaseModel

VerdictKind = Literal["clean", "issues_found", "fixed", "blocked", "unparseable"]


class Verdict(BaseModel):
    kind: VerdictKind
    detail: str = ""

    @property
    def is_clean(self) -> bool:
        return self.kind == "clean"

    @property
    def is_blocked(self) -> bool:
        return self.kind == "blocked"
