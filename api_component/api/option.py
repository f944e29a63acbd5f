# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Option:
    no_login: bool = False

    def with_no_login(self) -> "Option":
        return replace(self, no_login=True)

    def with_login(self) -> "Option":
        return replace(self, no_login=False)

    def is_no_login(self) -> bool:
        return self.no_login


def default_option() -> Option:
    return Option()
