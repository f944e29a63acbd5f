# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Dict, List

from api_component.context.base import Contexts


class StarletteContext(Contexts):
    """starlette 路由表(Route/Mount)下的 context, 响应信封使用 retcode"""

    envelope_code_key = "retcode"

    def query(self, name: str) -> List[str]:
        if self._request is None:
            return []
        return self._request.query_params.getlist(name)

    def path_parameters(self) -> Dict[str, str]:
        if self._request is None:
            return {}
        return {k: str(v) for k, v in self._request.path_params.items()}

    def selected_route_path(self) -> str:
        return self._route_path
