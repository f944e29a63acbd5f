# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Any, Dict, List

from api_component.context.base import Contexts


class FastAPIContext(Contexts):
    """FastAPI 路由下的 context, 响应信封使用 code"""

    envelope_code_key = "code"

    def query(self, name: str) -> List[str]:
        if self._request is None:
            return []
        values = self._request.query_params.getlist(name)
        # query 中没有时, 再看已经解析过的表单
        if not values and self._state.form is not None:
            values = [v for v in self._state.form.getlist(name) if isinstance(v, str)]
        return values

    def path_parameters(self) -> Dict[str, str]:
        if self._request is None:
            return {}
        return {k: str(v) for k, v in self._request.path_params.items()}

    def selected_route_path(self) -> str:
        if self._request is not None:
            route = self._request.scope.get("route")
            path = getattr(route, "path_format", None) or getattr(route, "path", None)
            if path:
                return path
        return self._route_path

    def set_value(self, key: str, value: Any) -> None:
        if self._request is not None:
            setattr(self._request.state, key, value)
        else:
            self._values[key] = value

    def get_value(self, key: str) -> Any:
        if self._request is not None:
            return getattr(self._request.state, key, None)
        return self._values.get(key)
