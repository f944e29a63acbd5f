"""
Tests for the request context and its Starlette / FastAPI adapters.
"""

import asyncio

import pytest
from pydantic import BaseModel, Field

from api_component.common import codes
from api_component.common.errors import AppError
from api_component.common.trace import set_trace_id
from api_component.context import CTX_LOG_ID_KEY, SPAN_ID_KEY, FastAPIContext, StarletteContext, todo
from api_component.infra.config import settings
from tests.conftest import make_request


class CreateUser(BaseModel):
    name: str
    age: int = 0
    id: int = Field(0, json_schema_extra={"uri": "id"})


class Address(BaseModel):
    city: str = ""


class Profile(BaseModel):
    address: Address = Address()


class UserView(BaseModel):
    name: str
    secret: str = ""


class Row:
    def __init__(self) -> None:
        self.name = "n"
        self._secret = "s"


class TestRequestAccess:
    """Query, header, cookie and path parameter access."""

    def test_query_and_params(self) -> None:
        ctx = StarletteContext(make_request(query="a=1&a=2", path_params={"id": "9"}))
        assert ctx.query("a") == ["1", "2"]
        assert ctx.query("missing") == []
        assert ctx.path_parameter("id") == "9"
        assert ctx.path_parameter("missing") == ""

    def test_header_and_cookie(self) -> None:
        ctx = StarletteContext(make_request(headers={"X-Token": "t", "Cookie": "a=1; b=2"}))
        assert ctx.header().get("x-token") == "t"
        assert ctx.cookie() == {"a": "1", "b": "2"}

    def test_selected_route_path(self) -> None:
        ctx = StarletteContext(make_request(), route_path="/api/users/{id}")
        assert ctx.selected_route_path() == "/api/users/{id}"
        assert FastAPIContext(make_request(), route_path="/x").selected_route_path() == "/x"

    def test_envelope_keys(self) -> None:
        assert StarletteContext.envelope_code_key == "retcode"
        assert FastAPIContext.envelope_code_key == "code"

    def test_todo_context(self) -> None:
        ctx = todo()
        assert ctx.request is None
        assert ctx.query("a") == []
        assert ctx.cookie() == {}
        assert ctx.path_parameters() == {}
        assert asyncio.run(ctx.http_body()) == b""


class TestRequestId:
    """Request id comes from the trace contextvar, then the header."""

    def test_from_header(self) -> None:
        ctx = StarletteContext(make_request(headers={"trace-Id": "abc"}))
        assert ctx.get_request_id() == "abc"
        assert ctx.value(CTX_LOG_ID_KEY) == "abc"

    def test_contextvar_wins(self) -> None:
        set_trace_id("from-ctx")
        ctx = StarletteContext(make_request(headers={"trace-Id": "abc"}))
        assert ctx.get_request_id() == "from-ctx"

    def test_generated(self) -> None:
        ctx = StarletteContext(make_request())
        assert ctx.get_request_id().startswith("svc:")

    def test_sub_context(self) -> None:
        ctx = StarletteContext(make_request(), request_id="root")
        sub = ctx.sub_context("child")
        assert sub.get_request_id() == "root:child"
        assert ctx.get_request_id() == "root"

    def test_span(self) -> None:
        ctx = StarletteContext(make_request(), request_id="root")
        spanned = ctx.with_span_id("span-1")
        assert spanned.value(SPAN_ID_KEY) == "span-1"
        assert spanned.log().span_id == "span-1"
        assert ctx.span_id == "-"
        assert ctx.with_span_prefix("job").span_id.startswith("job-svc:")


class TestDerivedContexts:
    """Values are copied, response state is shared, lifetimes nest."""

    def test_values_copied(self) -> None:
        ctx = todo()
        ctx.with_value("k", 1)
        sub = ctx.sub_context("s")
        sub.with_value("k2", 2)
        assert sub.value("k") == 1
        assert ctx.value("k2") is None

    def test_response_state_shared(self) -> None:
        ctx = todo()
        ctx.sub_context("s").set_data({"ok": True})
        assert ctx.get_data() == {"ok": True}

    def test_timeout(self) -> None:
        ctx = todo()
        assert ctx.deadline() is None
        expired = ctx.with_timeout_ctx(0)
        assert expired.is_done()
        assert expired.deadline() is not None
        assert not ctx.is_done()

    def test_cancel_propagates_to_children(self) -> None:
        ctx = todo()
        child = ctx.with_timeout_ctx(60)
        ctx.cancel()()
        assert ctx.is_done()
        assert child.is_done()


class TestResponseState:
    def test_extra_and_page(self) -> None:
        ctx = todo()
        ctx.set_extra_response("total", 3)
        ctx.set_page_response({"page": 1})
        assert ctx.get_extra_response() == {"total": 3, "page": {"page": 1}}

    def test_file_and_raw(self) -> None:
        ctx = todo()
        assert ctx.get_response_file() == (None, None, False)
        ctx.set_response_file("a.txt", b"hi")
        assert ctx.get_response_file() == ("a.txt", b"hi", True)
        ctx.set_raw_response("text/plain", b"pong")
        assert ctx.get_raw_response() == ("text/plain", b"pong", True)


class TestDecode:
    """Body decoding through the context."""

    def test_json_decode(self) -> None:
        ctx = StarletteContext(make_request("POST", body=b'{"name": "bob", "age": 3}'))
        got = asyncio.run(ctx.json_decode(CreateUser))
        assert (got.name, got.age) == ("bob", 3)

    def test_body_is_readable_twice(self) -> None:
        ctx = StarletteContext(make_request("POST", body=b"payload"))
        assert asyncio.run(ctx.http_body()) == b"payload"
        assert asyncio.run(ctx.http_body()) == b"payload"

    def test_json_decode_error(self) -> None:
        ctx = StarletteContext(make_request("POST", body=b"{bad"))
        with pytest.raises(AppError) as exc:
            asyncio.run(ctx.json_decode(CreateUser))
        assert exc.value.code == codes.JSON_DECODE_ERR_CODE

    def test_unknown_nested_field_is_decode_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "DECODER_DISALLOW_UNKNOWN_FIELDS", True)
        ctx = StarletteContext(make_request("POST", body=b'{"address": {"city": "x", "zip": "1"}}'))
        with pytest.raises(AppError) as exc:
            asyncio.run(ctx.json_decode(Profile))
        assert exc.value.code == codes.JSON_DECODE_ERR_CODE
        assert "zip" in exc.value.message

    def test_decode_merges_sources(self) -> None:
        request = make_request(
            "POST",
            query="age=1",
            headers={"Content-Type": "application/json"},
            body=b'{"name": "bob"}',
            path_params={"id": "5"},
        )
        got = asyncio.run(FastAPIContext(request).decode(CreateUser))
        assert (got.name, got.age, got.id) == ("bob", 1, 5)

    def test_decode_validation_error(self) -> None:
        ctx = StarletteContext(make_request("GET", query="age=x"))
        with pytest.raises(AppError) as exc:
            asyncio.run(ctx.decode(CreateUser))
        assert exc.value.code == codes.JSON_DECODE_ERR_CODE

    def test_form_file_missing(self) -> None:
        ctx = StarletteContext(make_request("POST"))
        with pytest.raises(AppError) as exc:
            asyncio.run(ctx.form_file("upload"))
        assert exc.value.code == codes.FILE_NOT_FOUND_ERR_CODE
        assert "upload" in exc.value.message


class TestMapper:
    def test_mapper_from_dict_and_object(self) -> None:
        ctx = todo()
        assert ctx.mapper("dict", {"name": "a"}, UserView).name == "a"
        assert ctx.mapper("obj", Row(), UserView).name == "n"
        assert ctx.mapper("none", None, UserView) is None

    def test_mapper_error(self) -> None:
        with pytest.raises(AppError) as exc:
            todo().mapper("convert", {"age": 1}, UserView)
        assert exc.value.code == codes.MAPPER_ACTION_ERR_CODE

    def test_all_mapper_reads_private_attributes(self) -> None:
        got = todo().all_mapper("convert", Row(), UserView)
        assert (got.name, got.secret) == ("n", "s")


class TestFastAPIState:
    def test_set_value_on_request_state(self) -> None:
        ctx = FastAPIContext(make_request())
        ctx.set_value("user", "bob")
        assert ctx.get_value("user") == "bob"
        assert ctx.get_value("missing") is None

    def test_query_falls_back_to_form(self) -> None:
        request = make_request(
            "POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"name=from-form",
        )
        ctx = FastAPIContext(request)
        asyncio.run(ctx.form())
        assert ctx.query("name") == ["from-form"]
