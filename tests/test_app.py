"""Tests for wren.app — registration surface and end-to-end dispatch."""

import gzip
import json
import logging

import pytest

from wren.app import App
from wren.context import get_request
from wren.errors import (
    ConfigurationError,
    DependencyNotFound,
    DuplicateDependency,
    ResponseAlreadyPrepared,
)
from wren.injection import DependencyKey
from wren.middleware.protocol import Reject
from wren.routing.router import Router
from wren.testing import TestClient, assert_header, assert_json, assert_status, decoded_body


class Repo:
    def __init__(self, name: str) -> None:
        self.name = name


class TestBasicDispatch:
    async def test_ping(self) -> None:
        app = App()

        @app.get("/ping")
        def ping(request, response) -> None:
            response.text("pong")

        descriptor = await TestClient(app).get("/ping")
        assert_status(descriptor, 200)
        assert descriptor.body == "pong"

    async def test_async_handler(self) -> None:
        app = App()

        @app.post("/echo")
        async def echo(request, response) -> None:
            response.json(request.body_json)

        descriptor = await TestClient(app).post("/echo", json={"a": 1})
        assert_json(descriptor, {"a": 1})

    async def test_params(self) -> None:
        app = App()

        @app.get("/user/:id/:tx")
        def show(request, response) -> None:
            response.json(request.params)

        descriptor = await TestClient(app).get("/user/7/abc")
        assert_json(descriptor, {"id": "7", "tx": "abc"})

    async def test_chained_registration(self) -> None:
        app = (
            App()
            .get("/a", lambda req, res: res.text("a"))
            .put("/a", lambda req, res: res.text("put"))
        )
        client = TestClient(app)
        assert (await client.get("/a")).body == "a"
        assert (await client.put("/a")).body == "put"

    async def test_route_with_methods(self) -> None:
        app = App()

        @app.route("/thing", methods=["get", "patch"])
        def thing(request, response) -> None:
            response.text(request.method)

        client = TestClient(app)
        assert (await client.get("/thing")).body == "GET"
        assert (await client.patch("/thing")).body == "PATCH"
        assert (await client.delete("/thing")).status_code == 404

    def test_route_rejects_unknown_method(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported HTTP method"):
            App().route("/x", methods=["TRACE"])

    async def test_all_and_wildcard(self) -> None:
        app = App()
        app.all("/any", lambda req, res: res.text("all"))
        app.get("*", lambda req, res: res.text("fallback"))
        client = TestClient(app)
        assert (await client.options("/any")).body == "all"
        assert (await client.get("/any")).body == "all"
        assert (await client.get("/whatever/deep")).body == "fallback"

    async def test_handler_may_take_all_channels(self) -> None:
        app = App()

        @app.get("/log")
        def handler(request, response, log, error) -> None:
            log("info line")
            error("error line")
            response.empty()

        client = TestClient(app)
        descriptor = await client.get("/log")
        assert_status(descriptor, 204)
        assert "info line" in client.logs
        assert "error line" in client.errors

    async def test_query(self) -> None:
        app = App()
        app.get("/search", lambda req, res: res.json(dict(req.query)))
        assert_json(await TestClient(app).get("/search?q=wren&page=2"), {"q": "wren", "page": "2"})


class TestRouters:
    async def test_mounted_router(self) -> None:
        api = Router()

        @api.get("/:id")
        def show(request, response) -> None:
            response.json(request.params)

        app = App().use("/api", api)
        assert_json(await TestClient(app).get("/api/55"), {"id": "55"})

    def test_empty_router(self) -> None:
        with pytest.raises(ConfigurationError, match="No routes defined for path '/api'."):
            App().use("/api", Router())


class TestNotFound:
    async def test_message(self) -> None:
        app = App().get("/ping", lambda req, res: res.text("pong"))
        client = TestClient(app)
        descriptor = await client.get("/nope")
        assert_status(descriptor, 404)
        assert descriptor.body == "Cannot GET '/nope'."
        assert_header(descriptor, "content-type", "text/plain")
        assert "Cannot GET '/nope'." in client.errors

    async def test_skips_outgoing(self) -> None:
        calls: list[str] = []
        app = App().middleware(outgoing=lambda req, d: calls.append("out"))
        descriptor = await TestClient(app).get("/nope")
        assert calls == []
        assert "X-Powered-By" not in descriptor.headers

    async def test_method_shown(self) -> None:
        app = App().get("/ping", lambda req, res: res.text("pong"))
        descriptor = await TestClient(app).delete("/ping")
        assert descriptor.body == "Cannot DELETE '/ping'."


class TestMissingResponse:
    async def test_handler_sends_nothing(self) -> None:
        app = App().get("/silent", lambda req, res: None)
        descriptor = await TestClient(app).get("/silent")
        assert_status(descriptor, 500)
        assert descriptor.body == (
            "Invalid return from route /silent. "
            "Use 'response.empty()' if no response is expected."
        )


class TestSingleResponse:
    async def test_second_response_raises(self) -> None:
        app = App()

        @app.get("/twice")
        def twice(request, response) -> None:
            response.text("first")
            response.text("second")

        with pytest.raises(ResponseAlreadyPrepared):
            await TestClient(app).get("/twice")

    async def test_middleware_then_handler_cannot_both_send(self) -> None:
        calls: list[str] = []
        app = App()
        app.middleware(lambda req, res: res.text("from middleware"))

        @app.get("/x")
        def handler(request, response) -> None:
            calls.append("handler")
            response.text("from handler")

        descriptor = await TestClient(app).get("/x")
        assert descriptor.body == "from middleware"
        assert calls == []


class TestMiddleware:
    async def test_incoming_order_and_short_circuit(self) -> None:
        calls: list[str] = []

        def first(request, response) -> None:
            calls.append("first")

        def second(request, response):
            calls.append("second")
            return Reject(401, "Unauthorized")

        app = App().middleware(incoming=first).middleware(incoming=second)
        app.middleware(incoming=lambda req, res: calls.append("third"))

        @app.get("/secret")
        def secret(request, response) -> None:
            calls.append("handler")
            response.text("secret")

        descriptor = await TestClient(app).get("/secret")
        assert_status(descriptor, 401)
        assert descriptor.body == "Unauthorized"
        assert calls == ["first", "second"]

    async def test_first_middleware_raises(self) -> None:
        calls: list[str] = []
        app = App()

        @app.middleware
        def boom(request, response) -> None:
            raise RuntimeError("middleware failed")

        app.middleware(lambda req, res: calls.append("second"))
        app.get("/x", lambda req, res: calls.append("handler"))

        with pytest.raises(RuntimeError, match="middleware failed"):
            await TestClient(app).get("/x")
        assert calls == []

    async def test_outgoing_sees_response(self) -> None:
        def stamp(request, descriptor) -> None:
            descriptor.headers["x-path"] = request.path
            descriptor.body = descriptor.body.upper()

        app = App().middleware(outgoing=stamp).get("/x", lambda req, res: res.text("hi"))
        descriptor = await TestClient(app).get("/x")
        assert descriptor.body == "HI"
        assert descriptor.headers["x-path"] == "/x"

    async def test_outgoing_runs_after_short_circuit(self) -> None:
        calls: list[str] = []
        app = App()
        app.middleware(
            incoming=lambda req, res: Reject(403),
            outgoing=lambda req, d: calls.append(d.status_code),
        )
        await TestClient(app).get("/x")
        assert calls == [403]

    def test_middleware_requires_a_callable(self) -> None:
        with pytest.raises(ConfigurationError):
            App().middleware()


class TestPoweredBy:
    async def test_default_header(self) -> None:
        app = App().get("/", lambda req, res: res.text("x"))
        assert_header(await TestClient(app).get("/"), "x-powered-by", "Wren")

    async def test_disabled(self) -> None:
        app = App().powered_by_header(False).get("/", lambda req, res: res.text("x"))
        descriptor = await TestClient(app).get("/")
        assert "X-Powered-By" not in descriptor.headers

    async def test_custom_value_preserved(self) -> None:
        def handler(request, response) -> None:
            response.set_headers({"x-powered-by": "Custom"})
            response.text("x")

        app = App().get("/", handler)
        descriptor = await TestClient(app).get("/")
        assert descriptor.headers["x-powered-by"] == "Custom"
        assert "X-Powered-By" not in descriptor.headers


class TestDependencies:
    async def test_retrieve_with_identifier(self) -> None:
        app = App()
        app.inject(Repo("one"), "one")

        @app.get("/repo")
        def handler(request, response) -> None:
            response.text(request.retrieve(Repo, "one").name)

        assert (await TestClient(app).get("/repo")).body == "one"

    async def test_retrieve_without_identifier_fails(self) -> None:
        app = App()
        app.inject(Repo("one"), "one")

        @app.get("/repo")
        def handler(request, response) -> None:
            request.retrieve(Repo)

        with pytest.raises(DependencyNotFound, match="No instance found for 'Repo'"):
            await TestClient(app).get("/repo")

    async def test_registry_cleared_after_invocation(self) -> None:
        app = App()
        seen: list[str] = []

        @app.get("/repo")
        def handler(request, response) -> None:
            try:
                seen.append(request.retrieve(Repo).name)
            except DependencyNotFound:
                seen.append("missing")
            response.empty()

        client = TestClient(app)
        app.inject(Repo("first"))
        await client.get("/repo")
        await client.get("/repo")
        app.inject(Repo("second"))
        await client.get("/repo")
        assert seen == ["first", "missing", "second"]

    async def test_registry_cleared_on_error(self) -> None:
        app = App()

        @app.get("/fail")
        def handler(request, response) -> None:
            raise ValueError("handler failed")

        app.inject(Repo("a"))
        with pytest.raises(ValueError):
            await TestClient(app).get("/fail")
        # The slot is free again, so injecting the same key succeeds.
        app.inject(Repo("b"))

    def test_duplicate_injection(self) -> None:
        app = App().inject(Repo("a"))
        with pytest.raises(DuplicateDependency):
            app.inject(Repo("b"))

    async def test_dependency_key(self) -> None:
        primary = DependencyKey[Repo]("PrimaryRepo")
        app = App().inject(Repo("main"), key=primary)
        app.get("/", lambda req, res: res.text(req.retrieve(primary).name))
        assert (await TestClient(app).get("/")).body == "main"


class TestCompression:
    async def test_gzip_end_to_end(self) -> None:
        app = App().get("/big", lambda req, res: res.text("x" * 1000))
        descriptor = await TestClient(app).get("/big", headers={"Accept-Encoding": "gzip"})
        assert_header(descriptor, "content-encoding", "gzip")
        assert gzip.decompress(descriptor.body) == b"x" * 1000

    async def test_outgoing_sees_uncompressed(self) -> None:
        seen: list = []
        app = App().middleware(outgoing=lambda req, d: seen.append(d.body))
        app.get("/", lambda req, res: res.text("plain"))
        descriptor = await TestClient(app).get("/", headers={"accept-encoding": "br"})
        assert seen == ["plain"]
        assert decoded_body(descriptor) == "plain"

    async def test_no_content_stays_empty(self) -> None:
        app = App().get("/", lambda req, res: res.empty())
        descriptor = await TestClient(app).get("/", headers={"accept-encoding": "gzip"})
        assert_status(descriptor, 204)
        assert descriptor.body == ""
        assert "content-encoding" not in descriptor.headers
        assert "content-length" not in descriptor.headers

    async def test_disabled(self) -> None:
        app = App().compression(False).get("/", lambda req, res: res.text("plain"))
        descriptor = await TestClient(app).get("/", headers={"accept-encoding": "gzip"})
        assert descriptor.body == "plain"

    async def test_levels_mapping(self) -> None:
        app = App().compression(True, {"br": 5, "gzip": 1, "deflate": 9})
        assert app.config.compression_levels.br == 5

    def test_levels_mapping_incomplete(self) -> None:
        with pytest.raises(ConfigurationError):
            App().compression(True, {"br": 5})

    async def test_custom_handler(self) -> None:
        class Reverse:
            encodings = {"rev"}

            def compress(self, data, log, error):
                return data[::-1]

        app = App().compression(Reverse()).get("/", lambda req, res: res.text("abc"))
        descriptor = await TestClient(app).get("/", headers={"accept-encoding": "rev"})
        assert descriptor.body == b"cba"
        assert descriptor.headers["content-encoding"] == "rev"


class TestFinalizeFailure:
    async def test_outgoing_error_becomes_500(self) -> None:
        def broken(request, descriptor) -> None:
            raise KeyError("oops")

        app = App().middleware(outgoing=broken).get("/", lambda req, res: res.text("x"))
        client = TestClient(app)
        descriptor = await client.get("/")
        assert_status(descriptor, 500)
        assert descriptor.body == "Internal Server Error"
        assert "Internal Server Error" in client.errors
        assert any("Failed to finalize response" in line for line in client.errors)

    async def test_render_error_becomes_500(self) -> None:
        def render(path, options):
            raise FileNotFoundError(path)

        app = App().engine("html", render).get("/", lambda req, res: res.render("missing"))
        descriptor = await TestClient(app).get("/")
        assert_status(descriptor, 500)


class TestViews:
    async def test_render_end_to_end(self, tmp_path) -> None:
        views = tmp_path / "views"
        views.mkdir()
        (views / "hello.txt").write_text("Hello, {name}!")

        def render(path, options):
            with open(path) as f:
                return f.read().format(**options)

        from wren.config import AppConfig

        app = App(AppConfig(base_directory=tmp_path)).views("views").engine(".txt", render)
        app.get("/hi/:name", lambda req, res: res.render("hello", {"name": req.params["name"]}))
        descriptor = await TestClient(app).get("/hi/wren")
        assert descriptor.body == "Hello, wren!"
        assert descriptor.headers["content-type"] == "text/html"

    async def test_callback_engine_end_to_end(self) -> None:
        def render(path, options, callback):
            callback(None, f"<p>{options['n']}</p>")

        app = App().engine(["hbs", "handlebars"], render, style="callback")
        app.get("/", lambda req, res: res.render("page.hbs", {"n": 1}))
        assert (await TestClient(app).get("/")).body == "<p>1</p>"

    def test_invalid_engine(self) -> None:
        with pytest.raises(ConfigurationError):
            App().engine("html", "not callable")  # type: ignore[arg-type]

    def test_empty_extension(self) -> None:
        with pytest.raises(ConfigurationError, match="non-empty"):
            App().engine("", lambda p, o: "")


class TestFreeze:
    async def test_routes_frozen_after_first_attach(self) -> None:
        app = App().get("/", lambda req, res: res.text("x"))
        await TestClient(app).get("/")
        with pytest.raises(RuntimeError, match="Cannot modify the app"):
            app.get("/late", lambda req, res: res.text("late"))
        with pytest.raises(RuntimeError):
            app.compression(False)

    async def test_inject_allowed_after_freeze(self) -> None:
        app = App().get("/", lambda req, res: res.text(req.retrieve(Repo).name))
        client = TestClient(app)
        app.inject(Repo("a"))
        await client.get("/")
        app.inject(Repo("b"))
        assert (await client.get("/")).body == "b"

    async def test_deterministic(self) -> None:
        app = App().get("/user/:id", lambda req, res: res.json(req.params))
        client = TestClient(app)
        first = await client.get("/user/1")
        second = await client.get("/user/1")
        assert first.to_dict() == second.to_dict()


class TestAmbient:
    async def test_request_context_var(self) -> None:
        app = App()

        @app.get("/ctx")
        def handler(request, response) -> None:
            response.text(str(get_request() is request))

        assert (await TestClient(app).get("/ctx")).body == "True"
        with pytest.raises(LookupError):
            get_request()

    async def test_logs_forwarded_to_host(self) -> None:
        app = App()

        @app.get("/warn")
        def handler(request, response) -> None:
            logging.getLogger("myfunction").warning("careful")
            response.empty()

        client = TestClient(app)
        await client.get("/warn")
        assert any("careful" in line for line in client.logs)

    async def test_log_forwarding_disabled(self) -> None:
        from wren.config import AppConfig

        app = App(AppConfig(forward_logs=False))

        @app.get("/warn")
        def handler(request, response) -> None:
            logging.getLogger("myfunction").warning("careful")
            response.empty()

        client = TestClient(app)
        await client.get("/warn")
        assert client.logs == []

    async def test_to_dict(self) -> None:
        app = App().powered_by_header(False).get("/", lambda req, res: res.json({"a": 1}))
        result = (await TestClient(app).get("/")).to_dict()
        assert result["statusCode"] == 200
        assert json.loads(result["body"]) == {"a": 1}
        assert result["headers"]["content-type"] == "application/json"

    async def test_call_is_attach(self) -> None:
        app = App().get("/", lambda req, res: res.text("x"))
        context = TestClient(app).build_context("GET", "/")
        assert (await app(context)).body == "x"
