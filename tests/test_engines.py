"""Tests for wren.templating.engines — callback and awaitable view engines."""

import pytest

from wren.errors import ConfigurationError
from wren.templating.engines import (
    EngineStyle,
    ViewEngine,
    awaitable_engine,
    callback_engine,
    coerce_engine,
    kida_engine,
    normalize_extensions,
)


class TestCallbackEngine:
    async def test_content(self) -> None:
        def render(path, options, callback):
            callback(None, f"{path}:{options['name']}")

        engine = callback_engine(render)
        assert await engine.render("views/a.hbs", {"name": "x"}) == "views/a.hbs:x"

    async def test_error_raised(self) -> None:
        def render(path, options, callback):
            callback(ValueError("bad template"))

        with pytest.raises(ValueError, match="bad template"):
            await callback_engine(render).render("a", {})

    async def test_string_error_raised(self) -> None:
        def render(path, options, callback):
            callback("template missing")

        with pytest.raises(RuntimeError, match="template missing"):
            await callback_engine(render).render("a", {})

    async def test_first_callback_wins(self) -> None:
        def render(path, options, callback):
            callback(None, "first")
            callback(None, "second")

        assert await callback_engine(render).render("a", {}) == "first"


class TestAwaitableEngine:
    async def test_sync_function(self) -> None:
        engine = awaitable_engine(lambda path, options: "sync")
        assert await engine.render("a", {}) == "sync"

    async def test_async_function(self) -> None:
        async def render(path, options):
            return "async"

        assert await awaitable_engine(render).render("a", {}) == "async"


class TestCoerceEngine:
    def test_plain_callable_defaults_to_awaitable(self) -> None:
        engine = coerce_engine(lambda path, options: "")
        assert engine.style is EngineStyle.AWAITABLE

    def test_style_by_name(self) -> None:
        engine = coerce_engine(lambda path, options, callback: None, "callback")
        assert engine.style is EngineStyle.CALLBACK

    def test_view_engine_passes_through(self) -> None:
        engine = ViewEngine(lambda p, o: "")
        assert coerce_engine(engine) is engine

    def test_style_conflict(self) -> None:
        engine = awaitable_engine(lambda p, o: "")
        with pytest.raises(ConfigurationError, match="conflict"):
            coerce_engine(engine, EngineStyle.CALLBACK)

    def test_not_callable(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid engine"):
            coerce_engine("handlebars")

    def test_unknown_style(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid engine style"):
            coerce_engine(lambda p, o: "", "promise")


class TestNormalizeExtensions:
    def test_single(self) -> None:
        assert normalize_extensions("html") == ["html"]

    def test_many_with_dots(self) -> None:
        assert normalize_extensions([".hbs", "handlebars"]) == ["hbs", "handlebars"]

    @pytest.mark.parametrize("ext", ["", "  ", [], ["html", ""]])
    def test_invalid(self, ext) -> None:
        with pytest.raises(ConfigurationError, match="non-empty string"):
            normalize_extensions(ext)


class TestKidaEngine:
    async def test_renders_template(self, tmp_path) -> None:
        pytest.importorskip("kida")
        (tmp_path / "index.html").write_text("<h1>{{ title }}</h1>")

        engine = kida_engine()
        html = await engine.render(str(tmp_path / "index.html"), {"title": "Home", "settings": {}})
        assert html == "<h1>Home</h1>"

    async def test_autoescape(self, tmp_path) -> None:
        pytest.importorskip("kida")
        (tmp_path / "page.html").write_text("{{ value }}")

        html = await kida_engine().render(str(tmp_path / "page.html"), {"value": "<b>"})
        assert "<b>" not in html
