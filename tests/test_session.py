import pytest
import requests

from bundler.errors import AssemblyError, ErrorReason
from bundler.fonts import RemoteFontProvider, StaticFontProvider
from bundler.models import AssemblyOptions, SourceFile
from bundler.session import Session, SessionRegistry


@pytest.fixture
def state():
    return Session(StaticFontProvider(None))


class TestIntake:
    def test_add_and_label(self, state, make_pdf):
        state.add_files("attachment", [("a.pdf", make_pdf(1)), ("b.pdf", make_pdf(2))])
        assert state.labels("attachment") == ["附件1: a.pdf", "附件2: b.pdf"]

    def test_main_replaced(self, state, make_pdf):
        state.add_files("main", [("one.pdf", make_pdf(1))])
        added = state.add_files("main", [("two.pdf", make_pdf(1))])
        assert [f.name for f in added] == ["two.pdf"]
        assert state.labels("main") == ["two.pdf"]

    def test_bad_upload_adds_nothing(self, state, make_pdf):
        with pytest.raises(AssemblyError):
            state.add_files("evidence", [("ok.pdf", make_pdf(1)), ("bad.pdf", b"junk")])
        assert state.group("evidence").files == []

    def test_remove_renumbers(self, state, make_pdf):
        first, _ = state.add_files("evidence", [("a.pdf", make_pdf(1)), ("b.pdf", make_pdf(1))])
        assert state.remove_file("evidence", first.id)
        assert state.labels("evidence") == ["證物1: b.pdf"]
        assert not state.remove_file("evidence", "nope")

    def test_unknown_group(self, state):
        with pytest.raises(KeyError):
            state.group("appendix")

    def test_configure_group(self, state, make_pdf):
        state.add_files("attachment", [("a.pdf", make_pdf(1))])
        state.configure_group("attachment", label_prefix=" 附表 ", start_index=5)
        assert state.labels("attachment") == ["附表5: a.pdf"]

    @pytest.mark.parametrize(
        "kwargs, error",
        [
            ({"label_prefix": "  "}, ValueError),
            ({"label_prefix": 7}, TypeError),
            ({"start_index": 0}, ValueError),
            ({"start_index": 2.7}, TypeError),
            ({"start_index": "3"}, TypeError),
            ({"start_index": True}, TypeError),
        ],
    )
    def test_configure_group_rejects_invalid(self, state, kwargs, error):
        with pytest.raises(error):
            state.configure_group("evidence", **kwargs)
        assert state.group("evidence").start_index == 1

    def test_main_cannot_be_configured(self, state):
        with pytest.raises(ValueError):
            state.configure_group("main", label_prefix="x")


class TestAssembly:
    def test_assemble_stores_output(self, state, make_pdf):
        state.add_files("main", [("m.pdf", make_pdf(2))])
        state.add_files("attachment", [("a.pdf", make_pdf(1))])
        result = state.assemble(AssemblyOptions(font_size=12))

        assert result.page_count == 4
        assert state.output is result
        assert state.options.font_size == 12

    def test_failure_clears_previous_output(self, state, make_pdf):
        state.add_files("main", [("m.pdf", make_pdf(2))])
        state.assemble()
        state.group("evidence").files.append(SourceFile(b"junk", "bad.pdf"))

        with pytest.raises(AssemblyError) as info:
            state.assemble()
        assert info.value.reason == ErrorReason.MALFORMED_SOURCE
        assert state.output is None

    def test_empty_session(self, state):
        with pytest.raises(AssemblyError) as info:
            state.assemble()
        assert info.value.reason == ErrorReason.EMPTY_INPUT

    def test_required_font(self, make_pdf):
        state = Session(StaticFontProvider(None), require_font=True)
        state.add_files("evidence", [("e.pdf", make_pdf(1))])
        with pytest.raises(AssemblyError) as info:
            state.assemble()
        assert info.value.reason == ErrorReason.FONT_UNAVAILABLE

    def test_font_status(self):
        assert Session(StaticFontProvider(None)).font_status() == "fallback"
        assert Session(StaticFontProvider(b"font")).font_status() == "embedded"

    def test_failed_font_fetch_is_not_repeated(self, make_pdf, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append(url)
            raise requests.ConnectionError("offline")

        monkeypatch.setattr("bundler.fonts.requests.get", fake_get)
        state = Session(RemoteFontProvider("https://fonts.example/font.ttf"), fallback_font="helv")
        state.add_files("attachment", [("a.pdf", make_pdf(1))])

        state.describe()
        state.describe()
        state.assemble()
        assert len(calls) == 1

        assert state.reload_font() == "fallback"
        assert len(calls) == 2

    def test_reload_font_without_refresh(self):
        assert Session(StaticFontProvider(b"font")).reload_font() == "embedded"


class TestRegistry:
    def test_new_id_for_unknown_session(self):
        registry = SessionRegistry(StaticFontProvider(None))
        sid, first = registry.get(None)
        same_sid, same = registry.get(sid)
        other_sid, other = registry.get("stale")

        assert same_sid == sid and same is first
        assert other_sid != "stale" and other is not first
        assert len(registry) == 2

    def test_drop(self):
        registry = SessionRegistry(StaticFontProvider(None))
        sid, _ = registry.get(None)
        registry.drop(sid)
        assert len(registry) == 0

    def test_drop_unknown(self):
        registry = SessionRegistry(StaticFontProvider(None))
        assert not registry.drop("missing")
        assert not registry.drop(None)

    def test_idle_sessions_are_evicted(self):
        now = [0.0]
        registry = SessionRegistry(StaticFontProvider(None), max_idle=60, clock=lambda: now[0])
        idle_sid, _ = registry.get(None)
        busy_sid, busy = registry.get(None)

        now[0] = 50
        registry.get(busy_sid)
        now[0] = 100
        sid, state = registry.get(busy_sid)

        assert sid == busy_sid and state is busy
        assert len(registry) == 1

        fresh_sid, _ = registry.get(idle_sid)
        assert fresh_sid != idle_sid
