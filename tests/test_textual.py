"""Tests for galvanize.textual: Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from galvanize import StateGraph
from galvanize import textual as gtx


class _MockApp:
    """Minimal mock matching the Textual App interface gtx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


def _graph():
    return StateGraph(defaults={"A": 1}, derivers={"B": lambda s: s["A"] * 2})


class TestWatch:
    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        g = _graph()
        effects = []
        gtx.watch(app, g, "B", lambda graph, key: effects.append(graph.state[key]))
        g.push({"A": 2})
        assert effects == []

    def test_skips_during_pause(self):
        app = _MockApp()
        g = _graph()
        effects = []
        gtx.watch(app, g, "B", lambda graph, key: effects.append(graph.state[key]))
        with gtx.pause(app):
            g.push({"A": 2})
        assert effects == []

    def test_fires_when_safe(self):
        app = _MockApp()
        g = _graph()
        effects = []
        gtx.watch(app, g, "B", lambda graph, key: effects.append(graph.state[key]))
        g.push({"A": 2})
        assert effects == [4]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        g = _graph()

        def _raise_nomatch(graph, key):
            raise NoMatches("StatusFooter")

        unwatch = gtx.watch(app, g, "B", _raise_nomatch)
        g.push({"A": 2})
        unwatch()

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate normally."""
        app = _MockApp()
        g = _graph()

        def _raise_value_error(graph, key):
            raise ValueError("boom")

        gtx.watch(app, g, "B", _raise_value_error)
        with pytest.raises(ValueError, match="boom"):
            g.push({"A": 2})

    def test_unwatch_stops_effects(self):
        app = _MockApp()
        g = _graph()
        effects = []
        unwatch = gtx.watch(app, g, "B", lambda graph, key: effects.append(graph.state[key]))
        g.push({"A": 2})
        unwatch()
        g.push({"A": 3})
        assert effects == [4]

    def test_thread_marshal(self):
        """Changes pushed from a background thread use call_from_thread."""
        app = _MockApp()
        g = _graph()
        effects = []
        gtx.watch(app, g, "B", lambda graph, key: effects.append(graph.state[key]))

        t = threading.Thread(target=lambda: g.push({"A": 5}))
        t.start()
        t.join()

        assert effects == [10]
        assert len(app._call_from_thread_log) == 1


class TestWatchAll:
    def test_fires_for_every_change(self):
        app = _MockApp()
        g = StateGraph(derivers={"B": lambda s: s["A"], "C": lambda s: s["B"]})
        keys = []
        gtx.watch_all(app, g, lambda graph, key: keys.append(key))
        g.push({"A": 1})
        assert keys == ["B", "C"]

    def test_skips_during_pause(self):
        app = _MockApp()
        g = _graph()
        keys = []
        gtx.watch_all(app, g, lambda graph, key: keys.append(key))
        with gtx.pause(app):
            g.push({"A": 2})
        assert keys == []


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert gtx.is_safe(app)

        with pytest.raises(RuntimeError):
            with gtx.pause(app):
                assert not gtx.is_safe(app)
                raise RuntimeError("oops")

        assert gtx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        app = _MockApp()
        attrs_before = set(vars(app))
        with gtx.pause(app):
            attrs_during = set(vars(app))
        assert attrs_before == attrs_during
        assert attrs_before == set(vars(app))

    def test_multiple_apps_independent(self):
        app_a = _MockApp()
        app_b = _MockApp()
        with gtx.pause(app_a):
            assert not gtx.is_safe(app_a)
            assert gtx.is_safe(app_b)
