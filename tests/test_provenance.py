import functools

import pytest

from wppa.instrumentation.provenance import (
    CallbackKind,
    PathClassifier,
    ProvenanceCache,
    describe_callback,
    read_manifest_name,
    resolve_source_location,
)


def module_function():
    pass


class Widget:
    def method(self):
        pass

    @staticmethod
    def static():
        pass

    @classmethod
    def klass(cls):
        pass

    def __call__(self):
        pass


def _classifier(wp_tree):
    return PathClassifier(
        plugins_dir=str(wp_tree["plugins"]),
        themes_dir=str(wp_tree["themes"]),
        core_dir=str(wp_tree["core"]),
    )


class TestCallbackKind:
    def test_function(self):
        kind, path, line = resolve_source_location(module_function)
        assert kind is CallbackKind.FUNCTION
        assert path == __file__
        assert line == module_function.__code__.co_firstlineno

    def test_lambda_is_closure(self):
        assert resolve_source_location(lambda: None)[0] is CallbackKind.CLOSURE

    def test_nested_def_is_closure(self):
        def inner():
            pass

        assert resolve_source_location(inner)[0] is CallbackKind.CLOSURE

    def test_bound_method(self):
        assert resolve_source_location(Widget().method)[0] is CallbackKind.METHOD

    def test_static_and_class_methods(self):
        assert resolve_source_location(Widget.static)[0] is CallbackKind.STATIC_METHOD
        assert resolve_source_location(Widget.klass)[0] is CallbackKind.STATIC_METHOD

    def test_invokable_object(self):
        kind, path, _ = resolve_source_location(Widget())
        assert kind is CallbackKind.METHOD
        assert path == __file__

    def test_partial_unwraps(self):
        assert resolve_source_location(functools.partial(module_function))[0] is CallbackKind.FUNCTION

    def test_builtin_is_unknown(self):
        assert resolve_source_location(len) == (CallbackKind.UNKNOWN, None, None)


class TestPathClassifier:
    def test_rule_order(self, wp_tree):
        labels = [r.label for r in _classifier(wp_tree).rules]
        assert labels == ["plugins", "theme", "core"]

    def test_plugin_manifest_name(self, wp_tree):
        c = _classifier(wp_tree)
        assert c.classify(str(wp_tree["plugins"] / "akismet" / "lib.py")) == "Akismet Anti-Spam"

    def test_plugin_without_manifest_uses_slug(self, wp_tree):
        c = _classifier(wp_tree)
        assert c.classify(str(wp_tree["plugins"] / "slow-seo" / "main.py")) == "slow-seo"

    def test_plugins_beat_core(self, wp_tree):
        # plugins live inside the core root; the plugin rule must win
        c = _classifier(wp_tree)
        assert c.classify(str(wp_tree["plugins"] / "slow-seo" / "main.py")) != "core"

    def test_theme_and_core(self, wp_tree):
        c = _classifier(wp_tree)
        assert c.classify(str(wp_tree["themes"] / "twenty" / "functions.py")) == "active theme"
        assert c.classify(str(wp_tree["core"] / "wp-includes" / "load.py")) == "core"

    def test_outside_everything(self, wp_tree, tmp_path):
        c = _classifier(wp_tree)
        assert c.classify(str(tmp_path / "elsewhere.py")) == "unknown"
        assert c.classify(None) == "unknown"

    def test_read_manifest_missing(self, tmp_path):
        assert read_manifest_name(str(tmp_path), "nothing") is None


class TestProvenanceCache:
    def test_resolves_once(self):
        cache = ProvenanceCache()
        calls = []

        def resolve(path):
            calls.append(path)
            return "owner"

        assert cache.get_or_resolve("/a.py", resolve) == "owner"
        assert cache.get_or_resolve("/a.py", resolve) == "owner"
        assert calls == ["/a.py"]
        assert "/a.py" in cache
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0


class TestDescribeCallback:
    def test_plugin_callback(self, wp_tree):
        info = describe_callback(wp_tree["seo"].handler, _classifier(wp_tree), ProvenanceCache())
        assert info.kind is CallbackKind.FUNCTION
        assert info.owning_component == "slow-seo"
        assert info.source_file.endswith("main.py")
        assert info.source_line == 2
        assert info.name == "handler"

    def test_builtin_degrades_to_unknown(self, wp_tree):
        info = describe_callback(print, _classifier(wp_tree), ProvenanceCache())
        assert info.kind is CallbackKind.UNKNOWN
        assert info.owning_component == "unknown"

    def test_classifier_failure_never_raises(self):
        class Broken:
            def classify(self, path):
                raise RuntimeError("boom")

        info = describe_callback(module_function, Broken(), ProvenanceCache())
        assert info.kind is CallbackKind.UNKNOWN
        assert info.owning_component == "unknown"
        assert info.to_wire()["kind"] == "unknown"

    def test_cache_is_consulted(self, wp_tree):
        cache = ProvenanceCache()
        path = str(wp_tree["seo"].handler.__code__.co_filename)
        cache.get_or_resolve(path, lambda p: "pinned")
        info = describe_callback(wp_tree["seo"].handler, _classifier(wp_tree), cache)
        assert info.owning_component == "pinned"
