import importlib.util
import itertools
from pathlib import Path

import pytest

_module_ids = itertools.count()


class FakeClock:
    """Manually advanced clock with a fixed memory reading."""

    def __init__(self, start: float = 0.0, memory: int = 1024):
        self.t = float(start)
        self.memory = memory

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> float:
        self.t += dt
        return self.t

    def peak_memory(self) -> int:
        return self.memory


def load_module(path: Path):
    """Import a source file under a unique module name."""
    name = f"_wppa_test_mod_{next(_module_ids)}"
    spec = importlib.util.spec_from_file_location(name, str(path))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


HANDLER_SOURCE = '''
def handler(*args):
    return args[0] if args else None


def run_query_end(log):
    return log.on_query_end()
'''


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wp_tree(tmp_path):
    """
    Minimal install tree:
        wp/                      core root
        wp/wp-includes/load.py
        wp/wp-content/plugins/akismet/akismet.php   (with Plugin Name header)
        wp/wp-content/plugins/akismet/lib.py
        wp/wp-content/plugins/slow-seo/main.py
        wp/wp-content/themes/twenty/functions.py
    """
    core = tmp_path / "wp"
    plugins = core / "wp-content" / "plugins"
    themes = core / "wp-content" / "themes"

    (core / "wp-includes").mkdir(parents=True)
    (plugins / "akismet").mkdir(parents=True)
    (plugins / "slow-seo").mkdir(parents=True)
    (themes / "twenty").mkdir(parents=True)

    (core / "wp-includes" / "load.py").write_text(HANDLER_SOURCE)
    (plugins / "akismet" / "akismet.php").write_text(
        "<?php\n/**\n * Plugin Name: Akismet Anti-Spam\n * Version: 5.0\n */\n"
    )
    (plugins / "akismet" / "lib.py").write_text(HANDLER_SOURCE)
    (plugins / "slow-seo" / "main.py").write_text(HANDLER_SOURCE)
    (themes / "twenty" / "functions.py").write_text(HANDLER_SOURCE)

    return {
        "core": core,
        "plugins": plugins,
        "themes": themes,
        "akismet": load_module(plugins / "akismet" / "lib.py"),
        "seo": load_module(plugins / "slow-seo" / "main.py"),
        "theme": load_module(themes / "twenty" / "functions.py"),
        "core_mod": load_module(core / "wp-includes" / "load.py"),
    }
