"""
Tests for Plugin System.

This test suite covers:
1. Manifest parsing (valid/invalid cases)
2. PluginBase initialization and identity
3. Lifecycle hooks through the facade
4. Config and resource helpers
5. Command lookup and dispatch
6. Plugin loading from directories and zip archives
"""

import json
import sys
import tempfile
import textwrap
import zipfile
from pathlib import Path

import pytest
from loguru import logger

from plugbase import (
    CommandExecutor,
    LifecycleError,
    LifecycleState,
    LoaderError,
    LocalHost,
    PluginBase,
    PluginCommand,
    PluginDescription,
    PluginLoader,
)
from plugbase.plugin.description import (
    ManifestError,
    ValidationError,
    load_description,
    parse_manifest,
)
from plugbase.plugin.loader import ArchiveSourceLoader
from plugbase.plugin.resources import open_package

PLUGIN_SOURCE = textwrap.dedent(
    """
    from plugbase import PluginBase, PluginCommand


    class Greeter(PluginBase):
        events = []

        def on_load(self):
            Greeter.events.append("load")

        def on_enable(self):
            Greeter.events.append("enable")
            self.save_default_config()
            self.host.register_command(self, PluginCommand("greet", self))

        def on_disable(self):
            Greeter.events.append("disable")

        def on_command(self, sender, command, label, args):
            sender.append(f"{self.config.get('greeting')} {' '.join(args)}")
            return True
    """
)

MANIFEST = {
    "name": "Greeter",
    "version": "1.2.3",
    "main": "plugin.py",
    "author": "Test Author",
    "description": "Says hello",
}


def write_manifest(directory: Path, data: dict) -> Path:
    path = directory / "manifest.json"
    with open(path, "w") as f:
        json.dump(data, f)
    return path


def make_plugin_dir(root: Path, manifest: dict = MANIFEST, source: str = PLUGIN_SOURCE) -> Path:
    plugin_dir = root / manifest["name"]
    (plugin_dir / "resources").mkdir(parents=True)
    write_manifest(plugin_dir, manifest)
    (plugin_dir / manifest["main"]).write_text(source)
    (plugin_dir / "resources" / "config.toml").write_text('greeting = "Hello"\n')
    (plugin_dir / "resources" / "motd.txt").write_text("welcome\n")
    return plugin_dir


def make_plugin_zip(root: Path, manifest: dict = MANIFEST, source: str = PLUGIN_SOURCE) -> Path:
    archive = root / f"{manifest['name']}.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("manifest.json", json.dumps(manifest))
        zf.writestr(manifest["main"], source)
        zf.writestr("resources/config.toml", 'greeting = "Hello"\n')
        zf.writestr("resources/motd.txt", "welcome\n")
    return archive


class RecordingPlugin(PluginBase):
    def __init__(self):
        super().__init__()
        self.events: list[tuple[str, bool]] = []

    def on_enable(self):
        self.events.append(("enable", self.is_enabled()))

    def on_disable(self):
        self.events.append(("disable", self.is_enabled()))


def make_plugin(root: Path, plugin: PluginBase | None = None, host: LocalHost | None = None):
    plugin = plugin or RecordingPlugin()
    host = host or LocalHost()
    package = make_plugin_dir(root)
    description = load_description(package)
    loader = PluginLoader(host, root / "data")
    plugin.initialize(loader, host, description, root / "data" / description.name, package)
    return plugin, host, loader


class TestManifestParsing:
    """Test manifest parsing and validation."""

    def test_parse_valid_manifest(self):
        """Should parse a valid manifest successfully."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_manifest(
                Path(tmpdir), {**MANIFEST, "class": "Greeter", "prefix": "Hi"}
            )

            description = parse_manifest(path)

            assert description.name == "Greeter"
            assert description.version == "1.2.3"
            assert description.main == "plugin.py"
            assert description.main_class == "Greeter"
            assert description.author == "Test Author"
            assert description.prefix == "Hi"
            assert description.full_name == "Greeter v1.2.3"

    def test_parse_minimal_manifest(self):
        """Should parse manifest with only required fields."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_manifest(
                Path(tmpdir), {"name": "minimal", "version": "1.0.0", "main": "plugin.py"}
            )

            description = parse_manifest(path)

            assert description.main_class == ""
            assert description.description == ""
            assert description.prefix == ""

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"name": "x"}, "Missing required field"),
            ({"name": "bad name!", "version": "1.0.0", "main": "p.py"}, "Invalid plugin name"),
            ({"name": "x", "version": "1.0", "main": "p.py"}, "Invalid version"),
            ({"name": "x", "version": "1.0.0", "main": "p.js"}, "Invalid main entry point"),
            ({"name": "x", "version": "1.0.0", "main": "p.py", "author": 3}, "'author' field"),
            ({"name": "x", "version": "1.0.0", "main": "p.py", "class": "1Bad"}, "Invalid main class"),
        ],
    )
    def test_parse_invalid_manifest(self, data, message):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_manifest(Path(tmpdir), data)

            with pytest.raises(ValidationError, match=message):
                parse_manifest(path)

    def test_parse_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ManifestError, match="not found"):
                parse_manifest(Path(tmpdir) / "manifest.json")

    def test_parse_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "manifest.json"
            path.write_text("{not json")

            with pytest.raises(ManifestError, match="Failed to parse"):
                parse_manifest(path)

    def test_load_description_from_zip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            archive = make_plugin_zip(Path(tmpdir))

            with open_package(archive) as root:
                description = load_description(root)

            assert description.full_name == "Greeter v1.2.3"


class TestPluginInitialization:
    """Test the one-time binding step."""

    def test_uninitialized_plugin(self):
        plugin = RecordingPlugin()

        assert not plugin.is_initialized()
        assert plugin.state == LifecycleState.UNINITIALIZED
        with pytest.raises(LifecycleError):
            plugin.name

    def test_initialize_binds_identity(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin, host, loader = make_plugin(root)

            assert plugin.is_initialized()
            assert plugin.is_disabled()
            assert plugin.name == "Greeter"
            assert plugin.full_name == "Greeter v1.2.3"
            assert plugin.data_folder == root / "data" / "Greeter"
            assert plugin.identity.config_file == root / "data" / "Greeter" / "config.toml"
            assert plugin.package_root == root / "Greeter"
            assert plugin.description.author == "Test Author"
            assert plugin.host is host
            assert plugin.loader is loader
            assert not plugin.is_archive()

    def test_initialize_twice_keeps_first_arguments(self):
        """A second initialize() should not rebind anything."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin, host, loader = make_plugin(root)
            first_logger = plugin.logger

            other = PluginDescription(name="Other", version="9.9.9", main="x.py")
            plugin.initialize(PluginLoader(LocalHost(), root), LocalHost(), other, root / "elsewhere", root)

            assert plugin.name == "Greeter"
            assert plugin.data_folder == root / "data" / "Greeter"
            assert plugin.host is host
            assert plugin.loader is loader
            assert plugin.logger is first_logger


class TestPluginLifecycle:
    """Test enable/disable through the facade."""

    def test_hooks_fire_on_edges(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))

            plugin.set_enabled(True)
            plugin.set_enabled(True)
            plugin.set_enabled(False)
            plugin.set_enabled(False)
            plugin.set_enabled(True)

            assert plugin.events == [("enable", True), ("disable", False), ("enable", True)]
            assert plugin.state == LifecycleState.ENABLED

    def test_default_hooks_are_noops(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir), plugin=PluginBase())

            plugin.on_load()
            plugin.set_enabled(True)
            plugin.set_enabled(False)

            assert plugin.is_disabled()

    def test_enable_before_initialize_raises(self):
        with pytest.raises(LifecycleError):
            RecordingPlugin().set_enabled(True)

    def test_hook_error_propagates(self):
        class Failing(PluginBase):
            def on_enable(self):
                raise RuntimeError("refusing to start")

        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir), plugin=Failing())

            with pytest.raises(RuntimeError, match="refusing to start"):
                plugin.set_enabled(True)

            assert plugin.is_enabled()


class TestPluginConfigAndResources:
    """Test config and resource helpers on the facade."""

    def test_config_falls_back_to_bundled_default(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))

            assert plugin.config.get("greeting") == "Hello"
            assert plugin.config.stored == {}

    def test_save_default_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))

            assert plugin.save_default_config() is True
            assert plugin.save_default_config() is False

            assert plugin.identity.config_file.read_text() == 'greeting = "Hello"\n'

    def test_save_and_reload_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))
            plugin.config.set("greeting", "Howdy")

            assert plugin.save_config() is True
            plugin.config.set("greeting", "unsaved")

            assert plugin.reload_config().get("greeting") == "Howdy"

    def test_save_config_failure_logged_as_critical(self):
        """A failed save should be logged at CRITICAL and not raise."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin, _, _ = make_plugin(root)
            (root / "data").mkdir()
            plugin.data_folder.write_text("a file, not a folder")
            plugin.config.set("greeting", "Howdy")

            records = []
            sink_id = logger.add(lambda m: records.append(m.record), level="CRITICAL")
            try:
                assert plugin.save_config() is False
            finally:
                logger.remove(sink_id)

            assert len(records) == 1
            assert records[0]["level"].name == "CRITICAL"
            assert "Could not save config to" in records[0]["message"]
            assert records[0]["extra"]["plugin"] == "Greeter"

    def test_save_config_with_corrupt_stored_file(self):
        """An unreadable stored config should fail the save, not raise."""
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))
            plugin.data_folder.mkdir(parents=True)
            plugin.identity.config_file.write_text("not = = toml")

            records = []
            sink_id = logger.add(lambda m: records.append(m.record), level="CRITICAL")
            try:
                assert plugin.save_config() is False
            finally:
                logger.remove(sink_id)

            assert [r["level"].name for r in records] == ["CRITICAL"]
            assert plugin.identity.config_file.read_text() == "not = = toml"

    def test_resources(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))

            handle = plugin.get_resource("motd.txt")
            with handle as stream:
                assert stream.read() == b"welcome\n"

            assert plugin.get_resource("missing.txt") is None
            assert sorted(plugin.get_resources()) == ["config.toml", "motd.txt"]

    def test_save_resource_into_data_folder(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, _, _ = make_plugin(Path(tmpdir))

            assert plugin.save_resource("motd.txt") is True
            assert plugin.save_resource("motd.txt") is False
            (plugin.data_folder / "motd.txt").write_text("edited")
            assert plugin.save_resource("motd.txt", replace=True) is True

            assert (plugin.data_folder / "motd.txt").read_text() == "welcome\n"


class TestCommands:
    """Test command lookup and dispatch."""

    def test_default_on_command_is_unhandled(self):
        plugin = PluginBase()

        assert plugin.on_command(None, PluginCommand("x", plugin), "x", []) is False
        assert CommandExecutor().on_command(None, PluginCommand("x", None), "x", []) is False

    def test_get_command_by_bare_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, host, _ = make_plugin(Path(tmpdir))
            command = PluginCommand("greet", plugin)
            host.register_command(plugin, command)

            assert plugin.get_command("greet") is command

    def test_get_command_falls_back_to_qualified_name(self):
        """When another plugin owns the bare name, the qualified one is used."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            host = LocalHost()
            owner, _, _ = make_plugin(root / "a", host=host)
            other = RecordingPlugin()
            other_package = make_plugin_dir(root / "b", {**MANIFEST, "name": "Other"})
            other.initialize(
                PluginLoader(host, root / "data"),
                host,
                load_description(other_package),
                root / "data" / "Other",
                other_package,
            )

            theirs = PluginCommand("greet", other)
            ours = PluginCommand("greet", owner)
            assert host.register_command(other, theirs) is True
            assert host.register_command(owner, ours) is False

            assert host.get_plugin_command("greet") is theirs
            assert host.get_plugin_command("greeter:greet") is ours
            assert owner.get_command("greet") is ours
            assert other.get_command("greet") is theirs

    def test_get_command_not_owned(self):
        """Commands owned by someone else should not be returned."""
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, host, _ = make_plugin(Path(tmpdir))
            host._commands["greet"] = PluginCommand("greet", object())
            host._commands["greeter:greet"] = PluginCommand("greet", object())

            assert plugin.get_command("greet") is None
            assert plugin.get_command("missing") is None

    def test_dispatch_delegates_to_executor(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, host, _ = make_plugin(Path(tmpdir))
            host.register_command(plugin, PluginCommand("noop", plugin, aliases=["n"]))

            assert host.dispatch([], "noop") is False
            assert host.dispatch([], "n") is False
            assert host.dispatch([], "greeter:n") is False
            assert host.dispatch([], "unknown arg") is False
            assert host.dispatch([], "") is False

    def test_unregister_plugin_commands(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin, host, _ = make_plugin(Path(tmpdir))
            host.register_command(plugin, PluginCommand("greet", plugin))

            host.unregister_plugin_commands(plugin)

            assert host.get_plugin_command("greet") is None
            assert host.get_plugin_command("greeter:greet") is None


class TestPluginLoader:
    """Test loading plugin packages."""

    @pytest.fixture(params=["directory", "zip"])
    def package(self, request):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            if request.param == "directory":
                yield root, make_plugin_dir(root / "plugins")
            else:
                (root / "plugins").mkdir()
                yield root, make_plugin_zip(root / "plugins")

    def test_load_enable_dispatch_disable(self, package):
        """Full lifecycle of a loaded plugin."""
        root, path = package
        host = LocalHost()
        loader = PluginLoader(host, root / "data")

        assert loader.can_load(path)
        plugin = loader.load_plugin(path)
        events = type(plugin).events

        assert plugin.name == "Greeter"
        assert plugin.is_initialized()
        assert plugin.is_disabled()
        assert plugin.is_archive() == (path.suffix == ".zip")
        assert events == ["load"]

        loader.enable_plugin(plugin)
        loader.enable_plugin(plugin)
        assert events == ["load", "enable"]
        assert (root / "data" / "Greeter" / "config.toml").is_file()

        output = []
        assert host.dispatch(output, "greet world") is True
        assert output == ["Hello world"]

        loader.disable_plugin(plugin)
        loader.disable_plugin(plugin)
        assert events == ["load", "enable", "disable"]

        loader.unload_module("Greeter")
        assert not loader.is_module_cached("Greeter")

    def test_entry_module_has_import_loader(self, package):
        """The entry module should be imported through a real loader."""
        root, path = package
        loader = PluginLoader(LocalHost(), root / "data")

        plugin = loader.load_plugin(path)
        module = sys.modules[type(plugin).__module__]

        assert module.__spec__.loader is module.__loader__
        assert module.__file__ == str(path / "plugin.py")
        if path.suffix == ".zip":
            assert isinstance(module.__loader__, ArchiveSourceLoader)
        else:
            assert not isinstance(module.__loader__, ArchiveSourceLoader)
        loader.unload_module("Greeter")

    def test_reload_from_same_path_reuses_module(self, package):
        root, path = package
        loader = PluginLoader(LocalHost(), root / "data")

        first = loader.load_plugin(path)
        second = loader.load_plugin(path)

        assert type(first) is type(second)
        assert first is not second
        loader.unload_module("Greeter")

    def test_same_name_from_other_path_rejected(self, package):
        """A second package claiming a cached name should not reuse its module."""
        root, path = package
        loader = PluginLoader(LocalHost(), root / "data")
        loader.load_plugin(path)
        other = make_plugin_dir(root / "elsewhere")

        with pytest.raises(LoaderError, match="already loaded from"):
            loader.load_plugin(other)

        loader.unload_module("Greeter")
        assert type(loader.load_plugin(other)).__name__ == "Greeter"
        loader.unload_module("Greeter")

    def test_archive_closed_after_load(self, monkeypatch):
        """Loading and enabling a zip plugin should leave no archive open."""
        opened = []
        original_init = zipfile.ZipFile.__init__

        def recording_init(self, *args, **kwargs):
            original_init(self, *args, **kwargs)
            opened.append(self)

        monkeypatch.setattr(zipfile.ZipFile, "__init__", recording_init)
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = make_plugin_zip(root)
            loader = PluginLoader(LocalHost(), root / "data")
            opened.clear()

            assert loader.can_load(path)
            assert loader.get_description(path) is not None
            plugin = loader.load_plugin(path)
            loader.enable_plugin(plugin)

            assert opened
            assert all(archive.fp is None for archive in opened)
            loader.unload_module("Greeter")

    def test_get_description(self, package):
        _, path = package
        loader = PluginLoader(LocalHost(), Path("unused"))

        description = loader.get_description(path)

        assert description.full_name == "Greeter v1.2.3"

    def test_can_load_rejects_non_plugins(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            loader = PluginLoader(LocalHost(), root / "data")
            (root / "empty").mkdir()
            (root / "file.txt").write_text("x")

            assert not loader.can_load(root / "empty")
            assert not loader.can_load(root / "file.txt")
            assert not loader.can_load(root / "missing")
            assert loader.get_description(root / "empty") is None

    def test_load_missing_package(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            loader = PluginLoader(LocalHost(), Path(tmpdir))

            with pytest.raises(LoaderError, match="not found"):
                loader.load_plugin(Path(tmpdir) / "missing")

    def test_load_with_explicit_class(self):
        source = PLUGIN_SOURCE + "\n\nclass Helper(PluginBase):\n    pass\n"
        manifest = {**MANIFEST, "name": "Explicit", "class": "Helper"}
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = make_plugin_dir(root, manifest, source)

            plugin = PluginLoader(LocalHost(), root / "data").load_plugin(path)

            assert type(plugin).__name__ == "Helper"

    def test_load_ambiguous_class(self):
        source = PLUGIN_SOURCE + "\n\nclass Helper(PluginBase):\n    pass\n"
        manifest = {**MANIFEST, "name": "Ambiguous"}
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = make_plugin_dir(root, manifest, source)

            with pytest.raises(LoaderError, match="exactly one PluginBase subclass"):
                PluginLoader(LocalHost(), root / "data").load_plugin(path)

    def test_load_missing_class(self):
        manifest = {**MANIFEST, "name": "NoClass", "class": "Nope"}
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = make_plugin_dir(root, manifest)

            with pytest.raises(LoaderError, match="Main class Nope"):
                PluginLoader(LocalHost(), root / "data").load_plugin(path)

    def test_load_broken_module(self):
        manifest = {**MANIFEST, "name": "Broken"}
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = make_plugin_dir(root, manifest, "raise ImportError('nope')\n")

            with pytest.raises(LoaderError, match="Failed to load plugin module"):
                PluginLoader(LocalHost(), root / "data").load_plugin(path)

    def test_load_missing_entry_point(self):
        manifest = {**MANIFEST, "name": "NoEntry"}
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = make_plugin_dir(root, manifest)
            (path / "plugin.py").unlink()

            with pytest.raises(LoaderError, match="Entry point not found"):
                PluginLoader(LocalHost(), root / "data").load_plugin(path)
