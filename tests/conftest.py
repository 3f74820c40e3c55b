"""Test configuration for apkweaver."""

import pytest
from pathlib import Path
import tempfile

from apkweaver.core.config import Config, ToolsConfig
from apkweaver.services.process import ProcessOutcome
from apkweaver.services.tools import ToolLocator

TEMPLATE_PACKAGE = "com.openwebgal.demo"


def build_template_tree(root: Path) -> Path:
    """Write a miniature APKEditor decompile of the template APK.

    Args:
        root: Directory to populate (created if missing).

    Returns:
        Path: The populated directory.
    """
    files = {
        "AndroidManifest.xml": (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            '<manifest xmlns:android="http://schemas.android.com/apk/res/android" '
            'android:versionCode="1" android:versionName="1.0" package="com.openwebgal.demo">\n'
            '  <application android:label="@string/app_name">\n'
            '    <activity android:name="com.openwebgal.demo.MainActivity"/>\n'
            "  </application>\n"
            "</manifest>\n"
        ),
        "resources/package_1/res/values/strings.xml": (
            "<resources>\n"
            '  <string name="app_name">WebGAL</string>\n'
            '  <string name="loading">Loading</string>\n'
            "</resources>\n"
        ),
        "resources/package_1/res/mipmap-xxxhdpi/ic_launcher.png": "template-icon",
        "smali/classes/com/openwebgal/demo/MainActivity.smali": (
            ".class public Lcom/openwebgal/demo/MainActivity;\n"
            ".super Landroid/app/Activity;\n"
        ),
        "smali/classes/com/openwebgal/demo/R$string.smali": (
            ".class public final Lcom/openwebgal/demo/R$string;\n"
        ),
        "smali/classes/androidx/core/app/ActivityCompat.smali": (
            ".class public Landroidx/core/app/ActivityCompat;\n"
        ),
        "path-map.json": '{"package": "com.openwebgal.demo"}\n',
        "root/assets/webgal/index.html": "<html>template engine</html>\n",
        "root/META-INF/notes.txt": "com.openwebgal.demo WebGAL\n",
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


class FakeToolRunner:
    """Command runner that imitates APKEditor, zipalign, apksigner and keytool.

    Every call is recorded. A tool can be made to fail by naming its action
    (``decompile``, ``recompile``, ``align``, ``sign``, ``keytool``) in
    ``failures`` together with the exit code to return.
    """

    def __init__(self, failures=None):
        self.failures = dict(failures or {})
        self.calls = []
        self.actions = []
        # Names present in the output directory whenever decompilation starts
        self.listings_at_decompile = []

    @staticmethod
    def action_for(args):
        if "-genkey" in args:
            return "keytool"
        if "sign" in args:
            return "sign"
        if "-jar" in args:
            verb = args[args.index("-jar") + 2]
            return {"d": "decompile", "b": "recompile"}.get(verb, "jar")
        if args[:2] == ["-v", "-p"]:
            return "align"
        return "unknown"

    async def run(self, command, args, description=""):
        args = [str(a) for a in args]
        action = self.action_for(args)
        self.calls.append((str(command), args))
        self.actions.append(action)

        if action in self.failures:
            return ProcessOutcome(
                command=f"{command} {' '.join(args)}",
                exit_code=self.failures[action],
                stderr_lines=[f"{action} exploded"],
            )

        if action == "decompile":
            output = Path(args[args.index("-o") + 1])
            self.listings_at_decompile.append(sorted(p.name for p in output.parent.iterdir()))
            build_template_tree(output)
        elif action == "recompile":
            output = Path(args[args.index("-o") + 1])
            output.write_bytes(b"PK\x03\x04unsigned")
        elif action == "align":
            Path(args[-1]).write_bytes(Path(args[-2]).read_bytes() + b"-aligned")
        elif action == "sign":
            output = Path(args[args.index("--out") + 1])
            output.write_bytes(Path(args[-1]).read_bytes() + b"-signed")
            output.with_name(output.name + ".idsig").write_bytes(b"idsig")
        elif action == "keytool":
            Path(args[args.index("-keystore") + 1]).write_bytes(b"keystore")

        return ProcessOutcome(
            command=f"{command} {' '.join(args)}",
            exit_code=0,
            stdout_lines=[f"{action} ok"],
        )


class FakeProbe:
    """Invocation probe answering from a fixed set of command names."""

    def __init__(self, available=()):
        self.available = set(available)
        self.probed = []

    def __call__(self, command):
        self.probed.append(command)
        return command in self.available


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def template_tree(temp_dir):
    """A decompiled template tree under ``temp_dir/build``."""
    return build_template_tree(temp_dir / "build")


@pytest.fixture
def lib_dir(temp_dir):
    """A bundled-tools directory holding APKEditor and the template APK."""
    lib = temp_dir / "lib"
    lib.mkdir()
    (lib / "APKEditor.jar").write_bytes(b"jar")
    (lib / "webgal-template.apk").write_bytes(b"PK\x03\x04template")
    return lib


@pytest.fixture
def config(lib_dir):
    """Configuration pointing at the test lib directory."""
    return Config(tools=ToolsConfig(lib_path=lib_dir, platform="linux"))


@pytest.fixture
def project_dir(temp_dir):
    """A game project laid out the way the editor stores it.

    The project lives at ``<root>/public/games/Demo`` and the engine template
    at ``<root>/assets/templates/WebGAL_Template``.

    Returns:
        Path: The project directory.
    """
    root = temp_dir / "webgal"
    project = root / "public" / "games" / "Demo"
    (project / "game" / "scene").mkdir(parents=True)
    (project / "game" / "config.txt").write_text(
        "Game_name:Demo;\n"
        "Game_key:abc123;\n"
        "Package_name:com.example.demo;\n"
        "Version_name:1.0;\n"
        "Version_code:1;\n",
        encoding="utf-8",
    )
    (project / "game" / "scene" / "start.txt").write_text("intro:Hello;\n", encoding="utf-8")

    engine = root / "assets" / "templates" / "WebGAL_Template"
    (engine / "game" / "scene").mkdir(parents=True)
    (engine / "game" / "scene" / "stub.txt").write_text("stub", encoding="utf-8")
    (engine / "icons").mkdir()
    (engine / "icons" / "icon.png").write_bytes(b"engine-icon")
    (engine / "assets").mkdir()
    (engine / "assets" / "app.js").write_text("console.log('engine')\n", encoding="utf-8")
    (engine / "index.html").write_text("<html>engine</html>\n", encoding="utf-8")
    (engine / "webgal-serviceworker.js").write_text("self.addEventListener('fetch', () => {})\n", encoding="utf-8")
    return project


@pytest.fixture
def fake_runner():
    """A runner that materializes tool outputs instead of spawning processes."""
    return FakeToolRunner()


@pytest.fixture
def full_probe():
    """Probe reporting java, keytool, zipalign and apksigner as installed."""
    return FakeProbe({"java", "keytool", "zipalign", "apksigner"})


@pytest.fixture
def locator(config, full_probe):
    """Tool locator backed by the fake probe."""
    return ToolLocator(config.tools, probe=full_probe)


@pytest.fixture
def runner_factory():
    """Build a FakeToolRunner with scripted failures, e.g. ``{"sign": 1}``."""
    return FakeToolRunner
