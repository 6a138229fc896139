"""Shared fixtures and archive builders for the secureapk test suite."""

import zipfile
from pathlib import Path

import pytest

from secureapk.core.checks import CheckContext
from secureapk.core.manifest import ManifestDocument
from secureapk.utils.config import Settings

INSECURE_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package="com.example.shop"
    android:versionName="1.4.2">
    <uses-sdk android:minSdkVersion="21" android:targetSdkVersion="33" />
    <uses-permission android:name="android.permission.INTERNET" />
    <uses-permission android:name="android.permission.CAMERA" />
    <uses-permission android:name="android.permission.INTERNET" />
    <application
        android:label="Shop"
        android:debuggable="true"
        android:allowBackup="true">
        <activity android:name=".MainActivity" android:exported="true" />
    </application>
</manifest>
"""

SECURE_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package="com.example.vault"
    android:versionName="2.0">
    <uses-sdk android:targetSdkVersion="34" />
    <uses-permission android:name="android.permission.INTERNET" />
    <application android:label="Vault" android:allowBackup="false">
        <activity android:name=".MainActivity" android:exported="false" />
    </application>
</manifest>
"""

UNSAFE_WEBVIEW_JAVA = """package com.example.shop;

import android.webkit.WebView;

public class BrowserActivity {
    void setup(WebView webView) {
        webView.getSettings().setJavaScriptEnabled(true);
    }
}
"""

PREMIUM_JAVA = """package com.example.shop;

public class Gate {
    boolean canExport(Account account) {
        if (account.isPremium()) {
            return true;
        }
        return false;
    }
}
"""


def create_test_archive(path: Path, files: dict[str, str | bytes]) -> Path:
    """Write a zip archive containing files (name -> text or bytes)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return path


def make_extracted_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Lay files out on disk as if extracted from an archive."""
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


def make_context(root: Path, files: dict[str, str | bytes]) -> CheckContext:
    """Build a CheckContext over a tree, parsing the manifest if present."""
    make_extracted_tree(root, files)
    manifest_text = files.get("AndroidManifest.xml")
    manifest = (
        ManifestDocument.from_text(manifest_text)
        if isinstance(manifest_text, str)
        else None
    )
    return CheckContext(root=root, manifest=manifest)


@pytest.fixture
def settings(tmp_path):
    """Settings confined to tmp_path."""
    return Settings(
        output_dir=tmp_path / "fixed_apks",
        scratch_dir=tmp_path / "scratch",
        keystore_dir=tmp_path / "keys",
        max_workers=4,
    )


@pytest.fixture
def insecure_apk(tmp_path):
    return create_test_archive(
        tmp_path / "shop.apk",
        {
            "AndroidManifest.xml": INSECURE_MANIFEST,
            "sources/com/example/shop/BrowserActivity.java": UNSAFE_WEBVIEW_JAVA,
            "sources/com/example/shop/Gate.java": PREMIUM_JAVA,
            "res/values/strings.xml": "<resources />",
            "classes.dex": b"dex\n035\x00" + bytes(range(32)),
        },
    )


@pytest.fixture
def secure_apk(tmp_path):
    return create_test_archive(
        tmp_path / "vault.apk",
        {
            "AndroidManifest.xml": SECURE_MANIFEST,
            "classes.dex": b"dex\n035\x00",
        },
    )


@pytest.fixture
def no_signing_tools(monkeypatch):
    """Make every external signing tool look uninstalled."""
    from secureapk.core import signer
    from secureapk.exceptions import ToolNotFoundError

    def missing(name):
        raise ToolNotFoundError(name)

    monkeypatch.setattr(signer, "find_build_tool", missing)
    monkeypatch.setattr(signer, "find_jdk_tool", missing)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's ~/.secureapk/config.json and env out of every test."""
    from secureapk.utils.config import ENV_OVERRIDES, reload_config

    monkeypatch.setenv("SECUREAPK_CONFIG", str(tmp_path / "config.json"))
    for env_var in ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    reload_config()
    yield
    reload_config()
