"""Tests for manifest decoding, parsing and metadata extraction."""

from xml.etree import ElementTree as ET

import pytest

from secureapk.core.manifest import (
    ANDROID_NS,
    AXML_MAGIC,
    ManifestDocument,
    TextXMLDecoder,
    decode_manifest,
    extract_metadata,
    get_attr,
    load_manifest,
    try_load_manifest,
)
from secureapk.exceptions import ManifestMissingError
from secureapk.models.analysis import PackageMetadata
from tests.conftest import INSECURE_MANIFEST

BARE_MANIFEST = """<manifest package="com.example.bare" versionName="3.1"
    targetSdkVersion="30">
    <uses-permission name="android.permission.READ_CONTACTS" />
    <application debuggable="true" />
</manifest>
"""


class TestManifestDocument:
    def test_namespaced_attributes(self):
        doc = ManifestDocument.from_text(INSECURE_MANIFEST)

        assert doc.parsed
        assert doc.package_name == "com.example.shop"
        assert doc.version_name == "1.4.2"
        assert doc.target_sdk == 33
        assert doc.application is not None

    def test_permissions_keep_order_and_duplicates(self):
        doc = ManifestDocument.from_text(INSECURE_MANIFEST)

        assert doc.permissions == [
            "android.permission.INTERNET",
            "android.permission.CAMERA",
            "android.permission.INTERNET",
        ]

    def test_bare_attributes(self):
        doc = ManifestDocument.from_text(BARE_MANIFEST)

        assert doc.version_name == "3.1"
        assert doc.target_sdk == 30
        assert doc.permissions == ["android.permission.READ_CONTACTS"]
        assert [e.tag for e in doc.iter_with_attr("debuggable", "true")] == [
            "application"
        ]

    def test_root_target_sdk_wins_over_uses_sdk(self):
        text = (
            f'<manifest xmlns:android="{ANDROID_NS}" package="p" '
            'android:targetSdkVersion="31">'
            '<uses-sdk android:targetSdkVersion="29" /></manifest>'
        )
        assert ManifestDocument.from_text(text).target_sdk == 31

    def test_non_numeric_target_sdk(self):
        text = (
            f'<manifest xmlns:android="{ANDROID_NS}" package="p">'
            '<uses-sdk android:targetSdkVersion="UpsideDownCake" /></manifest>'
        )
        assert ManifestDocument.from_text(text).target_sdk is None

    def test_sdk23_permissions_included(self):
        text = (
            f'<manifest xmlns:android="{ANDROID_NS}" package="p">'
            '<uses-permission-sdk-23 android:name="android.permission.CAMERA" />'
            "</manifest>"
        )
        assert ManifestDocument.from_text(text).permissions == [
            "android.permission.CAMERA"
        ]

    def test_malformed_xml_keeps_raw_text(self):
        text = '<manifest package="p"><application android:debuggable="true">'
        doc = ManifestDocument.from_text(text)

        assert not doc.parsed
        assert doc.raw_text == text
        assert doc.package_name is None
        assert doc.permissions == []
        assert list(doc.iter_with_attr("debuggable")) == []


class TestGetAttr:
    def test_namespaced_spelling_wins(self):
        element = ET.Element("activity", {f"{{{ANDROID_NS}}}name": "ns", "name": "bare"})
        assert get_attr(element, "name") == "ns"
        assert get_attr(element, "android:name") == "ns"

    def test_literal_prefixed_key(self):
        element = ET.Element("activity", {"android:exported": "true"})
        assert get_attr(element, "exported") == "true"

    def test_missing(self):
        assert get_attr(ET.Element("activity"), "exported") is None


class TestLoadManifest:
    def test_text_manifest(self, tmp_path):
        (tmp_path / "AndroidManifest.xml").write_text(INSECURE_MANIFEST)

        doc = load_manifest(tmp_path)

        assert doc.source_format == "text"
        assert doc.package_name == "com.example.shop"

    def test_utf8_bom_is_accepted(self, tmp_path):
        (tmp_path / "AndroidManifest.xml").write_bytes(
            b"\xef\xbb\xbf" + INSECURE_MANIFEST.encode()
        )
        assert load_manifest(tmp_path).package_name == "com.example.shop"

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ManifestMissingError):
            load_manifest(tmp_path)
        assert try_load_manifest(tmp_path) is None

    def test_binary_manifest_decoded(self, tmp_path, monkeypatch):
        class FakePrinter:
            def __init__(self, raw):
                assert raw.startswith(AXML_MAGIC)

            def get_xml(self):
                return INSECURE_MANIFEST.encode()

        monkeypatch.setattr("pyaxmlparser.axmlprinter.AXMLPrinter", FakePrinter)
        (tmp_path / "AndroidManifest.xml").write_bytes(AXML_MAGIC + b"\x00" * 32)

        doc = load_manifest(tmp_path)

        assert doc.source_format == "binary"
        assert doc.package_name == "com.example.shop"

    def test_undecodable_binary_manifest(self, tmp_path, monkeypatch):
        class BrokenPrinter:
            def __init__(self, raw):
                raise ValueError("truncated chunk")

        monkeypatch.setattr("pyaxmlparser.axmlprinter.AXMLPrinter", BrokenPrinter)
        (tmp_path / "AndroidManifest.xml").write_bytes(AXML_MAGIC + b"\x00")

        with pytest.raises(ManifestMissingError):
            load_manifest(tmp_path)
        assert try_load_manifest(tmp_path) is None

    def test_custom_decoder_chain(self):
        text, name = decode_manifest(b"<manifest />", (TextXMLDecoder(),))
        assert (text, name) == ("<manifest />", "text")

    def test_no_decoder_accepts(self):
        with pytest.raises(ValueError):
            decode_manifest(b"<manifest />", ())


class TestExtractMetadata:
    def test_permissions_deduplicated_in_first_seen_order(self):
        metadata = extract_metadata(ManifestDocument.from_text(INSECURE_MANIFEST))

        assert metadata.package_name == "com.example.shop"
        assert metadata.version == "1.4.2"
        assert metadata.target_sdk == 33
        assert metadata.permissions == [
            "android.permission.INTERNET",
            "android.permission.CAMERA",
        ]
        assert metadata.manifest_found
        assert metadata.manifest_format == "text"

    def test_no_manifest(self):
        assert extract_metadata(None) == PackageMetadata()
