"""AndroidManifest.xml decoding, parsing and attribute queries.

Manifests inside built APKs are usually compiled to binary AXML, while
apktool output and hand-made test packages carry plain XML. Decoding is a
pluggable front-end: each decoder claims raw bytes it understands and returns
XML text, which is then parsed with ElementTree into a queryable document.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from xml.etree import ElementTree as ET

from secureapk.exceptions import ManifestMissingError
from secureapk.models.analysis import PackageMetadata

logger = logging.getLogger(__name__)

MANIFEST_NAME = "AndroidManifest.xml"
ANDROID_NS = "http://schemas.android.com/apk/res/android"

# First chunk header of a compiled XML file (RES_XML_TYPE, header size 8)
AXML_MAGIC = b"\x03\x00\x08\x00"

PERMISSION_TAGS = ("uses-permission", "uses-permission-sdk-23")


class ManifestDecoder(Protocol):
    """Turns raw manifest bytes into XML text."""

    name: str

    def accepts(self, raw: bytes) -> bool: ...

    def decode(self, raw: bytes) -> str: ...


class BinaryXMLDecoder:
    """Decode compiled AXML with pyaxmlparser."""

    name = "binary"

    def accepts(self, raw: bytes) -> bool:
        return raw.startswith(AXML_MAGIC)

    def decode(self, raw: bytes) -> str:
        from pyaxmlparser.axmlprinter import AXMLPrinter  # type: ignore[import-untyped]

        printer = AXMLPrinter(raw)
        xml = printer.get_xml()
        if isinstance(xml, bytes):
            xml = xml.decode("utf-8")
        if not xml:
            raise ValueError("pyaxmlparser produced no XML")
        return xml


class TextXMLDecoder:
    """Plain-text XML, the fallback for everything not claimed earlier."""

    name = "text"

    def accepts(self, raw: bytes) -> bool:
        return True

    def decode(self, raw: bytes) -> str:
        return raw.decode("utf-8-sig")


DEFAULT_DECODERS: tuple[ManifestDecoder, ...] = (BinaryXMLDecoder(), TextXMLDecoder())


def decode_manifest(
    raw: bytes,
    decoders: tuple[ManifestDecoder, ...] = DEFAULT_DECODERS,
) -> tuple[str, str]:
    """Decode raw manifest bytes with the first decoder that accepts them.

    Returns:
        (xml_text, decoder_name)

    Raises:
        ValueError: If no decoder accepts the bytes, or decoding fails.
    """
    for decoder in decoders:
        if decoder.accepts(raw):
            return decoder.decode(raw), decoder.name
    raise ValueError("No manifest decoder accepted the input")


def _split_name(name: str) -> tuple[str | None, str]:
    """Split 'android:foo' or '{ns}foo' into (namespace, local name)."""
    if name.startswith("{"):
        ns, _, local = name[1:].partition("}")
        return ns, local
    prefix, sep, local = name.partition(":")
    if sep:
        return (ANDROID_NS if prefix == "android" else prefix), local
    return None, name


def get_attr(element: ET.Element, name: str) -> str | None:
    """Look up an attribute accepting namespaced and bare spellings.

    The Android-namespaced form is tried first, then the bare name, then a
    literal 'android:name' key (left behind by lenient producers); first
    match wins.
    """
    _, local = _split_name(name)
    for key in (f"{{{ANDROID_NS}}}{local}", local, f"android:{local}"):
        value = element.get(key)
        if value is not None:
            return value
    return None


def attr_keys(element: ET.Element, name: str) -> list[str]:
    """Return the attribute keys on element that spell the given name."""
    _, local = _split_name(name)
    candidates = (f"{{{ANDROID_NS}}}{local}", local, f"android:{local}")
    return [key for key in candidates if key in element.attrib]


@dataclass(frozen=True)
class ManifestDocument:
    """A decoded manifest: raw text plus its parsed element tree.

    root is None when the text is not well-formed XML; raw-text heuristics
    still work in that case.
    """

    raw_text: str
    root: ET.Element | None
    source_format: str = "text"

    @classmethod
    def from_text(cls, text: str, source_format: str = "text") -> "ManifestDocument":
        try:
            root: ET.Element | None = ET.fromstring(text)
        except ET.ParseError as e:
            logger.warning("Manifest is not well-formed XML, using raw text only: %s", e)
            root = None
        return cls(raw_text=text, root=root, source_format=source_format)

    @property
    def parsed(self) -> bool:
        return self.root is not None

    def attr(self, element: ET.Element, name: str) -> str | None:
        return get_attr(element, name)

    @property
    def application(self) -> ET.Element | None:
        if self.root is None:
            return None
        return self.root.find("application")

    @property
    def package_name(self) -> str | None:
        if self.root is None:
            return None
        return self.root.get("package")

    @property
    def version_name(self) -> str | None:
        if self.root is None:
            return None
        return get_attr(self.root, "versionName")

    @property
    def target_sdk(self) -> int | None:
        if self.root is None:
            return None

        raw = get_attr(self.root, "targetSdkVersion")
        if raw is None:
            uses_sdk = self.root.find("uses-sdk")
            if uses_sdk is not None:
                raw = get_attr(uses_sdk, "targetSdkVersion")
        if raw is None:
            return None

        try:
            return int(raw)
        except ValueError:
            # Codenames such as "UpsideDownCake" or resource references
            logger.debug("Non-numeric targetSdkVersion: %r", raw)
            return None

    @property
    def permissions(self) -> list[str]:
        """Every requested permission, in document order, duplicates kept."""
        if self.root is None:
            return []
        names: list[str] = []
        for element in self.root.iter():
            if element.tag in PERMISSION_TAGS:
                name = get_attr(element, "name")
                if name:
                    names.append(name)
        return names

    def iter_with_attr(self, name: str, value: str | None = None) -> Iterator[ET.Element]:
        """Yield every element carrying attribute name (optionally == value)."""
        if self.root is None:
            return
        for element in self.root.iter():
            found = get_attr(element, name)
            if found is None:
                continue
            if value is None or found == value:
                yield element


def load_manifest(
    root: Path,
    decoders: tuple[ManifestDecoder, ...] = DEFAULT_DECODERS,
) -> ManifestDocument:
    """Load and parse the manifest from an extraction root.

    Raises:
        ManifestMissingError: If the manifest is absent or cannot be decoded.
    """
    manifest_path = root / MANIFEST_NAME
    if not manifest_path.is_file():
        raise ManifestMissingError(f"{MANIFEST_NAME} not found in {root}")

    try:
        raw = manifest_path.read_bytes()
    except OSError as e:
        raise ManifestMissingError(f"Cannot read {MANIFEST_NAME}: {e}") from e

    try:
        text, source_format = decode_manifest(raw, decoders)
    except Exception as e:
        raise ManifestMissingError(f"Cannot decode {MANIFEST_NAME}: {e}") from e

    return ManifestDocument.from_text(text, source_format=source_format)


def try_load_manifest(root: Path) -> ManifestDocument | None:
    """Like load_manifest, but a missing manifest yields None (logged)."""
    try:
        return load_manifest(root)
    except ManifestMissingError as e:
        logger.warning("%s; manifest-based checks run degraded", e)
        return None


def extract_metadata(document: ManifestDocument | None) -> PackageMetadata:
    """Project a manifest document onto PackageMetadata."""
    if document is None:
        return PackageMetadata()

    return PackageMetadata(
        package_name=document.package_name,
        version=document.version_name,
        target_sdk=document.target_sdk,
        permissions=list(dict.fromkeys(document.permissions)),
        manifest_found=True,
        manifest_format=document.source_format,
    )
