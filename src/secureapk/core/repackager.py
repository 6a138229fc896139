"""Dev-mode repackaging: rebuild an extracted APK with testing affordances."""

import logging
import re
import time
import uuid
import zipfile
import zlib
from collections.abc import Sequence
from pathlib import Path
from xml.etree import ElementTree as ET

from secureapk.core.manifest import (
    ANDROID_NS,
    MANIFEST_NAME,
    PERMISSION_TAGS,
    attr_keys,
    decode_manifest,
    get_attr,
)
from secureapk.core.transforms import (
    DEFAULT_TRANSFORMS,
    SOURCE_EXTENSIONS,
    Transform,
    transform_file,
)
from secureapk.exceptions import RepackagingError
from secureapk.models.apk import RepackagedArtifact

logger = logging.getLogger(__name__)

NETWORK_SECURITY_CONFIG_PATH = "res/xml/network_security_config.xml"
NETWORK_SECURITY_CONFIG_REF = "@xml/network_security_config"

TEST_PERMISSIONS = (
    "android.permission.WRITE_EXTERNAL_STORAGE",
    "android.permission.READ_EXTERNAL_STORAGE",
    "android.permission.INTERNET",
    "android.permission.ACCESS_NETWORK_STATE",
    "android.permission.ACCESS_WIFI_STATE",
    "com.android.vending.BILLING",
)

NETWORK_SECURITY_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<network-security-config>
    <domain-config cleartextTrafficPermitted="true">
        <domain includeSubdomains="true">localhost</domain>
        <domain includeSubdomains="true">10.0.2.2</domain>
        <domain includeSubdomains="true">127.0.0.1</domain>
    </domain-config>
    <debug-overrides>
        <trust-anchors>
            <certificates src="user"/>
            <certificates src="system"/>
        </trust-anchors>
    </debug-overrides>
</network-security-config>
"""

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'

# Keep conventional prefixes when re-serializing
ET.register_namespace("android", ANDROID_NS)
ET.register_namespace("tools", "http://schemas.android.com/tools")
ET.register_namespace("app", "http://schemas.android.com/apk/res-auto")


def _android(name: str) -> str:
    return f"{{{ANDROID_NS}}}{name}"


def _force_true(element: ET.Element, name: str) -> None:
    """Insert name="true", or flip every existing spelling that is "false"."""
    keys = attr_keys(element, name)
    if not keys:
        element.set(_android(name), "true")
        return
    for key in keys:
        if element.get(key) == "false":
            element.set(key, "true")


def _enhance_manifest_tree(root: ET.Element) -> None:
    application = root.find("application")
    if application is None:
        logger.warning("Manifest has no <application>; flags left unchanged")
    else:
        _force_true(application, "debuggable")
        _force_true(application, "allowBackup")
        if get_attr(application, "networkSecurityConfig") is None:
            application.set(_android("networkSecurityConfig"), NETWORK_SECURITY_CONFIG_REF)

    declared = {
        get_attr(element, "name")
        for element in root.iter()
        if element.tag in PERMISSION_TAGS
    }
    for permission in TEST_PERMISSIONS:
        if permission not in declared:
            element = ET.SubElement(root, "uses-permission", {_android("name"): permission})
            element.tail = "\n"


_APPLICATION_TAG = re.compile(r"<application\b(?P<attrs>[^>]*?)(?P<close>/?)>")


def _add_application_attr(text: str, attribute: str) -> str:
    return _APPLICATION_TAG.sub(
        lambda m: f"<application{m.group('attrs')} {attribute}{m.group('close')}>",
        text,
        count=1,
    )


def _enhance_manifest_text(text: str) -> str:
    """Substring-level fallback for manifests ElementTree cannot parse."""
    for name in ("debuggable", "allowBackup"):
        if f"android:{name}=" not in text:
            text = _add_application_attr(text, f'android:{name}="true"')
        else:
            text = text.replace(f'android:{name}="false"', f'android:{name}="true"')

    if "android:networkSecurityConfig=" not in text:
        text = _add_application_attr(
            text, f'android:networkSecurityConfig="{NETWORK_SECURITY_CONFIG_REF}"'
        )

    for permission in TEST_PERMISSIONS:
        if permission not in text:
            text = text.replace(
                "</manifest>",
                f'    <uses-permission android:name="{permission}" />\n</manifest>',
                1,
            )
    return text


def enhance_manifest(text: str) -> str:
    """Return manifest XML with debug, backup, network config and test permissions.

    - debuggable and allowBackup are inserted on <application> when absent
      and flipped when "false"
    - networkSecurityConfig points at the generated resource unless set
    - TEST_PERMISSIONS not already requested are appended to <manifest>
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        logger.warning("Manifest does not parse (%s); using text rewrite", e)
        return _enhance_manifest_text(text)

    _enhance_manifest_tree(root)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode")


def network_security_config() -> str:
    """Cleartext to loopback/emulator hosts; user and system CAs when debuggable."""
    return NETWORK_SECURITY_CONFIG


def dev_mode_output_path(output_dir: Path, apk_path: Path) -> Path:
    """Unique output path for one job's dev-mode archive."""
    stamp = int(time.time() * 1000)
    return output_dir / f"dev_mode_{stamp}_{uuid.uuid4().hex[:6]}_{apk_path.name}"


class DevModeRepackager:
    """Builds a dev-mode archive from an extraction root."""

    def __init__(
        self,
        root: Path,
        output_path: Path,
        transforms: Sequence[Transform] = DEFAULT_TRANSFORMS,
    ):
        """Initialize repackager.

        Args:
            root: Extraction root of the original package.
            output_path: Where to write the new (unsigned) archive.
            transforms: Source rewrites applied to SOURCE_EXTENSIONS files.
        """
        self.root = root
        self.output_path = output_path
        self.transforms = tuple(transforms)

    def _entries(self) -> list[tuple[str, Path]]:
        """All extracted files as (archive name, path), sorted by name."""
        entries = [
            (path.relative_to(self.root).as_posix(), path)
            for path in self.root.rglob("*")
            if path.is_file()
        ]
        return sorted(entries)

    def _manifest_bytes(self, manifest_path: Path) -> bytes:
        raw = manifest_path.read_bytes()
        try:
            text, source_format = decode_manifest(raw)
            enhanced = enhance_manifest(text)
        except Exception as e:
            logger.error("Manifest rewrite failed, keeping original: %s", e)
            return raw
        if source_format != "text":
            logger.warning(
                "Writing decoded %s manifest as plain XML; rebuild resources "
                "with apktool for an installable package",
                source_format,
            )
        return enhanced.encode("utf-8")

    def _source_bytes(self, name: str, path: Path) -> bytes | None:
        """Rewritten source, or None to copy the original file through."""
        try:
            return transform_file(path, self.transforms)
        except Exception as e:
            logger.error("Source rewrite failed for %s, keeping original: %s", name, e)
            return None

    def _write(self, archive: zipfile.ZipFile, manifest_found: bool) -> dict[str, int]:
        stats = {"rewritten": 0, "copied": 0}

        if manifest_found:
            manifest_path = self.root / MANIFEST_NAME
            archive.writestr(MANIFEST_NAME, self._manifest_bytes(manifest_path))

        archive.writestr(NETWORK_SECURITY_CONFIG_PATH, network_security_config())

        for name, path in self._entries():
            if name in (MANIFEST_NAME, NETWORK_SECURITY_CONFIG_PATH):
                continue

            if manifest_found and name.endswith(SOURCE_EXTENSIONS):
                data = self._source_bytes(name, path)
                if data is not None:
                    archive.writestr(name, data)
                    stats["rewritten"] += 1
                    continue

            archive.write(path, arcname=name)
            stats["copied"] += 1

        return stats

    def build(self) -> RepackagedArtifact:
        """Write the dev-mode archive.

        Without a manifest, the tree is copied unmodified and only the
        network security config is added.

        Returns:
            RepackagedArtifact pointing at the unsigned archive.

        Raises:
            RepackagingError: If the archive cannot be written; any partial
                output is removed.
        """
        manifest_found = (self.root / MANIFEST_NAME).is_file()
        if not manifest_found:
            logger.warning("No %s; copying tree without rewrites", MANIFEST_NAME)

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(
                self.output_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=9,
            ) as archive:
                stats = self._write(archive, manifest_found)
        except (OSError, zipfile.BadZipFile, zlib.error, ValueError) as e:
            if self.output_path.is_file():
                self.output_path.unlink()
            raise RepackagingError(f"Failed to build dev-mode APK: {e}") from e

        logger.info(
            "Dev-mode APK written to %s (%d rewritten, %d copied)",
            self.output_path,
            stats["rewritten"],
            stats["copied"],
        )
        return RepackagedArtifact(path=self.output_path)
