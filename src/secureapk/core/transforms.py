"""Dev-mode source rewrites applied while repackaging.

Each transform is a pure function ``(content, language) -> content`` and is
independent of the others; ``transform_source`` composes them in order.
Java and Kotlin rewrites gate every bypass on ``BuildConfig.DEBUG``. Smali
has no expression syntax to hang a build-flag test on, so predicate results
are overwritten with the trusted constant right after ``move-result``.

Every transform is idempotent: running it on its own output is a no-op.
"""

import logging
import re
from collections.abc import Callable, Sequence
from enum import StrEnum
from pathlib import Path

logger = logging.getLogger(__name__)


class SourceLanguage(StrEnum):
    JAVA = "java"
    KOTLIN = "kotlin"
    SMALI = "smali"


LANGUAGE_BY_SUFFIX: dict[str, SourceLanguage] = {
    ".java": SourceLanguage.JAVA,
    ".kt": SourceLanguage.KOTLIN,
    ".smali": SourceLanguage.SMALI,
}

SOURCE_EXTENSIONS = tuple(LANGUAGE_BY_SUFFIX)

Transform = Callable[[str, SourceLanguage], str]

BILLING_MARKERS = (
    "BillingClient",
    "SkuDetails",
    "Purchase",
    "com.android.vending.BILLING",
    "IInAppBillingService",
)

PREMIUM_PREDICATES = (
    "isPremium",
    "hasPremium",
    "isProUser",
    "isPaid",
    "hasSubscription",
    "isSubscribed",
)
ROOT_PREDICATES = ("isRooted", "checkRootMethod", "detectRoot")
LICENSE_PREDICATES = ("checkLicense", "isLicenseValid", "validateLicense")

MOCK_PURCHASE_MARKER = "DEV MODE: mock purchase success"


def language_for(path: Path) -> SourceLanguage | None:
    return LANGUAGE_BY_SUFFIX.get(path.suffix)


# --- predicate call wrapping -------------------------------------------------

_DECLARATION_PREFIX = re.compile(r"\b(?:boolean|Boolean|void|fun)\s+$")
_DECLARATION_SUFFIX = re.compile(r"\s*(?:\{|throws\b)")


def _call_pattern(names: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(n) for n in names)
    return re.compile(
        rf"(?P<call>(?:\b[A-Za-z_]\w*\s*\.\s*)*\b(?:{alternatives})\(\))"
    )


def _wrap_calls(
    content: str,
    pattern: re.Pattern[str],
    opening: str,
    closing: str = ")",
) -> str:
    """Wrap no-argument predicate calls, leaving declarations untouched."""

    def replace(match: re.Match[str]) -> str:
        call = match.group("call")
        start = match.start()
        line_start = content.rfind("\n", 0, start) + 1
        prefix = content[line_start:start]

        if prefix.endswith(opening):
            return call
        if prefix.rstrip().endswith("."):
            # Receiver is an expression we did not capture (foo().isPaid())
            return call
        if _DECLARATION_PREFIX.search(prefix):
            return call
        if _DECLARATION_SUFFIX.match(content, match.end()):
            return call
        return f"{opening}{call}{closing}"

    return pattern.sub(replace, content)


_SMALI_CALL_TEMPLATE = (
    r"(?P<invoke>invoke-[\w/-]+\s*\{{[^}}]*\}},\s*L[^;\s]+;->(?:{names})\(\)Z[ \t]*\n"
    r"(?:[ \t]*\n)*"
    r"(?P<indent>[ \t]*)move-result (?P<reg>[vp]\d+)[ \t]*\n)"
    r"(?![ \t]*const(?:/4|/16)? (?P=reg), )"
)


def _smali_pattern(names: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(n) for n in names)
    return re.compile(_SMALI_CALL_TEMPLATE.format(names=alternatives))


def _force_smali_result(content: str, pattern: re.Pattern[str], value: bool) -> str:
    """Overwrite the register receiving a boolean predicate result."""

    def replace(match: re.Match[str]) -> str:
        register = match.group("reg")
        opcode = (
            "const/4"
            if register.startswith("v") and int(register[1:]) < 16
            else "const/16"
        )
        literal = "0x1" if value else "0x0"
        return f"{match.group('invoke')}{match.group('indent')}{opcode} {register}, {literal}\n"

    return pattern.sub(replace, content)


_PREMIUM_CALL = _call_pattern(PREMIUM_PREDICATES)
_ROOT_CALL = _call_pattern(ROOT_PREDICATES)
_LICENSE_CALL = _call_pattern(LICENSE_PREDICATES)
_PREMIUM_SMALI = _smali_pattern(PREMIUM_PREDICATES)
_ROOT_SMALI = _smali_pattern(ROOT_PREDICATES)
_LICENSE_SMALI = _smali_pattern(LICENSE_PREDICATES)


def _short_circuit(
    content: str,
    language: SourceLanguage,
    call: re.Pattern[str],
    smali: re.Pattern[str],
    forced: bool,
) -> str:
    if language == SourceLanguage.SMALI:
        return _force_smali_result(content, smali, forced)

    literal = "true" if forced else "false"
    if language == SourceLanguage.KOTLIN:
        opening = f"(if (BuildConfig.DEBUG) {literal} else "
    else:
        opening = f"(BuildConfig.DEBUG ? {literal} : "
    return _wrap_calls(content, call, opening)


# --- transforms ---------------------------------------------------------------


def contains_billing_code(content: str) -> bool:
    return any(marker in content for marker in BILLING_MARKERS)


_BILLING_BUILDER = re.compile(
    r"(?P<builder>BillingClient\s*\.\s*(?:newBuilder|Builder)\([^()]*\))"
    r"(?!\s*\.\s*enablePendingPurchases\(\))"
)
_PURCHASES_UPDATED = re.compile(
    r"(?P<head>\bonPurchasesUpdated\s*\([^)]*\)[^{;=]*\{)"
)

_MOCK_PURCHASE_JAVA = """
        // {marker} for testing
        if (BuildConfig.DEBUG) {{
            Log.d("DevMode", "Mocking successful purchase for testing");
        }}
"""

_MOCK_PURCHASE_KOTLIN = """
        // {marker} for testing
        if (BuildConfig.DEBUG) {{
            Log.d("DevMode", "Mocking successful purchase for testing")
        }}
"""


def enable_billing_sandbox(content: str, language: SourceLanguage) -> str:
    """Enable pending (test) purchases and mock purchase callbacks."""
    if language == SourceLanguage.SMALI or not contains_billing_code(content):
        return content

    modified = _BILLING_BUILDER.sub(r"\g<builder>.enablePendingPurchases()", content)

    if MOCK_PURCHASE_MARKER not in modified:
        template = (
            _MOCK_PURCHASE_KOTLIN
            if language == SourceLanguage.KOTLIN
            else _MOCK_PURCHASE_JAVA
        )
        block = template.format(marker=MOCK_PURCHASE_MARKER)
        modified = _PURCHASES_UPDATED.sub(
            lambda m: m.group("head") + block.rstrip("\n"),
            modified,
            count=1,
        )

    return modified


def unlock_premium_features(content: str, language: SourceLanguage) -> str:
    """Premium and subscription gates report true in debug builds."""
    if language == SourceLanguage.SMALI:
        return _force_smali_result(content, _PREMIUM_SMALI, True)
    return _wrap_calls(content, _PREMIUM_CALL, "(BuildConfig.DEBUG || ")


def bypass_root_detection(content: str, language: SourceLanguage) -> str:
    """Root checks report a non-rooted device in debug builds."""
    return _short_circuit(content, language, _ROOT_CALL, _ROOT_SMALI, forced=False)


def bypass_license_checks(content: str, language: SourceLanguage) -> str:
    """License checks report a valid license in debug builds."""
    return _short_circuit(content, language, _LICENSE_CALL, _LICENSE_SMALI, forced=True)


_TYPE_DECLARATION = re.compile(r"\b(?:class|interface|enum|object)\s+[A-Za-z_]")
_PACKAGE_LINE = re.compile(r"^[ \t]*package\s+[\w.]+[ \t]*;?[ \t]*$", re.MULTILINE)
_LOG_IMPORT = re.compile(r"^[ \t]*import\s+android\.util\.Log\b", re.MULTILINE)


def ensure_log_import(content: str, language: SourceLanguage) -> str:
    """Add the android.util.Log import to type-defining files lacking it."""
    if language == SourceLanguage.SMALI:
        return content
    if not _TYPE_DECLARATION.search(content) or _LOG_IMPORT.search(content):
        return content

    statement = (
        "import android.util.Log"
        if language == SourceLanguage.KOTLIN
        else "import android.util.Log;"
    )
    package = _PACKAGE_LINE.search(content)
    if package is None:
        return f"{statement}\n{content}"
    insert_at = package.end()
    return f"{content[:insert_at]}\n\n{statement}{content[insert_at:]}"


# Log import runs last so it sees the Log calls added by the billing mock
DEFAULT_TRANSFORMS: tuple[Transform, ...] = (
    enable_billing_sandbox,
    unlock_premium_features,
    bypass_root_detection,
    bypass_license_checks,
    ensure_log_import,
)


def transform_source(
    content: str,
    language: SourceLanguage,
    transforms: Sequence[Transform] = DEFAULT_TRANSFORMS,
) -> str:
    """Apply transforms in order."""
    for transform in transforms:
        content = transform(content, language)
    return content


def transform_file(
    path: Path,
    transforms: Sequence[Transform] = DEFAULT_TRANSFORMS,
) -> bytes:
    """Read, rewrite and re-encode one source file.

    Raises:
        ValueError: If the suffix is not a supported source language or the
            file is not valid UTF-8.
        OSError: If the file cannot be read.
    """
    language = language_for(path)
    if language is None:
        raise ValueError(f"Unsupported source file: {path.name}")

    original = path.read_bytes()
    text = original.decode("utf-8")
    rewritten = transform_source(text, language, transforms)
    if rewritten == text:
        return original
    logger.debug("Rewrote %s", path.name)
    return rewritten.encode("utf-8")
