"""secureapk - static security analysis and dev-mode repackaging for Android APKs."""

__version__ = "0.1.0"
