"""Tests for the external tool runner."""

import sys

import pytest

from secureapk.exceptions import ProcessError
from secureapk.utils.process import redact, run_tool


def test_redact_masks_passwords():
    command = ["apksigner", "sign", "--ks-pass", "pass:secret", "--key-pass", "pass:k", "in.apk"]

    assert redact(command) == ["apksigner", "sign", "--ks-pass", "****", "--key-pass", "****", "in.apk"]
    assert command[3] == "pass:secret"


class TestRunTool:
    def test_success(self):
        result = run_tool([sys.executable, "-c", "print('aligned')"])

        assert result.success
        assert result.output == "aligned"

    def test_failure_raises(self):
        with pytest.raises(ProcessError) as excinfo:
            run_tool([sys.executable, "-c", "import sys; sys.exit(3)"])

        assert excinfo.value.returncode == 3

    def test_failure_without_check(self):
        result = run_tool([sys.executable, "-c", "import sys; sys.exit(3)"], check=False)

        assert not result.success

    def test_missing_binary(self, tmp_path):
        with pytest.raises(ProcessError) as excinfo:
            run_tool([str(tmp_path / "no-such-tool")])

        assert excinfo.value.returncode == -1

    def test_non_executable_file(self, tmp_path):
        tool = tmp_path / "zipalign"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o644)

        with pytest.raises(ProcessError) as excinfo:
            run_tool([str(tool), "-f", "4", "in.apk", "out.apk"])

        assert excinfo.value.returncode == -1
        assert "Cannot execute" in str(excinfo.value)

    def test_timeout(self):
        with pytest.raises(ProcessError, match="Timed out"):
            run_tool([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)

    def test_error_message_hides_passwords(self):
        with pytest.raises(ProcessError) as excinfo:
            run_tool([sys.executable, "-c", "import sys; sys.exit(1)", "-storepass", "hunter2"])

        assert "hunter2" not in str(excinfo.value)
