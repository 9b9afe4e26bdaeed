"""
跨作業系統路徑工具測試
"""

import pytest

from browser_bridge.base import platform_paths
from browser_bridge.base.platform_paths import is_running_in_wsl, to_consumer_path, windows_to_wsl_path


@pytest.mark.parametrize(
    "windows_path, expected",
    [
        ("C:\\Users\\me\\ai-images\\a.png", "/mnt/c/Users/me/ai-images/a.png"),
        ("d:\\Downloads\\page.mhtml", "/mnt/d/Downloads/page.mhtml"),
        ("/home/me/ai-images/a.png", "/home/me/ai-images/a.png"),
    ],
)
def test_windows_to_wsl_path(windows_path, expected):
    assert windows_to_wsl_path(windows_path) == expected


def test_paths_are_unchanged_outside_wsl():
    assert to_consumer_path("C:\\tmp\\a.png", in_wsl=False) == "C:\\tmp\\a.png"


def test_paths_are_converted_inside_wsl():
    assert to_consumer_path("C:\\tmp\\a.png", in_wsl=True) == "/mnt/c/tmp/a.png"


def test_wsl_detected_from_environment(monkeypatch):
    monkeypatch.setattr(platform_paths.sys, "platform", "linux")
    monkeypatch.setenv("WSL_DISTRO_NAME", "Ubuntu")

    assert is_running_in_wsl()


def test_wsl_detected_from_proc_version(monkeypatch, tmp_path):
    monkeypatch.setattr(platform_paths.sys, "platform", "linux")
    monkeypatch.delenv("WSL_DISTRO_NAME", raising=False)
    proc_version = tmp_path / "version"
    proc_version.write_text("Linux version 5.15.90.1-microsoft-standard-WSL2", encoding="utf-8")

    assert is_running_in_wsl(str(proc_version))


def test_not_wsl_on_other_platforms(monkeypatch):
    monkeypatch.setattr(platform_paths.sys, "platform", "darwin")
    monkeypatch.setenv("WSL_DISTRO_NAME", "Ubuntu")

    assert not is_running_in_wsl()
