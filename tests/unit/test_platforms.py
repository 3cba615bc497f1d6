import pytest

from covgate import platforms
from covgate.exceptions import ProvisionError, UnsupportedPlatformError
from covgate.platforms import PlatformKey, detect, detect_host, is_windows_like


@pytest.mark.parametrize(
    "os_name, os_arch, expected",
    [
        ("Linux", "x86_64", PlatformKey.LINUX_X64),
        ("linux", "amd64", PlatformKey.LINUX_X64),
        ("LINUX", "AMD64", PlatformKey.LINUX_X64),
        ("Linux", "aarch64", PlatformKey.LINUX_ARM64),
        ("linux", "arm64", PlatformKey.LINUX_ARM64),
        ("Mac OS X", "x86_64", PlatformKey.MACOS_X64),
        ("Darwin", "x86_64", PlatformKey.MACOS_X64),
        ("Darwin", "arm64", PlatformKey.MACOS_ARM64),
        ("mac os x", "aarch64", PlatformKey.MACOS_ARM64),
    ],
)
def test_detect_supported(os_name, os_arch, expected):
    assert detect(os_name, os_arch) is expected


@pytest.mark.parametrize(
    "os_name, os_arch",
    [
        ("Windows 10", "amd64"),
        ("FreeBSD", "x86_64"),
        ("Linux", "i386"),
        ("Linux", "ppc64le"),
        ("Darwin", ""),
        ("", "x86_64"),
    ],
)
def test_detect_unsupported_raises(os_name, os_arch):
    with pytest.raises(UnsupportedPlatformError) as exc:
        detect(os_name, os_arch)
    assert isinstance(exc.value, ProvisionError)
    assert exc.value.os_name == os_name
    assert "Unsupported platform" in str(exc.value)


def test_platform_key_renders_as_value():
    assert str(PlatformKey.MACOS_ARM64) == "macos-arm64"
    assert f"python-{PlatformKey.LINUX_X64}" == "python-linux-x64"


def test_detect_host_uses_platform_module(monkeypatch):
    monkeypatch.setattr(platforms._platform, "system", lambda: "Linux")
    monkeypatch.setattr(platforms._platform, "machine", lambda: "aarch64")
    assert detect_host() is PlatformKey.LINUX_ARM64


def test_is_windows_like():
    assert is_windows_like("Windows 11")
    assert is_windows_like("CYGWIN_NT-10.0")
    assert not is_windows_like("Linux")
    assert not is_windows_like("Darwin")
