"""
Operating system and package manager knowledge used by host inspection and
bootstrap.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class PackageManager:
    """How to install packages on one distribution family."""

    name: str
    binary: str
    update_cmd: str
    install_cmd: str
    unison_packages: str
    ssh_packages: str


HOMEBREW = PackageManager(
    name="Homebrew",
    binary="brew",
    update_cmd="brew update",
    install_cmd="brew install",
    unison_packages="unison",
    ssh_packages="openssh",
)

HOMEBREW_INSTALL_CMD = (
    'NONINTERACTIVE=1 /bin/bash -c '
    '"$(curl -fsSL https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"'
)

_APT = PackageManager(
    "apt-get", "apt-get", "sudo apt-get update", "sudo apt-get install -y",
    "unison", "openssh-client",
)
_DNF = PackageManager(
    "dnf", "dnf", "sudo dnf check-update || true", "sudo dnf install -y",
    "unison unison-gtk", "openssh-clients",
)
_ZYPPER = PackageManager(
    "zypper", "zypper", "sudo zypper refresh", "sudo zypper install -y",
    "unison", "openssh-clients",
)
_PACMAN = PackageManager(
    "pacman", "pacman", "sudo pacman -Sy", "sudo pacman -S --noconfirm",
    "unison", "openssh",
)
_APK = PackageManager(
    "apk", "apk", "sudo apk update", "sudo apk add",
    "unison", "openssh-client",
)
_XBPS = PackageManager(
    "xbps", "xbps-install", "sudo xbps-install -S", "sudo xbps-install -y",
    "unison", "openssh",
)
_EMERGE = PackageManager(
    "emerge", "emerge", "sudo emerge --sync", "sudo emerge",
    "net-misc/unison", "net-misc/openssh",
)
_NIX = PackageManager(
    "nix", "nix-env", "nix-channel --update", "nix-env -i",
    "unison", "openssh",
)

DISTRO_PACKAGE_MANAGERS: Dict[str, PackageManager] = {
    "ubuntu": _APT,
    "debian": _APT,
    "pop": _APT,
    "elementary": _APT,
    "linuxmint": _APT,
    "raspbian": _APT,
    "fedora": _DNF,
    "rhel": _DNF,
    "centos": _DNF,
    "rocky": _DNF,
    "almalinux": _DNF,
    "opensuse-tumbleweed": _ZYPPER,
    "opensuse-leap": _ZYPPER,
    "suse": _ZYPPER,
    "sles": _ZYPPER,
    "arch": _PACMAN,
    "manjaro": _PACMAN,
    "endeavouros": _PACMAN,
    "alpine": _APK,
    "void": _XBPS,
    "gentoo": _EMERGE,
    "nixos": _NIX,
}

DARWIN = "Darwin"
LINUX = "Linux"

DETECT_DISTRO_SCRIPT = """\
if [ -f /etc/os-release ]; then
  . /etc/os-release
  echo "$ID"
elif [ -f /etc/redhat-release ]; then
  echo rhel
elif [ -f /etc/arch-release ]; then
  echo arch
elif [ -f /etc/gentoo-release ]; then
  echo gentoo
elif [ -f /etc/alpine-release ]; then
  echo alpine
elif [ -f /etc/nixos/configuration.nix ]; then
  echo nixos
fi"""


def package_manager_for(os_family: Optional[str], distro: Optional[str]) -> Optional[PackageManager]:
    """The package manager for an OS/distro pair, or None if unsupported."""
    if os_family == DARWIN:
        return HOMEBREW
    if os_family == LINUX and distro:
        return DISTRO_PACKAGE_MANAGERS.get(distro.lower())
    return None
