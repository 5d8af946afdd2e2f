"""
Built-in registry — the ISO server bootstrap sequence.

Used when ``hostprov run`` is given no ``--registry`` file. The ISO image
bootstrap: package prerequisites, best-effort volume growth,
SSH client compatibility for isoadmin, then three optional installers
fetched with the stored GitHub token.
"""

from __future__ import annotations

from hostprov.core.models.provision import ProvisionConfig

LOGICAL_VOLUME = "/dev/mapper/ubuntu--vg-ubuntu--lv"

SSH_CONFIG_BLOCK = """\
Host *
  KexAlgorithms +diffie-hellman-group14-sha1,diffie-hellman-group1-sha1
  Ciphers +aes256-cbc,aes128-cbc
  HostkeyAlgorithms +ssh-rsa
"""

SSH_AUTOUPDATE_URL = (
    "https://raw.githubusercontent.com/isotechnics/ssh-config/refs/heads/main/"
    "scripts/authorizedkeys_autoupdate_install.sh"
)
NMS_INSTALL_URL = (
    "https://raw.githubusercontent.com/isotechnics/iso-nms-agent/refs/heads/master/"
    "scripts/install.sh"
)
BACKUP_INSTALL_URL = (
    "https://raw.githubusercontent.com/isotechnics/iso-server-backup/refs/heads/main/"
    "scripts/install_iso_server_backup.sh"
)

BUILTIN_STEPS: list[dict] = [
    {
        "name": "apt-update",
        "type": "shell",
        "description": "Refresh package index",
        "command": "apt-get update",
    },
    {
        "name": "install-jq",
        "type": "shell",
        "description": "Install jq",
        "command": "apt-get -y install jq",
        "check": "command -v jq",
        "depends_on": ["apt-update"],
    },
    {
        "name": "install-iptables-persistent",
        "type": "shell",
        "description": "Install iptables-persistent",
        "command": "apt-get install -y iptables-persistent",
        "check": "dpkg -s iptables-persistent >/dev/null 2>&1",
        "env": {"DEBIAN_FRONTEND": "noninteractive"},
        "depends_on": ["apt-update"],
    },
    {
        "name": "extend-volume",
        "type": "shell",
        "description": "Extend OS volume group to all free space",
        "command": f"lvextend -l +100%FREE {LOGICAL_VOLUME}",
        "best_effort": True,
    },
    {
        "name": "resize-filesystem",
        "type": "shell",
        "description": "Grow the root filesystem",
        "command": f"resize2fs {LOGICAL_VOLUME}",
        "best_effort": True,
        "depends_on": ["extend-volume"],
    },
    {
        "name": "ssh-client-compat",
        "type": "file-block",
        "description": "Legacy SSH algorithms for isoadmin",
        "path": "/home/isoadmin/.ssh/config",
        "block": SSH_CONFIG_BLOCK,
        "marker": "KexAlgorithms +diffie-hellman-group14-sha1",
        "owner": "isoadmin",
        "group": "isoadmin",
        "mode": 0o600,
        "dir_mode": 0o700,
    },
    {
        "name": "ssh-key-autoupdate",
        "type": "remote-script",
        "description": "SSH authorized_keys auto-update",
        "url": SSH_AUTOUPDATE_URL,
        "prompt": "Install SSH authorized_keys auto-update script?",
    },
    {
        "name": "disable-password-auth",
        "type": "line-replace",
        "description": "Disable SSH password authentication",
        "path": "/etc/ssh/sshd_config",
        "pattern": r"^PasswordAuthentication yes",
        "replacement": "PasswordAuthentication no",
        "then": "systemctl reload ssh",
        "depends_on": ["ssh-key-autoupdate"],
    },
    {
        "name": "nms-agent",
        "type": "remote-script",
        "description": "NMS agent",
        "url": NMS_INSTALL_URL,
        "prompt": "Install NMS agent?",
    },
    {
        "name": "server-backup",
        "type": "remote-script",
        "description": "Server backup system",
        "url": BACKUP_INSTALL_URL,
        "prompt": "Install server backup system?",
    },
]


def builtin_config() -> ProvisionConfig:
    """The default bootstrap registry as a validated config."""
    return ProvisionConfig.model_validate({"name": "iso-bootstrap", "steps": BUILTIN_STEPS})
