"""
proxmux package
---------------
Idempotent environment provisioner for Proxmox VE hosts and macOS workstations.
Contains modules for plan loading, validation, backups, action execution,
orchestration with a confirmation gate, and CLI / API entry points.
"""

__version__ = "0.4.0"
