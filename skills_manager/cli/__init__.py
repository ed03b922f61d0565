"""CLI module for skills-manager.

Provides the command-line interface and the installer it drives.
"""

from skills_manager.cli.installer import SkillInstaller

__all__ = ["SkillInstaller"]
