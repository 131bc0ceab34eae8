"""linkedin-vault: safe backup and analysis of professional-network data exports."""

__version__ = "0.1.0"
