"""vaultfx - terminal browser for Bitwarden vaults."""

__version__ = "0.4.0"
