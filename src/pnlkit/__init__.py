"""Recurring expenses and 24-month P&L reporting."""

__version__ = "0.1.0"


# Import main lazily; the CLI pulls in every service
def __getattr__(name):
    if name == "main":
        from pnlkit.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
