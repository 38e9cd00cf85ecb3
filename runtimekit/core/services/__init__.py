"""Services — the package management core."""
