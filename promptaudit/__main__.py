"""Main entry point when executing promptaudit as a package.

This allows running the package using python -m promptaudit.
"""

from promptaudit.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
