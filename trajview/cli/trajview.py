"""Entry point for the Trajview CLI."""

from __future__ import annotations

from trajview.app import main as run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
