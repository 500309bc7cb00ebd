"""``python -m twinpane``: print a directory or archive listing."""

from .cli import main


if __name__ == "__main__":
    main()
