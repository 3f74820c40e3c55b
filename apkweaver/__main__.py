"""Allow ``python -m apkweaver``."""

from .cli import main

if __name__ == "__main__":
    main()
