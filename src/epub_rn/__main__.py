"""Allow ``python -m epub_rn``."""

from epub_rn.cli import app

if __name__ == "__main__":
    app()
