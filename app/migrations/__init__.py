"""One-shot operator migrations, run with ``python -m app.migrations <name>``."""
