"""CLI tools for the article archive.

- ``python -m kstack.cli.archive`` — scrape articles, download authors and
  categories, search the store, or serve the API.
- ``python -m kstack.cli`` — same as above.

Heavy imports (the FastAPI app, httpx wiring) are deferred inside the
subcommand handlers so ``--help`` and ``search`` start quickly.
"""
