"""Executable entrypoint for `python -m allocator_client`.

Delegates directly to :func:`allocator_client.cli.main`.
"""

from allocator_client.cli import main

if __name__ == "__main__":
    main()
