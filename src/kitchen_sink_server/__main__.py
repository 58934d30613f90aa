"""Allow ``python -m kitchen_sink_server``."""

from .cli import main

if __name__ == "__main__":
    main()
