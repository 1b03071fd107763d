"""Allow ``python -m lp_aggregator``."""
from .cli import main

if __name__ == "__main__":
    main()
