"""Allow ``python -m cacheproxy``."""

from cacheproxy.app import main

main()
