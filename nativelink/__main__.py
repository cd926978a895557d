"""
Entry point for running nativelink as a module.

Usage: python -m nativelink [command] [options]
"""

from nativelink.cli.parser import main

if __name__ == "__main__":
    main()
