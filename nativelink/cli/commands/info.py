"""
Info command.

Prints how one module path is identified: its normalized path, owning
package, path inside that package and canonical library name.
"""

import json
import logging
from pathlib import Path

from nativelink.cli.utils import load_app_config, naming_from_args
from nativelink.core.packages import find_package_root
from nativelink.linking.naming import (
    determine_module_context,
    get_library_name,
    normalize_module_path,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the info command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    module_path = Path(args.path).resolve()
    config = load_app_config(args, find_package_root(Path.cwd()))
    naming = naming_from_args(args, config)

    context = determine_module_context(module_path)
    info = {
        "resolved_module_path": str(module_path),
        "normalized_module_path": normalize_module_path(module_path),
        "package_name": context.package_name,
        "relative_path": context.relative_path,
        "library_name": get_library_name(module_path, naming),
    }

    if args.json:
        print(json.dumps(info, indent=2))
    else:
        width = max(len(key) for key in info)
        for key, value in info.items():
            print(f"{key.ljust(width)}  {value}")

    return 0
