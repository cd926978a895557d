"""
List command.

Prints the native modules found among an app's dependencies with the
library names they would be linked under.
"""

import json
import logging
from pathlib import Path

from nativelink.cli.utils import (
    load_app_config,
    naming_from_args,
    pretty_path,
    resolve_app_root,
    resolve_output_root,
    safe_print,
)
from nativelink.cross.targets import PLATFORMS
from nativelink.linking.discovery import find_module_paths_by_dependency
from nativelink.linking.naming import get_library_map, visualize_library_map

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Finding no modules is not an error.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    root_path = Path(args.from_path).resolve()
    app_root = resolve_app_root(root_path)
    config = load_app_config(args, app_root)
    output_root = resolve_output_root(None, config, app_root)
    dependencies = find_module_paths_by_dependency(
        root_path, platforms=PLATFORMS, include_self=True, exclude=(output_root,)
    )

    if args.json:
        print(
            json.dumps(
                {name: dependency.to_dict() for name, dependency in dependencies.items()},
                indent=2,
            )
        )
        return 0

    naming = naming_from_args(args, config)

    module_count = sum(len(d.module_paths) for d in dependencies.values())
    package_count = len(dependencies)
    safe_print(
        f"Found {module_count} native module{'' if module_count == 1 else 's'} in "
        f"{package_count} package{'' if package_count == 1 else 's'} "
        f"from {pretty_path(root_path)}"
    )

    for name, dependency in dependencies.items():
        safe_print(f"\n{name} -> {pretty_path(dependency.path)}")
        library_map = get_library_map(
            [dependency.path / p for p in dependency.module_paths], naming
        )
        safe_print(visualize_library_map(library_map))

    return 0
