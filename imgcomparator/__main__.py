"""
Allow running the package with: python -m imgcomparator

Examples:
    python -m imgcomparator /path/to/photos    # Scan for duplicates
    python -m imgcomparator --clean-cache      # Cache maintenance
    python -m imgcomparator config             # Show configuration
    python -m imgcomparator config --init      # Create example config file
"""

import sys


def main():
    if len(sys.argv) > 1 and sys.argv[1] == 'config':
        from .user_config import get_user_config

        config = get_user_config()

        if '--init' in sys.argv[2:] or '-i' in sys.argv[2:]:
            if config.create_example_config():
                print("Created example configuration file at:")
                print(f"  {config.config_file_path}")
            else:
                print("Failed to create configuration file.")
                sys.exit(1)
        else:
            print(f"Configuration file: {config.config_file_path}")
            if config.config_file_path.exists():
                print("Status: found")
            else:
                print("Status: not found (using defaults)")
                print("\nRun 'python -m imgcomparator config --init' to create one.")

            print("\nCurrent settings:")
            print(f"  grid_size: {config.grid_size}")
            print(f"  threshold: {config.threshold}")
            print(f"  workers: {config.workers}")
            print(f"  database_path: {config.database_path}")
            print(f"  ignore_paths: {config.ignore_paths}")
    else:
        from .cli import main as cli_main
        sys.exit(cli_main())


if __name__ == '__main__':
    main()
