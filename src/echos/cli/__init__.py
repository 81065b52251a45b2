"""Command-line interface modules for echos reconstruction runs.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from echos.cli.run_reconstruction import run_reconstruction, load_user_config_dict

__all__ = ['run_reconstruction', 'load_user_config_dict']
