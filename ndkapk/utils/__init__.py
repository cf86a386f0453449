from .command_executor import CommandRunner, run_shell_command
