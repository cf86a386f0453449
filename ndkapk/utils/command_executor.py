import subprocess
from ..cli_logger import logger
from ..errors import CommandFailedError, CommandNotFoundError

def run_shell_command(command, stream_output=False, env=None, input_data=None, cwd=None):
    """
    Executes a shell command, with options for streaming output and providing input.

    Args:
        command (list): The command to execute as a list of strings.
        stream_output (bool): If True, streams the output in real-time.
        env (dict, optional): A dictionary of environment variables.
        input_data (str, optional): Data to be passed to the command's stdin.
        cwd (str, optional): The working directory for the command.

    Returns:
        If stream_output is True, returns a generator that yields output lines
        and the process handle.
        If stream_output is False, returns a tuple (stdout, stderr, return_code).

    Raises:
        CommandNotFoundError: If the executable does not exist.
    """
    command = [str(part) for part in command]
    try:
        if stream_output:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=1,
                universal_newlines=True,
                env=env,
                cwd=cwd
            )

            def _generator():
                for line in process.stdout:
                    yield line
                process.communicate()
            return _generator(), process

        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            env=env,
            input=input_data,
            check=False,
            cwd=cwd
        )
        return result.stdout, result.stderr, result.returncode

    except FileNotFoundError as e:
        raise CommandNotFoundError(e.filename or command[0]) from e


class CommandRunner:
    """Runs external tools and turns a non-zero exit status into CommandFailedError.

    Every component that shells out receives one of these, so tests can hand in a
    scripted replacement instead of touching real toolchains.
    """

    def run(self, command, env=None, cwd=None, stream=False, interactive=False):
        """Run ``command`` to completion and return its standard output.

        ``stream`` echoes output line by line while the tool runs (compilers);
        ``interactive`` attaches the tool to the current terminal (debuggers,
        logcat). Neither mode captures output, so both return an empty string.
        """
        logger.debug(f"Running: {' '.join(str(part) for part in command)}")
        if interactive:
            command = [str(part) for part in command]
            try:
                returncode = subprocess.call(command, env=env, cwd=cwd)
            except FileNotFoundError as e:
                raise CommandNotFoundError(e.filename or command[0]) from e
            if returncode != 0:
                raise CommandFailedError(command, returncode)
            return ""

        if stream:
            lines, process = run_shell_command(command, stream_output=True, env=env, cwd=cwd)
            for line in lines:
                logger.step_info(line.rstrip(), indent=4)
            if process.returncode != 0:
                raise CommandFailedError(command, process.returncode)
            return ""

        stdout, stderr, returncode = run_shell_command(command, env=env, cwd=cwd)
        if returncode != 0:
            if stdout:
                logger.error(f"Stdout:\n{stdout}")
            if stderr:
                logger.error(f"Stderr:\n{stderr}")
            raise CommandFailedError(command, returncode, output=stderr or stdout)
        return stdout
