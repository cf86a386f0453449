import datetime
import os
import sys
import traceback
from colorama import Fore, Style, init

# Initialize Colorama
init(autoreset=True)

LOG_DIR_ENV = "NDKAPK_LOG_DIR"
VERBOSE_ENV = "NDKAPK_VERBOSE"
DEFAULT_LOG_DIR = os.path.join(os.path.expanduser("~"), ".ndkapk", "logs")

# level: (color, console marker, goes to stderr)
LEVELS = {
    "INFO": (Fore.CYAN, "", False),
    "SUCCESS": (Fore.GREEN, "✓ ", False),
    "WARNING": (Fore.YELLOW, "⚠ ", True),
    "ERROR": (Fore.RED, "✖ ", True),
    "DEBUG": (Fore.WHITE + Style.DIM, "", False),
    "TRACEBACK": (Fore.RED, ">> ", True),
}


class Logger:
    """Colorized console output, mirrored as plain text into a per-run log file.

    The log directory is only created once something is written, and can be
    moved with ``NDKAPK_LOG_DIR``. Debug lines always reach the file but are
    echoed to the console only when ``NDKAPK_VERBOSE`` is set.
    """

    def __init__(self, log_dir=None, environ=None):
        self.environ = os.environ if environ is None else environ
        self.log_dir = log_dir or self.environ.get(LOG_DIR_ENV) or DEFAULT_LOG_DIR
        started = datetime.datetime.now().strftime('%Y%m%d_%H%M%S')
        self.log_file = os.path.join(self.log_dir, f"ndkapk_{started}.log")

    @property
    def verbose(self):
        return bool(self.environ.get(VERBOSE_ENV))

    def _write(self, line):
        os.makedirs(self.log_dir, exist_ok=True)
        with open(self.log_file, "a") as f:
            f.write(line + "\n")

    def _log(self, level, message, indent=0, show_timestamp=True, echo=True):
        color, marker, to_stderr = LEVELS[level]
        prefix = " " * indent
        if echo:
            # Resolved per call so click's CliRunner can swap the streams.
            stream = sys.stderr if to_stderr else sys.stdout
            head = f"{color}{Style.BRIGHT}[{datetime.datetime.now():%H:%M:%S}]{Style.RESET_ALL} " if show_timestamp else ""
            marker = f"{Style.BRIGHT}{marker}{Style.RESET_ALL}{color}" if marker else ""
            print(f"{head}{color}{prefix}{marker}{message}{Style.RESET_ALL}", file=stream)
        self._write(f"[{datetime.datetime.now():%H:%M:%S}] [{level}] {prefix}{message}")

    def info(self, message):
        self._log("INFO", message)

    def step_info(self, message, indent=0):
        self._log("INFO", message, indent=indent, show_timestamp=False)

    def success(self, message):
        self._log("SUCCESS", message)

    def warning(self, message):
        self._log("WARNING", message)

    def error(self, message):
        self._log("ERROR", message)

    def debug(self, message):
        self._log("DEBUG", message, echo=self.verbose)

    def exception(self, exc_type, exc_value, exc_traceback):
        self.error(f"An unhandled exception occurred: {exc_value}")
        for line in traceback.format_exception(exc_type, exc_value, exc_traceback):
            for sub_line in line.splitlines():
                if sub_line.strip():
                    self._log("TRACEBACK", sub_line, show_timestamp=False)


logger = Logger()
