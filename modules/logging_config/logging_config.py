import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style, init

init(autoreset=True)

CONSOLE_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'
FILE_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] [%(funcName)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers capped at WARNING
NOISY_LOGGERS = ('joblib', 'urllib3', 'PIL')


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""
    COLORS = {
        'DEBUG': Fore.WHITE + Style.DIM,
        'INFO': Fore.CYAN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT
    }
    RESET = Style.RESET_ALL

    def format(self, record):
        # Colour a copy so file handlers sharing the record keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


class LoggingConfigurator:
    """
    Configures the root logger from the ``logging`` config section.

    Keys: ``level``, ``log_to_console``, ``colorful_console``, ``log_to_file``
    and ``log_file`` (relative to ``log_dir``).
    """

    def __init__(self, config: dict, log_dir: str = "logs"):
        self.config = config.get('logging', {})
        level_name = str(self.config.get('level', 'INFO')).upper()
        self.log_level = getattr(logging, level_name, logging.INFO)
        self.log_dir = Path(log_dir)
        self.log_file = self.config.get('log_file', 'pipeline.log')

    def setup(self) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        if self.config.get('log_to_console', True):
            # Windows consoles default to a legacy code page
            if sys.platform == 'win32':
                sys.stdout.reconfigure(encoding='utf-8')

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)
            formatter_class = ColoredFormatter if self.config.get('colorful_console', True) else logging.Formatter
            console_handler.setFormatter(formatter_class(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(console_handler)

        if self.config.get('log_to_file', True):
            self._add_file_handler(root_logger, self.log_file)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(self.log_level, logging.WARNING))

    def _add_file_handler(self, logger: logging.Logger, filename: str):
        file_path = self.log_dir / filename
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            file_path,
            maxBytes=10*1024*1024,
            backupCount=5,
            encoding='utf-8'
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(handler)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)
