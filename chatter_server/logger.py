# chatter_server/logger.py

import logging


def setup_logging(level: str = "INFO") -> None:
    """
    Installs a single console handler on the root logger.
    Calling it again replaces the previous handler instead of stacking a second one.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root.addHandler(console_handler)
