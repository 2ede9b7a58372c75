from __future__ import annotations

"""
Logging for lazyhoney

A small loguru-based logger that supports `prefix` and colored
`|g|message|e|` markup so that client and transport messages can be
scanned quickly in a terminal.
"""

import re
import os
import sys
import logging
import threading
import traceback
import atexit as _atexit

from loguru._logger import Core as _Core
from loguru._logger import Logger as _Logger
from typing import Union, Optional, Any, Dict, Callable, Type


DEFAULT_STATUS_COLORS = {
    'debug': '<fg #D9ED92>',
    'info': '<fg #34A0A4>',
    'success': '<fg #52B69A>',
    'warning': '<fg #F48C06>',
    'error': '<fg #DC2F02>',
    'critical': '<fg #9D0208>',
}

DEFAULT_FUNCTION_COLOR = '<fg #219ebc>'
DEFAULT_CLASS_COLOR = '<fg #a8dadc>'

RESET_COLOR = '\x1b[0m'

LOGLEVEL_MAPPING = {
    50: 'CRITICAL',
    40: 'ERROR',
    30: 'WARNING',
    20: 'INFO',
    19: 'DEV',
    10: 'DEBUG',
    0: 'NOTSET',
}
REVERSE_LOGLEVEL_MAPPING = {v: k for k, v in LOGLEVEL_MAPPING.items()}

COLORED_MESSAGE_MAP = {
    '|bld|': '<bold>',
    '|em|': '<bold>',
    '|ee|': '</></>',
    '|lr|': '<light-red>',
    '|lb|': '<light-blue>',
    '|lc|': '<light-cyan>',
    '|gr|': '<fg #808080>',
    '|r|': '<red>',
    '|m|': '<magenta>',
    '|c|': '<cyan>',
    '|u|': '<underline>',
    '|i|': '<italic>',
    '|e|': '</>',
    '|g|': '<green>',
    '|y|': '<yellow>',
    '|b|': '<blue>',
    '|w|': '<white>',
}


def find_and_format_seps(msg: str) -> str:
    """
    Find any |a,b,c| and format them |a||b||c|

    ex:
      |em,b,u| -> |em||b||u|
    """
    for sep_match in re.finditer(r'\|\w+,(\w+,*)+\|', msg):
        s = sep_match.group()
        if len(s) >= 10: continue
        msg = msg.replace(s, "||".join(s.split(",")))
    return msg


class MessageFormatter:
    """
    Shared message formatting for the real and null loggers
    """

    def _get_level(self, level: Union[str, int]) -> str:
        """
        Returns the log level
        """
        if isinstance(level, str): level = level.upper()
        elif isinstance(level, int): level = LOGLEVEL_MAPPING.get(level, 'INFO')
        return level

    def _format_item(
        self,
        msg: Any,
        max_length: Optional[int] = None,
        colored: Optional[bool] = False,
        level: Optional[str] = None,
        _is_part: Optional[bool] = False,
    ) -> str:
        """
        Formats an item
        """
        if isinstance(msg, str): return msg[:max_length] if max_length else msg
        if isinstance(msg, (float, int, bool, type(None))): return str(msg)[:max_length] if max_length else str(msg)
        if isinstance(msg, (list, set)):
            _msg = str(msg) if _is_part else "\n" + "".join(f'- {item}\n' for item in msg)
            return _msg[:max_length] if max_length else _msg

        prefix, suffix = '', ''
        if colored:
            prefix = DEFAULT_STATUS_COLORS.get(level.lower(), '|g|') if level else '|g|'
            suffix = '|e|'

        if isinstance(msg, dict):
            _msg = "\n"
            for key, value in msg.items():
                _value = f'{value}'
                if max_length and len(_value) > max_length:
                    _value = f'{_value[:max_length]}...'
                _msg += f'- {prefix}{key}{suffix}: {_value}\n'
            return _msg.rstrip()

        if hasattr(msg, 'model_dump'):
            return self._format_item(msg.model_dump(mode = 'json'), max_length = max_length, colored = colored, level = level, _is_part = _is_part)

        return str(msg)[:max_length] if max_length else str(msg)

    def _format_message(
        self,
        message: Any,
        *args,
        prefix: Optional[str] = None,
        max_length: Optional[int] = None,
        level: Optional[str] = None,
        colored: Optional[bool] = False,
    ) -> str:
        """
        Formats the message

        "example |b|msg|e|"
        -> "example <blue>msg</><reset>"
        """
        _message = ""
        if prefix:
            if colored and '|' not in prefix:
                base_color = DEFAULT_STATUS_COLORS.get(level.lower(), '|g|') if level else '|g|'
                prefix = f'{base_color}{prefix}|e|'
            _message += f'[{prefix}] '
        _message += self._format_item(message, max_length = max_length, colored = colored, level = level)
        for arg in args:
            _message += "\n"
            _message += self._format_item(arg, max_length = max_length, colored = colored, level = level)
        if colored:
            # Escape any literal tags before swapping in the markup
            _message = _message.replace("<fg", ">|fg")
            _message = _message.replace("<", r"\<")
            _message = find_and_format_seps(_message)
            for key, value in COLORED_MESSAGE_MAP.items():
                _message = _message.replace(key, value)
            _message = _message.replace(">|fg", "<fg")
            _message += RESET_COLOR
        return _message


class NullLogger(MessageFormatter, logging.Logger):
    """
    A logger that does nothing except pass through the log calls to hooks
    """

    def log(
        self,
        level: Union[str, int],
        message: Any,
        *args,
        prefix: Optional[str] = None,
        max_length: Optional[int] = None,
        colored: Optional[bool] = False,
        hook: Optional[Callable] = None,
        **kwargs
    ):
        if not hook: return
        level = self._get_level(level)
        hook(self._format_message(message, *args, prefix = prefix, max_length = max_length, colored = colored, level = level))

    def info(self, *args, **kwargs): return self.log('INFO', *args, **kwargs)
    def debug(self, *args, **kwargs): return self.log('DEBUG', *args, **kwargs)
    def warning(self, *args, **kwargs): return self.log('WARNING', *args, **kwargs)
    def error(self, *args, **kwargs): return self.log('ERROR', *args, **kwargs)
    def exception(self, *args, **kwargs): return self.log('ERROR', *args, **kwargs)
    def success(self, *args, **kwargs): return self.log('SUCCESS', *args, **kwargs)
    def trace(self, *args, **kwargs): return None


class Logger(MessageFormatter, _Logger):

    name: str = None
    settings: Optional[Any] = None
    default_trace_depth: Optional[int] = None

    _colored_opts = None

    @property
    def colored_opts(self):
        """
        Returns the colored options
        """
        if not self._colored_opts:
            (exception, depth, record, lazy, colors, raw, capture, patchers, extra) = self._options
            self._colored_opts = (exception, depth, record, lazy, True, raw, capture, patchers, extra)
        return self._colored_opts

    def _get_opts(self, colored: Optional[bool] = False, **kwargs):
        """
        Returns the options
        """
        return self.colored_opts if colored else self._options

    def _emit(
        self,
        level: str,
        message: Any,
        *args,
        prefix: Optional[str] = None,
        max_length: Optional[int] = None,
        colored: Optional[bool] = False,
    ):
        message = self._format_message(message, *args, prefix = prefix, max_length = max_length, colored = colored, level = level)
        self._log(level, False, self._get_opts(colored = colored), message, (), {})

    def log(self, level: Union[str, int], message: Any, *args, **kwargs):
        """
        Log ``message`` with severity ``level``.
        """
        self._emit(self._get_level(level), message, *args, **kwargs)

    def info(self, message: Any, *args, **kwargs):
        """
        Log ``message`` with severity ``'INFO'``.
        """
        self._emit('INFO', message, *args, **kwargs)

    def debug(self, message: Any, *args, **kwargs):
        self._emit('DEBUG', message, *args, **kwargs)

    def success(self, message: Any, *args, **kwargs):
        self._emit('SUCCESS', message, *args, **kwargs)

    def warning(self, message: Any, *args, **kwargs):
        """
        Log ``message`` with severity ``'WARNING'``.
        """
        self._emit('WARNING', message, *args, **kwargs)

    def error(self, message: Any, *args, **kwargs):
        self._emit('ERROR', message, *args, **kwargs)

    def trace(
        self,
        msg: Union[str, Any],
        error: Optional[Type[Exception]] = None,
        level: str = "ERROR",
        depth: Optional[int] = None,
        chain: Optional[bool] = True,
    ) -> None:
        """
        This method logs the traceback of an exception.

        :param error: The exception to log.
        """
        _msg = msg if isinstance(msg, str) else self._format_message(msg)
        _msg += f": {traceback.format_exc(chain = chain, limit = (depth if depth is not None else self.default_trace_depth))}"
        if error: _msg += f" - {error}"
        self._emit(self._get_level(level), _msg)


class LoggerFormatter:

    @classmethod
    def default_formatter(cls, record: Dict[str, Any]) -> str:
        """
        Default record format: level, time, module:function, message
        """
        extra = DEFAULT_CLASS_COLOR + '{name}</>:' + DEFAULT_FUNCTION_COLOR + '{function}</>: '
        return "<level>{level: <8}</> <green>{time:YYYY-MM-DD HH:mm:ss.SSS}</>: " \
            + extra + "<level>{message}</level>" + RESET_COLOR + "\n"


_lock = threading.Lock()
_logger_contexts: Dict[str, Logger] = {}


def create_default_logger(
    name: Optional[str] = None,
    level: Union[str, int] = "INFO",
    format: Optional[Callable] = None,
    settings: Optional[Any] = None,
    **kwargs,
) -> Logger:
    """
    Creates (or returns the cached) logger for `name`
    """
    if name and name.upper() in REVERSE_LOGLEVEL_MAPPING:
        level, name = name, None
    name = (name or 'lazyhoney').split('.')[0]
    if name in _logger_contexts:
        return _logger_contexts[name]

    with _lock:
        if isinstance(level, int): level = LOGLEVEL_MAPPING.get(level, 'INFO')
        _logger = Logger(
            core = _Core(),
            exception = None,
            depth = 0,
            record = False,
            lazy = False,
            colors = False,
            raw = False,
            capture = True,
            patchers = [],
            extra = {},
        )
        _logger.name = name
        _logger.level(name = 'DEV', no = 19, color = "<blue>", icon = "@")
        _logger.add(
            sys.stderr,
            backtrace = True,
            colorize = True,
            level = level.upper(),
            format = format if format is not None else LoggerFormatter.default_formatter,
            **kwargs,
        )
        _atexit.register(_logger.remove)
        if settings is not None: _logger.settings = settings
        _logger_contexts[name] = _logger
        return _logger


if os.getenv('DEBUG_ENABLED') == 'True':
    logger_level = 'DEV'
else:
    logger_level: str = os.getenv('LOGGER_LEVEL', 'INFO').upper()


get_logger = create_default_logger
logger = create_default_logger(__name__, level = logger_level)
null_logger = NullLogger(name = 'null_logger')
