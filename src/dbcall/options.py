from dataclasses import dataclass

from dbcall.strategy import get_available_dialects, get_strategy_class
from dbcall.strategy import is_supported_dialect

from libb import ConfigOptions, scriptname

__all__ = ['CallOptions']


@dataclass
class CallOptions(ConfigOptions):
    """Connection information for a call.

    supported driver names: `postgresql`, `sqlite`

    - timeout: connect timeout in seconds (PostgreSQL), busy timeout (SQLite)
    - appname: reported to PostgreSQL as application_name
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
