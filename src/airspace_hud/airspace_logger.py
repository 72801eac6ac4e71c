# Logging setup shared by the airspace_hud modules.
#
# Each module does:
#
#   logger = logging.getLogger(__name__)
#   #logger.level = logging.DEBUG
#   LOGGER = Logger()
#
# basicConfig only takes effect once, so module level Logger() calls are
# cheap.  The command line calls Logger(level, logfile) again to raise the
# root level or add a log file after everything is imported.

import logging
import logging.handlers

LOG_FORMAT = '%(asctime)s %(levelname)s airspace_hud %(module)s:%(lineno)d: %(message)s'

DEFAULT_LEVEL = logging.INFO

# rotate the optional log file so a long flight can't fill the card
LOGFILE_MAX_BYTES = 1_000_000
LOGFILE_BACKUPS = 3

class Logger:
  def __init__(self, level=None, logfile=None):
    logging.basicConfig(
        level=DEFAULT_LEVEL,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )
    root = logging.getLogger()
    if level is not None:
        root.setLevel(level)
    if logfile:
        handler = logging.handlers.RotatingFileHandler(
            logfile, maxBytes=LOGFILE_MAX_BYTES, backupCount=LOGFILE_BACKUPS)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
