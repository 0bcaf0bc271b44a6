from config.settings import *  # noqa: F401,F403
from config.definitions import *  # noqa: F401,F403
