"""Version information for release-tool package"""

__version__ = "1.0.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))
__author__ = "vistart"
__email__ = "i@vistart.me"
__license__ = "MIT"
