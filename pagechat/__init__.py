from pagechat.version import __version__, get_version

__appname__ = "pagechat"

__all__ = ["__appname__", "__version__", "get_version"]
