"""httpd-limits - check Apache httpd process limits against server memory."""

__version__ = "2.2.0"
