"""
Kickstarter limited reward notifier package.

This package contains modules for scraping a Kickstarter project page,
tracking its sold-out limited rewards, notifying Telegram when one of the
watched rewards frees up and coordinating the polling loop.  See README.md
for details.
"""

__all__ = [
    "catalog",
    "config",
    "errors",
    "main",
    "notifier",
    "scraper",
    "selector",
    "utils",
]
