"""Archive syndication feeds as static HTML, one page per publication month.

Re-running against the same output directory only adds entries whose links
are not on the existing pages yet, and links a newly created month from the
month before it.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
