"""pagescout - page discovery for site-wide accessibility scans.

Finds the pages of a website by harvesting its sitemaps and crawling
its internal links, and hands the resulting URL list to a scanner.
"""

__version__ = "1.0.0"
__author__ = "pagescout contributors"
