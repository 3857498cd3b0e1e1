"""Universal API scraper for recruitment-site job listings.

The package turns a declarative request template (URL, method, headers, body,
data path and field mapping) into a bounded, paginated series of HTTP calls,
maps each returned record into a normalized job and stores the accepted jobs
in a user-owned record store.
"""
