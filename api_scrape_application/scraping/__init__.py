"""Request-template driven scraping: path extraction, field mapping, pagination and the fetch loop."""
