"""HTML and sitemap parsers."""
