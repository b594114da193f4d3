"""
Top-level package for the WordPress content diff migrator.

This package finds posts which were published on a live WordPress site
after a local (staging) copy of its database was taken, and imports them
together with their meta, authors, comments and terms into the local
tables, remapping every ID that changes on the way.  Both table sets live
in the same database and are told apart by their table prefix.  Modules are
split into subpackages:

* :mod:`content_diff.extractors` – diffing live and local posts, fetching a post's related rows
* :mod:`content_diff.migrators` – importing posts, categories, parents, content IDs and collations
* :mod:`content_diff.parsers` – attachment ID rewriting rules and ``<img>`` scanning
* :mod:`content_diff.utils` – run ledger, pre-flight checks, progress and reports
* :mod:`content_diff.models` – typed row records

Orchestration is handled in :mod:`content_diff.migration_tool`.
"""
