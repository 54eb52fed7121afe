"""
Record schemas and the search stack they drive.

- lang: Stemmers and stopword lists per language
- classifier: Field options and field roles
- compiler: Index programs and query configurations
- schema: define_schema() and RecordSchema
- engine: Indexer, Searcher and Search
- store / document / query / enquire: SQLite-backed term store
"""
