"""
Test package for lrems_backend.

- test_principal.py: access rules and principal model
- test_filter_compiler.py: access-rule compilation, overrides, restricted topic
- test_query_builders.py: compiled predicates against SQLite
- test_response_cache.py: namespaced TTL cache and invalidation
- test_conditional.py: fingerprints and 304 handling
- test_session_version.py: access_rules_version protocol
- test_book_service.py / test_monitoring_service.py: services end to end
- test_api.py: FastAPI seam
"""
